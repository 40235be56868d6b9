from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from config import MARK_AS_PAID_REACTION, HOST_REMOVE_DEBTS_REACTION
import logging

logger = logging.getLogger(__name__)

router = Router()


@router.message(Command("start"))
async def start_command(message: Message):
    """Handle /start command"""
    user = message.from_user

    await message.answer(
        f"👋 Hi, {user.first_name}!\n\n"
        f"🍔 I split <b>Wolt group orders</b>.\n\n"
        f"Share a Wolt group link in the chat and I will:\n\n"
        f"🤝 Join the group\n"
        f"⏳ Wait until the host places the order\n"
        f"💰 Tell everyone how much they owe, delivery included\n"
        f"🔔 Remind you until you pay\n\n"
        f"Ask an admin to add you with /add-user so I know who you are on Wolt."
    )
    logger.info(f"✨ User {user.id} started the bot")


@router.message(Command("help"))
async def help_command(message: Message):
    """Handle /help command"""
    help_text = (
        "📚 <b>Help</b>\n\n"
        "<b>How it works:</b>\n\n"
        "1️⃣ <b>Share the link</b>\n"
        "   Paste the Wolt group order link in the chat\n\n"
        "2️⃣ <b>Order</b>\n"
        "   Everybody adds their items on Wolt, the host places the order\n\n"
        "3️⃣ <b>Pay</b>\n"
        "   I post the rates. Pay the host, then react with "
        f"{MARK_AS_PAID_REACTION} to the rates message\n\n"
        "4️⃣ <b>Cancel</b>\n"
        f"   The host can react with {HOST_REMOVE_DEBTS_REACTION} to stop debts tracking\n\n"
        "<b>Commands:</b>\n"
        "/start - Introduction\n"
        "/help - This message"
    )

    await message.answer(help_text)
