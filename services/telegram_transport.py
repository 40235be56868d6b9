import html
import logging
from collections import OrderedDict
from typing import Dict, Optional, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ReactionTypeEmoji, ReplyParameters

from services.errors import TransportError

logger = logging.getLogger(__name__)


class TelegramTransport:
    """
    Transport on top of the aiogram Bot.

    Telegram doesn't tell a bot who wrote a reacted message nor what it said,
    so the texts of our own recent messages are remembered here.
    """

    def __init__(self, bot: Bot, remember_messages: int = 5000):
        self.bot = bot
        self.self_id: Optional[str] = None
        self._remember_messages = remember_messages
        self._sent: "OrderedDict[Tuple[str, str], str]" = OrderedDict()
        self._names: Dict[str, str] = {}

    async def load_self_id(self) -> str:
        me = await self.bot.get_me()
        self.self_id = str(me.id)
        return self.self_id

    def _remember(self, receiver: str, message_id: str, text: str):
        key = (receiver, message_id)
        self._sent[key] = text
        self._sent.move_to_end(key)
        while len(self._sent) > self._remember_messages:
            self._sent.popitem(last=False)

    def sent_text(self, receiver: str, message_id: str) -> Optional[str]:
        return self._sent.get((receiver, message_id))

    def remember_name(self, transport_id: str, name: str):
        self._names[transport_id] = name

    def mention(self, transport_id: str) -> str:
        name = html.escape(self._names.get(transport_id, "user"))
        return f'<a href="tg://user?id={transport_id}">{name}</a>'

    async def send_message(self, receiver: str, text: str, reply_to: Optional[str] = None) -> str:
        reply_parameters = None
        if reply_to:
            reply_parameters = ReplyParameters(message_id=int(reply_to), allow_sending_without_reply=True)
        try:
            message = await self.bot.send_message(
                chat_id=int(receiver), text=text, reply_parameters=reply_parameters,
            )
        except TelegramAPIError as e:
            raise TransportError(f"send message to {receiver}: {e}") from e

        message_id = str(message.message_id)
        self._remember(receiver, message_id, text)
        return message_id

    async def edit_message(self, receiver: str, text: str, message_id: str) -> None:
        try:
            await self.bot.edit_message_text(text=text, chat_id=int(receiver), message_id=int(message_id))
        except TelegramAPIError as e:
            if "message is not modified" in str(e):
                return
            raise TransportError(f"edit message {message_id} at {receiver}: {e}") from e
        self._remember(receiver, message_id, text)

    async def add_reaction(self, receiver: str, message_id: str, reaction: str) -> None:
        try:
            await self.bot.set_message_reaction(
                chat_id=int(receiver), message_id=int(message_id), reaction=[ReactionTypeEmoji(emoji=reaction)],
            )
        except TelegramAPIError as e:
            raise TransportError(f"react to message {message_id} at {receiver}: {e}") from e
