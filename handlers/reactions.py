from aiogram import Router
from aiogram.types import MessageReactionUpdated, ReactionTypeEmoji
from services.debts import ReactionRequest
from services.errors import TooManyRequestsError
from services.ingress import WorkerPool
from services.telegram_transport import TelegramTransport
import logging

logger = logging.getLogger(__name__)

router = Router()


@router.message_reaction()
async def reaction_added(event: MessageReactionUpdated, reaction_pool: WorkerPool, transport: TelegramTransport):
    """Forward reactions that were added (not removed) to the debt service"""
    if event.user is None or str(event.user.id) == transport.self_id:
        return

    old = {r.emoji for r in event.old_reaction if isinstance(r, ReactionTypeEmoji)}
    added = [r.emoji for r in event.new_reaction if isinstance(r, ReactionTypeEmoji) and r.emoji not in old]
    if not added:
        return

    channel = str(event.chat.id)
    message_id = str(event.message_id)
    text = transport.sent_text(channel, message_id)
    # Only our own messages are remembered
    author = transport.self_id if text is not None else None

    for emoji in added:
        try:
            await reaction_pool.submit(ReactionRequest(
                reaction=emoji,
                from_user_id=str(event.user.id),
                channel=channel,
                message_author_id=author,
                message_text=text or "",
            ))
        except TooManyRequestsError:
            logger.warning(f"Dropped reaction {emoji} from {event.user.id}: too many requests")
