from aiogram import BaseMiddleware
from aiogram.types import Message, MessageReactionUpdated, ReactionTypeEmoji, TelegramObject
from typing import Callable, Dict, Any, Awaitable
import logging
import time

logger = logging.getLogger(__name__)

# Handlers only queue work, anything slower than this blocks polling
SLOW_HANDLER_MS = 500


def describe(event: TelegramObject) -> str:
    if isinstance(event, Message):
        user = event.from_user
        text = (event.text or event.caption or "")[:50]
        return f"📨 Message from {user.first_name if user else '?'} in {event.chat.id}: {text}"
    if isinstance(event, MessageReactionUpdated):
        user_id = event.user.id if event.user else "anonymous"
        emojis = "".join(r.emoji for r in event.new_reaction if isinstance(r, ReactionTypeEmoji)) or "none"
        return f"👍 Reaction {emojis} from {user_id} on message {event.message_id} in {event.chat.id}"
    return f"📦 {type(event).__name__}"


class LoggingMiddleware(BaseMiddleware):
    """Logs chat messages and reactions that reach a handler, and how long it took"""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        logger.info(describe(event))
        started = time.perf_counter()

        try:
            return await handler(event, data)
        except Exception as e:
            logger.error(f"❌ Error handling {type(event).__name__}: {e}", exc_info=True)
            raise
        finally:
            duration = (time.perf_counter() - started) * 1000
            if duration > SLOW_HANDLER_MS:
                logger.warning(f"🐢 Handler took {duration:.0f}ms")
            else:
                logger.debug(f"⏱ Handler executed in {duration:.2f}ms")
