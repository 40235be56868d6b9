from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, User as TelegramUser
from typing import Callable, Dict, Any, Awaitable
from database.repositories import AccountStore
from services.telegram_transport import TelegramTransport
import logging

logger = logging.getLogger(__name__)


class AccountsMiddleware(BaseMiddleware):
    """Remembers every Telegram account that talks to the bot, for /add-user lookups"""

    def __init__(self, account_store: AccountStore, transport: TelegramTransport):
        self.account_store = account_store
        self.transport = transport
        self._seen: Dict[str, tuple] = {}

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        user: TelegramUser = data.get("event_from_user")
        if user and not user.is_bot:
            await self._remember(user)
        return await handler(event, data)

    async def _remember(self, user: TelegramUser):
        transport_id = str(user.id)
        self.transport.remember_name(transport_id, user.full_name)

        snapshot = (user.username, user.first_name, user.last_name)
        if self._seen.get(transport_id) == snapshot:
            return
        try:
            await self.account_store.remember(transport_id, user.username, user.first_name, user.last_name)
            self._seen[transport_id] = snapshot
        except Exception as e:
            logger.error(f"Error remembering account {transport_id}: {e}")
