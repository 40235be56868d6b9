import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from database.models import KnownAccount, User
from database.repositories import AccountStore, UserStore

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    users: List[User]
    expires_at: float


class UserDirectory:
    """
    Resolves Wolt participant names to users.

    Lookups by name are cached for `max_age` seconds; the cache is shared by
    every running order, so it is guarded by a lock. Expired entries are
    dropped on the next read.
    """

    def __init__(
        self,
        user_store: UserStore,
        account_store: AccountStore,
        max_age: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.user_store = user_store
        self.account_store = account_store
        self.max_age = max_age
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def _from_cache(self, name: str) -> Optional[List[User]]:
        async with self._lock:
            entry = self._cache.get(name)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._cache[name]
                logger.info(f"User {name!r} expired from cache")
                return None
            return entry.users

    async def _save_cache(self, name: str, users: List[User]):
        async with self._lock:
            self._cache[name] = _CacheEntry(users=users, expires_at=self._clock() + self.max_age)

    async def invalidate(self, name: str):
        async with self._lock:
            self._cache.pop(name, None)

    async def find_by_name(self, name: str) -> List[User]:
        cached = await self._from_cache(name)
        if cached is not None:
            return cached

        users = await self.user_store.list_users(names=[name])
        if users:
            await self._save_cache(name, users)
        return users

    async def resolve(self, name: str) -> Optional[User]:
        try:
            users = await self.find_by_name(name)
        except Exception as e:
            logger.error(f"Error getting user {name!r} from storage: {e}")
            return None

        if not users:
            logger.info(f"User not found {name!r}")
            return None
        if len(users) > 1:
            logger.warning(f"More than one user for {name!r}, taking first: {users}")
        return users[0]

    async def get_user(self, user_id: str) -> User:
        return await self.user_store.get_user(user_id)

    async def find_account(self, username: str) -> KnownAccount:
        return await self.account_store.get_by_username(username.lstrip("@"))

    async def add_user(self, full_name: str, account: KnownAccount, timezone: Optional[str] = None) -> User:
        user = await self.user_store.add_user(User(
            full_name=full_name,
            transport_id=account.transport_id,
            timezone=timezone,
            payment_preferences=[],
        ))
        await self.invalidate(full_name)
        return user
