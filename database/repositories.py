import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Debt, KnownAccount, Order, User
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def add_user(self, user: User) -> User:
        async with self._session_maker() as session:
            session.add(user)
            await session.commit()
        logger.info(f"Added user {user.full_name!r} ({user.transport_id})")
        return user

    async def get_user(self, user_id: str) -> User:
        async with self._session_maker() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"user with id {user_id} not found")
        return user

    async def list_users(self, names: Optional[List[str]] = None, transport_id: Optional[str] = None) -> List[User]:
        query = select(User).order_by(User.created_at)
        if names:
            query = query.where(User.full_name.in_(names))
        if transport_id:
            query = query.where(User.transport_id == transport_id)

        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())


class AccountStore:
    """Telegram accounts seen by the bot"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def remember(self, transport_id: str, username: Optional[str], first_name: Optional[str],
                       last_name: Optional[str] = None):
        async with self._session_maker() as session:
            account = await session.get(KnownAccount, transport_id)
            if account is None:
                account = KnownAccount(transport_id=transport_id)
                session.add(account)
            account.username = username.lower() if username else None
            account.first_name = first_name
            account.last_name = last_name
            await session.commit()

    async def get_by_username(self, username: str) -> KnownAccount:
        async with self._session_maker() as session:
            result = await session.execute(
                select(KnownAccount).where(KnownAccount.username == username.lower())
            )
            account = result.scalar_one_or_none()
        if account is None:
            raise NotFoundError(f'user "{username}" not found')
        return account


class DebtStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def add_debt(self, debt: Debt) -> Debt:
        async with self._session_maker() as session:
            session.add(debt)
            await session.commit()
        return debt

    async def list_debts_for_order(self, order_id: str) -> List[Debt]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Debt).where(Debt.order_id == order_id).order_by(Debt.created_at)
            )
            return list(result.scalars().all())

    async def remove_debt(self, order_id: str, debt_id: str):
        async with self._session_maker() as session:
            await session.execute(delete(Debt).where(Debt.order_id == order_id, Debt.id == debt_id))
            await session.commit()

    async def remove_debts_for_order(self, order_id: str) -> int:
        async with self._session_maker() as session:
            result = await session.execute(delete(Debt).where(Debt.order_id == order_id))
            await session.commit()
            return result.rowcount


class OrderStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def save_order(self, order: Order) -> Order:
        async with self._session_maker() as session:
            session.add(order)
            await session.commit()
        logger.info(f"Saved order {order.original_id} as {order.id}")
        return order

    async def list_orders(self, original_id: str) -> List[Order]:
        async with self._session_maker() as session:
            result = await session.execute(select(Order).where(Order.original_id == original_id))
            return list(result.scalars().all())
