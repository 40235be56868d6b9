from database.connection import init_db, close_db, async_session_maker, create_engine
from database.models import User, KnownAccount, Debt, Order, OrderRecordStatus, PaymentMethod
from database.repositories import UserStore, AccountStore, DebtStore, OrderStore

__all__ = [
    'init_db',
    'close_db',
    'async_session_maker',
    'create_engine',
    'User',
    'KnownAccount',
    'Debt',
    'Order',
    'OrderRecordStatus',
    'PaymentMethod',
    'UserStore',
    'AccountStore',
    'DebtStore',
    'OrderStore',
]
