from datetime import datetime
from sqlalchemy import String, Float, Integer, Text, DateTime, Enum as SQLEnum, JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import enum
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class OrderRecordStatus(enum.Enum):
    INVALID = "invalid"
    CANCELED = "canceled"
    DONE = "done"


class PaymentMethod(enum.Enum):
    BIT = "Bit"
    PAYBOX = "Paybox"
    PEPPER = "Pepper pay"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    full_name: Mapped[str] = mapped_column(String(255), index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=True)
    transport_id: Mapped[str] = mapped_column(String(64), index=True)  # Telegram user ID
    # Ordered list of PaymentMethod values
    payment_preferences: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def payment_methods(self) -> list:
        return [PaymentMethod(value) for value in (self.payment_preferences or [])]

    def __repr__(self):
        return f"<User {self.full_name} ({self.transport_id})>"


class KnownAccount(Base):
    """A Telegram account the bot has seen, used to resolve @username"""
    __tablename__ = "known_accounts"

    transport_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str] = mapped_column(String(255), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<KnownAccount @{self.username} ({self.transport_id})>"


class Debt(Base):
    __tablename__ = "debts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    borrower_id: Mapped[str] = mapped_column(String(36))
    lender_id: Mapped[str] = mapped_column(String(36))
    order_id: Mapped[str] = mapped_column(String(64), index=True)
    amount: Mapped[float] = mapped_column(Float)
    initial_transport: Mapped[str] = mapped_column(String(64))  # Channel the link was shared in
    message_id: Mapped[str] = mapped_column(String(64), nullable=True)  # Rates message

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Debt {self.borrower_id} -> {self.lender_id}: {self.amount} (order {self.order_id})>"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    original_id: Mapped[str] = mapped_column(String(64), index=True)
    receiver: Mapped[str] = mapped_column(String(64))

    venue_name: Mapped[str] = mapped_column(String(255), nullable=True)
    venue_id: Mapped[str] = mapped_column(String(64), nullable=True)
    venue_link: Mapped[str] = mapped_column(Text, nullable=True)
    venue_city: Mapped[str] = mapped_column(String(255), nullable=True)

    host: Mapped[str] = mapped_column(String(255), nullable=True)
    host_id: Mapped[str] = mapped_column(String(64), nullable=True)
    status: Mapped[OrderRecordStatus] = mapped_column(SQLEnum(OrderRecordStatus), default=OrderRecordStatus.INVALID)
    # [{"name": ..., "id": ..., "amount": ...}]
    participants: Mapped[list] = mapped_column(JSON, default=list)
    delivery_rate: Mapped[int] = mapped_column(Integer, default=0)

    order_created_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Order {self.original_id} - {self.venue_name}>"
