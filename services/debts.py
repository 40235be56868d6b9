import asyncio
import html
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import ServiceConfig
from database.models import Debt, User
from database.repositories import DebtStore
from services.errors import AuthorizationError, NotFoundError
from services.rates import GroupRate, parse_order_id
from services.tasks import TaskRegistry
from services.transport import Notifier
from services.users import UserDirectory
from utils import format_amount

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReactionRequest:
    reaction: str
    from_user_id: str
    channel: str
    message_author_id: Optional[str]
    message_text: str


class DebtService:
    """
    Debt ledger of finished orders and the reminders that go with it.

    One reminder task per order runs in the task registry, detached from the
    coordinator run that created the debts.
    """

    def __init__(
        self,
        notifier: Notifier,
        directory: UserDirectory,
        debt_store: DebtStore,
        tasks: TaskRegistry,
        config: ServiceConfig,
        self_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notifier = notifier
        self.directory = directory
        self.debt_store = debt_store
        self.tasks = tasks
        self.config = config
        self.self_id = self_id
        self.clock = clock

    # Creating debts

    async def add_debts(self, receiver: str, order_id: str, group_rate: GroupRate, message_id: Optional[str]) -> int:
        if group_rate.host_user is None:
            await self.notifier.inform(
                receiver,
                f"I didn't find the user of the host ({html.escape(group_rate.host, quote=False)}), I won't track debts for order {order_id}",
                reply_to=message_id,
            )
            return 0

        host_user = group_rate.host_user
        await self.notifier.inform(
            receiver,
            f"I'll keep reminding you to pay, when you pay you can react with {self.config.mark_as_paid_reaction} "
            f"to the rates message and I'll stop bothering you.\n"
            f"{self.notifier.mention(host_user.transport_id)}, as the host, you can react with "
            f"{self.config.host_remove_debts_reaction} to the rates message to cancel debts tracking "
            f"for Wolt order ID {order_id}",
            reply_to=message_id,
        )

        created = 0
        for rate in group_rate.ordered_rates():
            if rate.label == group_rate.host:
                # The host doesn't owe themselves
                continue
            if rate.user is None:
                await self.notifier.inform(
                    receiver, f"I won't track '{html.escape(rate.label, quote=False)}' payment because I can't find their user.",
                    reply_to=message_id,
                )
                continue

            try:
                await self.debt_store.add_debt(Debt(
                    borrower_id=rate.user.id,
                    lender_id=host_user.id,
                    order_id=order_id,
                    amount=rate.amount,
                    initial_transport=receiver,
                    message_id=message_id,
                ))
                created += 1
            except Exception as e:
                logger.error(f"Error creating debt for user {rate.label!r} in order ID {order_id!r}: {e}")

        logger.info(f"Created {created} debts for order {order_id}")
        return created

    def start_reminders(self, order_id: str) -> bool:
        return self.tasks.spawn(f"debts:{order_id}", lambda: self.run_reminders(order_id))

    # Reminders

    async def run_reminders(self, order_id: str):
        try:
            await asyncio.wait_for(self._remind_until_paid(order_id), timeout=self.config.debt_maximum_duration)
        except asyncio.TimeoutError:
            logger.info(f"Debt tracking for order {order_id} timed out")
            await self.remove_all_debts(order_id, "timeout has been reached")

    async def _remind_until_paid(self, order_id: str):
        while True:
            await asyncio.sleep(self.config.debt_reminder_interval)
            try:
                if not await self.remind_debts(order_id):
                    logger.info(f"No more debts for order {order_id}")
                    return
            except Exception as e:
                logger.error(f"Error reminding debts for order {order_id}: {e}")

    async def remind_debts(self, order_id: str) -> bool:
        """One reminder round. False when the order has no debts left"""
        debts = await self.debt_store.list_debts_for_order(order_id)
        if not debts:
            return False

        for debt in debts:
            try:
                await self.remind_debt(debt)
            except Exception as e:
                logger.error(f"Reminding about debt {debt}: {e}")
        return True

    def local_time_of(self, user: User) -> datetime:
        now = self.clock()
        if user.timezone:
            try:
                return now.astimezone(ZoneInfo(user.timezone))
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(f"Bad timezone {user.timezone!r} for user {user.full_name!r}")
        return now.astimezone()

    def is_quiet_hours(self, local_time: datetime) -> bool:
        return (local_time.hour >= self.config.no_messages_after_hour
                or local_time.hour < self.config.no_messages_before_hour)

    async def remind_debt(self, debt: Debt) -> bool:
        borrower = await self.directory.get_user(debt.borrower_id)

        if self.is_quiet_hours(self.local_time_of(borrower)):
            logger.info(f"Not reminding in quiet hours for user {borrower.full_name!r} ({borrower.id}). "
                        f"Timezone at borrower: {borrower.timezone}")
            return False

        lender = debt.lender_id
        try:
            lender = self.notifier.mention((await self.directory.get_user(debt.lender_id)).transport_id)
        except NotFoundError:
            logger.warning(f"Lender {debt.lender_id} of debt {debt.id} not found")

        message_id = await self.notifier.inform(
            borrower.transport_id,
            f"Reminder, you should pay {format_amount(debt.amount)} NIS to {lender} for Wolt order ID {debt.order_id}.\n"
            f"If you paid, you can mark yourself as paid by adding {self.config.mark_as_paid_reaction} "
            f"reaction to this message or to the original rates message.",
            reaction=self.config.mark_as_paid_reaction,
        )
        return message_id is not None

    # Reactions

    async def handle_reaction(self, request: ReactionRequest):
        # Reactions arrive for every message; only ours carry debts
        if request.message_author_id != self.self_id:
            return
        if request.reaction not in (self.config.mark_as_paid_reaction, self.config.host_remove_debts_reaction):
            return

        order_id = parse_order_id(request.message_text)
        if order_id is None:
            logger.info("Got reaction for non rates message, ignoring")
            return

        if request.reaction == self.config.mark_as_paid_reaction:
            await self.mark_debt_as_paid(order_id, request.from_user_id, request.channel)
            return

        try:
            await self.host_cancel(order_id, request.from_user_id)
        except AuthorizationError as e:
            logger.warning(f"Rejected debts cancellation: {e}")

    async def mark_debt_as_paid(self, order_id: str, reactor_transport_id: str, channel: str) -> bool:
        debts = await self.debt_store.list_debts_for_order(order_id)

        for debt in debts:
            try:
                borrower = await self.directory.get_user(debt.borrower_id)
            except NotFoundError as e:
                logger.error(f"Error getting borrower user with id {debt.borrower_id}: {e}")
                continue
            if borrower.transport_id != reactor_transport_id:
                continue

            await self.debt_store.remove_debt(order_id, debt.id)
            logger.info(f"Debt {debt.id} of order {order_id} paid")
            await self.notifier.inform(borrower.transport_id, f"OK! I removed your debt for order {order_id}")

            # Fall back to the channel of the original link if the lender can't be found
            recipient, reply_to = channel, debt.message_id
            try:
                lender = await self.directory.get_user(debt.lender_id)
                recipient, reply_to = lender.transport_id, None
            except NotFoundError as e:
                logger.error(f"Error getting lender user with id {debt.lender_id}: {e}")

            await self.notifier.inform(
                recipient,
                f"{self.notifier.mention(borrower.transport_id)} marked themselves as paid for order ID {order_id}",
                reply_to=reply_to,
            )
            return True

        return False

    async def host_cancel(self, order_id: str, reactor_transport_id: str) -> bool:
        debts = await self.debt_store.list_debts_for_order(order_id)
        if not debts:
            return False

        host = await self.directory.get_user(debts[0].lender_id)
        if host.transport_id != reactor_transport_id:
            await self.notifier.inform(
                reactor_transport_id,
                f"Nice try 😜 Only the host ({self.notifier.mention(host.transport_id)}) "
                f"can cancel debts for this order",
            )
            raise AuthorizationError(f"{reactor_transport_id} is not the host of order {order_id}")

        return await self.remove_all_debts(order_id, "the host requested to cancel debts tracking")

    async def remove_all_debts(self, order_id: str, reason: str) -> bool:
        debts = await self.debt_store.list_debts_for_order(order_id)
        if not debts:
            return False

        first = debts[0]
        removed = await self.debt_store.remove_debts_for_order(order_id)
        logger.info(f"Removed {removed} debts for order {order_id} because {reason}")

        text = f"I removed all debts for order ID {order_id} because {reason}"
        try:
            lender = await self.directory.get_user(first.lender_id)
            await self.notifier.inform(lender.transport_id, text)
        except NotFoundError:
            await self.notifier.inform(first.initial_transport, text, reply_to=first.message_id)
        return True
