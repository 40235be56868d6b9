import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from config import ServiceConfig
from database.repositories import OrderStore
from services.debts import DebtService, utc_now
from services.dedup import InFlightOrders
from services.errors import ExternalAPIError, JoinError, OrderCanceledError, WaitTimeoutError
from services.group_session import GroupSession
from services.monitors import DeliveryMonitor, VenueMonitor
from services.rates import GroupRate, build_rates_message, get_group_id
from services.transport import Notifier
from services.users import UserDirectory
from wolt import WoltGroup

logger = logging.getLogger(__name__)


class OrderPhase(enum.Enum):
    JOINING = "joining"
    ANNOUNCED = "announced"
    AWAITING_READY = "awaiting_ready"
    AWAITING_FINISH = "awaiting_finish"
    RATES_PUBLISHED = "rates_published"
    MONITORING_DELIVERY = "monitoring_delivery"
    DONE = "done"
    CANCELED = "canceled"
    ERROR = "error"


@dataclass
class LinkRequest:
    links: List[str]
    channel: str
    message_id: Optional[str] = None


@dataclass
class OrderRun:
    group_id: str
    request: LinkRequest
    phase: OrderPhase = OrderPhase.JOINING
    history: List[OrderPhase] = field(default_factory=lambda: [OrderPhase.JOINING])

    def advance(self, phase: OrderPhase) -> OrderPhase:
        logger.info(f"Order {self.group_id}: {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)
        return phase


def parse_hour_minute(value: str) -> Optional[dt_time]:
    if not value:
        return None
    return datetime.strptime(value, "%H:%M").time()


class OrderCoordinator:
    """
    Drives one Wolt group order from the shared link to the delivery:
    join, announce, mark ready, wait for the host to order, publish rates,
    hand the debts to the debt service and follow the delivery.
    """

    def __init__(
        self,
        notifier: Notifier,
        directory: UserDirectory,
        debts: DebtService,
        order_store: OrderStore,
        config: ServiceConfig,
        group_factory: Callable[[str], WoltGroup],
        in_flight: Optional[InFlightOrders] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notifier = notifier
        self.directory = directory
        self.debts = debts
        self.order_store = order_store
        self.config = config
        self.group_factory = group_factory
        self.in_flight = in_flight or InFlightOrders()
        self.clock = clock

        self.dont_join_after = parse_hour_minute(config.dont_join_after)
        self.dont_join_after_tz = ZoneInfo(config.dont_join_after_tz) if config.dont_join_after_tz else None

        self.venue_monitor = VenueMonitor(notifier, config.wait_between_status_check, clock=clock)
        self.delivery_monitor = DeliveryMonitor(
            notifier,
            config.wait_between_status_check,
            config.time_till_get_ready_message,
            config.order_destination_emoji,
            clock=clock,
        )

    def should_handle_order(self) -> bool:
        if self.dont_join_after is None:
            return True

        now = self.clock().astimezone(self.dont_join_after_tz)
        return (now.hour, now.minute) < (self.dont_join_after.hour, self.dont_join_after.minute)

    async def handle_link(self, request: LinkRequest) -> Optional[OrderPhase]:
        """Returns the phase the order ended in, None when the link was ignored"""
        group_id = get_group_id(request.links)
        if group_id is None:
            logger.info(f"No wolt links found ({request.links})")
            return None

        with self.in_flight.claim(group_id) as acquired:
            if not acquired:
                logger.info(f"Already working on order {group_id}")
                return None

            if not self.should_handle_order():
                await self.notifier.inform(
                    request.channel, "It's too late for me.. I won't join this order 😴", reply_to=request.message_id,
                )
                return None

            run = OrderRun(group_id=group_id, request=request)
            session = GroupSession(group_id, self.group_factory(group_id))
            try:
                return await self._run(run, session)
            finally:
                await session.client.aclose()

    async def _fail(self, run: OrderRun, text: str, phase: OrderPhase = OrderPhase.ERROR) -> OrderPhase:
        await self.notifier.inform(run.request.channel, text, reply_to=run.request.message_id)
        return run.advance(phase)

    async def _run(self, run: OrderRun, session: GroupSession) -> OrderPhase:
        channel, reply_to, group_id = run.request.channel, run.request.message_id, run.group_id

        try:
            await session.join()
        except JoinError as e:
            logger.error(f"Error joining group {group_id}: {e}")
            return await self._fail(run, f"I had an error joining group ID {group_id}")

        announced = await self.notifier.inform(
            channel, f"Hey :) Just letting you know I joined the group {group_id}", reply_to=reply_to,
        )
        if announced is None:
            # Nobody would see the updates of this order
            logger.warning(f"Couldn't announce joining group {group_id}, won't track it")
            return run.advance(OrderPhase.ERROR)
        run.advance(OrderPhase.ANNOUNCED)

        run.advance(OrderPhase.AWAITING_READY)
        try:
            await session.mark_as_ready()
        except ExternalAPIError as e:
            logger.error(f"Error marking as ready in group {group_id}: {e}")
            return await self._fail(run, f"I had an error getting rate for group ID {group_id}")

        run.advance(OrderPhase.AWAITING_FINISH)
        try:
            await self._await_finish(session, channel, reply_to)
        except OrderCanceledError:
            return await self._fail(run, f"Order for group ID {group_id} was canceled", OrderPhase.CANCELED)
        except WaitTimeoutError:
            return await self._fail(run, f"Timed out waiting for group ID {group_id} to be ordered, I won't track it")
        except ExternalAPIError as e:
            logger.error(f"Error waiting for group {group_id} to progress: {e}")
            return await self._fail(run, f"I had an error getting rate for group ID {group_id}")

        try:
            group_rate = await self.compute_rates(session, channel, reply_to)
        except ExternalAPIError as e:
            logger.error(f"Error getting rate for group {group_id}: {e}")
            return await self._fail(run, f"I had an error getting rate for group ID {group_id}")

        rates_message = build_rates_message(group_rate, group_id, self.notifier.mention)
        session.rates_message_id = await self.notifier.inform(
            channel, rates_message, reaction=self.config.mark_as_paid_reaction, reply_to=reply_to,
        )
        if session.rates_message_id is None:
            logger.error(f"Couldn't publish rates for group {group_id}")
            return await self._fail(run, f"I had an error publishing rates for group ID {group_id}")
        run.advance(OrderPhase.RATES_PUBLISHED)

        await self._save_order(session, group_rate, channel)
        await self._start_debts(session, group_rate, channel, reply_to)

        run.advance(OrderPhase.MONITORING_DELIVERY)
        try:
            await asyncio.wait_for(
                self.delivery_monitor.run(session, channel, rates_message, reply_to),
                timeout=self.config.delivery_timeout,
            )
        except asyncio.TimeoutError:
            await self.notifier.inform(
                channel, f"I stopped following the delivery of order {group_id}, it takes too long", reply_to=reply_to,
            )
            return run.advance(OrderPhase.DONE)
        except OrderCanceledError:
            return await self._fail(run, f"Order for group ID {group_id} was canceled", OrderPhase.CANCELED)
        except ExternalAPIError as e:
            logger.error(f"Error monitoring delivery of group {group_id}: {e}")
            return await self._fail(run, f"I lost track of the delivery of order {group_id}")

        return run.advance(OrderPhase.DONE)

    async def _await_finish(self, session: GroupSession, channel: str, reply_to: Optional[str]):
        venue_task = asyncio.create_task(self.venue_monitor.run(session, channel, reply_to))
        try:
            await asyncio.wait_for(
                session.wait_until_finished(self.config.wait_between_status_check),
                timeout=self.config.order_ready_timeout,
            )
        except asyncio.TimeoutError as e:
            raise WaitTimeoutError(f"timeout waiting for group {session.id} to progress") from e
        finally:
            venue_task.cancel()
            await asyncio.gather(venue_task, return_exceptions=True)

    async def compute_rates(self, session: GroupSession, channel: str, reply_to: Optional[str]) -> GroupRate:
        details = await session.details()
        try:
            host = details.host
        except ValueError as e:
            raise ExternalAPIError(f"group host: {e}") from e

        try:
            delivery_rate = await session.calculate_delivery_rate()
        except ExternalAPIError as e:
            logger.error(f"Error getting delivery rate for group {session.id}: {e}")
            await self.notifier.inform(
                channel,
                "I can't find the delivery rate, I'll publish the rates without including the delivery rate",
                reply_to=reply_to,
            )
            delivery_rate = 0

        group_rate = GroupRate.build(details.rate_by_person(), host, delivery_rate)
        for rate in group_rate.rates:
            rate.user = await self.directory.resolve(rate.label)
        group_rate.host_user = group_rate.rate_for(host).user
        return group_rate

    async def _save_order(self, session: GroupSession, group_rate: GroupRate, channel: str):
        try:
            await self.order_store.save_order(await session.to_order(group_rate, channel))
        except Exception as e:
            logger.error(f"Error saving order {session.id}: {e}")

    async def _start_debts(self, session: GroupSession, group_rate: GroupRate, channel: str, reply_to: Optional[str]):
        try:
            created = await self.debts.add_debts(channel, session.id, group_rate, session.rates_message_id)
        except Exception as e:
            logger.error(f"Error adding debts for order {session.id}: {e}", exc_info=True)
            await self.notifier.inform(channel, "I had an error adding debts, I won't track this order", reply_to=reply_to)
            return

        if created:
            self.debts.start_reminders(session.id)
