import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

from services.errors import ExternalAPIError, OrderCanceledError
from services.group_session import GroupSession
from services.transport import Notifier
from utils import format_clock, format_moment
from wolt import OrderStatus, is_unset

logger = logging.getLogger(__name__)

SPACES_BETWEEN_TIMES = 23
SPACES_BEFORE_DESTINATION = 3
ROAD_TILES = 13
ROAD_TILE = "_"
COURIER_EMOJI = "🚴"
VENUE_EMOJI = "🧑‍🍳"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_closed_venue_message(offline_period_end: datetime, tz: tzinfo, now: datetime) -> str:
    message = "Venue is closed for delivery"
    if not is_unset(offline_period_end):
        message += f" (allegedly until {format_moment(offline_period_end, tz, now)})"
    return message + ". I'll let you know when it opens"


def build_progress_art(started_at: datetime, eta: datetime, tz: tzinfo, now: datetime,
                       destination_emoji: str) -> str:
    """
    Two lines: ETA and purchase time, then the courier on the road.

    The courier moves from the venue (right) to the destination (left). A
    fraction outside [0, 1] is not clamped; it only skews the drawing.
    """
    first_line = f"<code>{format_clock(eta, tz)}</code>{' ' * SPACES_BETWEEN_TIMES}<code>{format_clock(started_at, tz)}</code>"

    total = (eta - started_at).total_seconds()
    elapsed_fraction = (now - started_at).total_seconds() / total if total else 1.0
    tiles_behind = int(round(elapsed_fraction * ROAD_TILES))
    second_line = (
        " " * SPACES_BEFORE_DESTINATION
        + destination_emoji
        + ROAD_TILE * (ROAD_TILES - tiles_behind)
        + COURIER_EMOJI
        + ROAD_TILE * tiles_behind
        + VENUE_EMOJI
    )
    return f"{first_line}\n{second_line}"


class VenueMonitor:
    """Tells the channel when the venue stops or resumes delivering"""

    def __init__(self, notifier: Notifier, interval: float, clock: Callable[[], datetime] = utc_now):
        self.notifier = notifier
        self.interval = interval
        self.clock = clock

    async def run(self, session: GroupSession, receiver: str, reply_to: Optional[str] = None):
        closed = False
        last_offline_period_end: Optional[datetime] = None
        closed_message_id: Optional[str] = None

        while True:
            await asyncio.sleep(self.interval)
            try:
                venue = await session.fetch_venue()
            except ExternalAPIError as e:
                logger.error(f"Error getting venue for order {session.id!r}: {e}")
                continue

            if closed and venue.is_delivering():
                await self.notifier.inform(receiver, "Venue is now open for delivery", reply_to=reply_to)
                closed = False
                closed_message_id = None
            elif not closed and not venue.is_delivering():
                text = build_closed_venue_message(venue.offline_period_end, venue.timezone_info, self.clock())
                closed_message_id = await self.notifier.inform(receiver, text, reply_to=reply_to)
                closed = True
                last_offline_period_end = venue.offline_period_end
            elif closed and venue.offline_period_end != last_offline_period_end:
                text = build_closed_venue_message(venue.offline_period_end, venue.timezone_info, self.clock())
                if closed_message_id:
                    await self.notifier.edit(receiver, text, closed_message_id)
                last_offline_period_end = venue.offline_period_end


class DeliveryMonitor:
    """Draws delivery progress under the rates message until the food arrives"""

    def __init__(
        self,
        notifier: Notifier,
        interval: float,
        time_till_get_ready: float,
        destination_emoji: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.notifier = notifier
        self.interval = interval
        self.time_till_get_ready = time_till_get_ready
        self.destination_emoji = destination_emoji
        self.clock = clock

    async def _timezone(self, session: GroupSession) -> tzinfo:
        try:
            return (await session.venue()).timezone_info
        except ExternalAPIError as e:
            logger.warning(f"No venue timezone for order {session.id}, using UTC: {e}")
            return timezone.utc

    async def _draw(self, session: GroupSession, receiver: str, rates_message: str,
                    started_at: datetime, eta: datetime, tz: tzinfo):
        if not session.rates_message_id:
            return
        art = build_progress_art(started_at, eta, tz, self.clock(), self.destination_emoji)
        await self.notifier.edit(receiver, rates_message.rstrip("\n") + "\n\n" + art, session.rates_message_id)

    async def run(self, session: GroupSession, receiver: str, rates_message: str, reply_to: Optional[str] = None):
        tz = await self._timezone(session)
        details = await session.fetch_details()
        get_ready_sent = False

        while details.status != OrderStatus.CANCELED:
            if details.is_delivered():
                await self.notifier.inform(receiver, "Delivery arrived", reply_to=reply_to)
                delivered_at = details.purchase.status_log.get("delivered")
                if is_unset(delivered_at):
                    delivered_at = self.clock()
                if not is_unset(details.purchase_datetime):
                    await self._draw(session, receiver, rates_message, details.purchase_datetime, delivered_at, tz)
                logger.info(f"Order {session.id} delivered")
                return

            if not is_unset(details.delivery_eta):
                if not is_unset(details.purchase_datetime):
                    await self._draw(session, receiver, rates_message,
                                     details.purchase_datetime, details.delivery_eta, tz)

                time_to_delivery = (details.delivery_eta - self.clock()).total_seconds()
                if not get_ready_sent and time_to_delivery < self.time_till_get_ready:
                    await self.notifier.inform(receiver, "Get ready, delivery coming soon", reply_to=reply_to)
                    get_ready_sent = True

            await asyncio.sleep(self.interval)
            details = await session.fetch_details()

        raise OrderCanceledError(f"order {session.id} canceled")
