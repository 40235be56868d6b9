import asyncio
import logging
from typing import Optional

from database.models import Order, OrderRecordStatus
from services.errors import ExternalAPIError, JoinError, OrderCanceledError
from services.rates import GroupRate
from wolt import OrderDetails, OrderStatus, Venue, WoltGroup

logger = logging.getLogger(__name__)


class GroupSession:
    """
    Stateful cache on top of one joined Wolt group.

    Details and venue are fetched once and kept; callers that need fresh
    data use fetch_details() / fetch_venue().
    """

    def __init__(self, group_id: str, client: WoltGroup):
        self.id = group_id
        self.client = client
        self.ready_marked = False
        self.rates_message_id: Optional[str] = None
        self._details: Optional[OrderDetails] = None
        self._venue: Optional[Venue] = None
        self._delivery_rate: Optional[int] = None

    async def join(self):
        try:
            await self.client.join()
        except JoinError:
            raise
        except ExternalAPIError as e:
            raise JoinError(f"join group {self.id}: {e}") from e

    async def mark_as_ready(self):
        await self.client.mark_as_ready()
        self.ready_marked = True

    async def fetch_details(self) -> OrderDetails:
        self._details = await self.client.details()
        return self._details

    async def fetch_venue(self) -> Venue:
        self._venue = await self.client.venue_details(await self.details())
        return self._venue

    async def details(self) -> OrderDetails:
        if self._details is None:
            return await self.fetch_details()
        return self._details

    async def venue(self) -> Venue:
        if self._venue is None:
            return await self.fetch_venue()
        return self._venue

    async def wait_until_finished(self, wait_between_status_check: float) -> OrderDetails:
        """Poll until the group leaves the active state"""
        details = await self.fetch_details()
        while details.status == OrderStatus.ACTIVE:
            await asyncio.sleep(wait_between_status_check)
            details = await self.fetch_details()

        if details.status == OrderStatus.CANCELED:
            raise OrderCanceledError(f"order {self.id} canceled")
        if not details.status.purchased():
            raise ExternalAPIError(f"unknown order status: {details.status}")
        return details

    async def calculate_delivery_rate(self) -> int:
        if self._delivery_rate is not None:
            return self._delivery_rate

        venue = await self.venue()
        details = await self.details()
        try:
            self._delivery_rate = venue.calculate_delivery_rate(details.delivery_coordinate)
        except ValueError as e:
            raise ExternalAPIError(f"get delivery price: {e}") from e
        return self._delivery_rate

    async def to_order(self, group_rate: GroupRate, receiver: str) -> Order:
        details = await self.details()
        venue = await self.venue()

        status = OrderRecordStatus.INVALID
        if details.status == OrderStatus.CANCELED:
            status = OrderRecordStatus.CANCELED
        elif details.status.purchased():
            status = OrderRecordStatus.DONE

        participants = [
            {"name": rate.label, "id": rate.user.id if rate.user else None, "amount": rate.amount}
            for rate in group_rate.ordered_rates()
        ]

        return Order(
            original_id=self.id,
            receiver=receiver,
            venue_name=venue.name,
            venue_id=details.venue_id,
            venue_link=venue.public_url,
            venue_city=venue.city,
            host=group_rate.host,
            host_id=details.host_id,
            status=status,
            participants=participants,
            delivery_rate=group_rate.delivery_rate,
            order_created_at=details.created_at.replace(tzinfo=None),
        )
