"""Builders and fakes shared by the tests."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from services.errors import TransportError
from wolt.models import OrderDetails, Venue

TEL_AVIV = [34.7818, 32.0853]


def millis(moment: datetime) -> dict:
    return {"$date": int(moment.timestamp() * 1000)}


def utc(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=timezone.utc)


def participant(first_name: str, user_id: str, amounts=(), last_name: str = "") -> dict:
    return {
        "first_name": first_name,
        "last_name": last_name,
        "status": "ready",
        "user_id": user_id,
        "basket": {"items": [{"baseprice": amount, "end_amount": amount} for amount in amounts]},
    }


def purchase(purchased_at: datetime, eta: Optional[datetime] = None, delivered_at: Optional[datetime] = None) -> dict:
    data = {"purchase_datetime": millis(purchased_at), "delivery_status": "", "delivery_status_log": []}
    if eta:
        data["delivery_eta"] = millis(eta)
    if delivered_at:
        data["delivery_status"] = "delivered"
        data["delivery_status_log"].append({"status": "delivered", "created_at": millis(delivered_at)})
    return data


def order_details(status: str = "active", participants=(), host_id: str = "", purchase_data: Optional[dict] = None,
                  coordinates=TEL_AVIV, venue_id: str = "venue-1") -> OrderDetails:
    data = {
        "status": status,
        "created_at": millis(utc(11)),
        "host_id": host_id,
        "details": {
            "venue_id": venue_id,
            "delivery_info": {"location": {"coordinates": {"coordinates": list(coordinates)}}},
        },
        "participants": list(participants),
    }
    if purchase_data:
        data["purchase"] = purchase_data
    return OrderDetails.model_validate(data)


def venue(online: bool = True, delivery_enabled: bool = True, offline_period_end: Optional[datetime] = None,
          base_price: Optional[int] = 1000, distance_ranges=None, coordinates=TEL_AVIV, tz: str = "UTC") -> Venue:
    pricing = None
    if base_price is not None:
        pricing = {
            "base_price": base_price,
            "distance_ranges": distance_ranges if distance_ranges is not None else [{"a": 0, "min": 0, "max": 0}],
        }
    data = {
        "id": "venue-1",
        "name": "Hummus Place",
        "public_url": "https://wolt.com/en/isr/tel-aviv/restaurant/hummus-place",
        "city": "Tel Aviv",
        "online": online,
        "timezone": tz,
        "location": {"coordinates": list(coordinates)},
        "delivery_specs": {"delivery_enabled": delivery_enabled, "delivery_pricing": pricing},
    }
    if offline_period_end:
        data["offline_period_end"] = millis(offline_period_end)
    return Venue.model_validate(data)


@dataclass
class SentMessage:
    receiver: str
    text: str
    reply_to: Optional[str]
    message_id: str


class FakeTransport:
    """In-memory transport recording everything the services send"""

    def __init__(self):
        self.sent: List[SentMessage] = []
        self.edits: List[tuple] = []
        self.reactions: List[tuple] = []
        self.fail_send = False
        # Only sends whose text starts with this fail
        self.fail_prefix: Optional[str] = None
        self.fail_edit = False
        self._next_id = 100

    async def send_message(self, receiver: str, text: str, reply_to: Optional[str] = None) -> str:
        if self.fail_send or (self.fail_prefix and text.startswith(self.fail_prefix)):
            raise TransportError("channel_not_found")
        self._next_id += 1
        message = SentMessage(receiver, text, reply_to, str(self._next_id))
        self.sent.append(message)
        return message.message_id

    async def edit_message(self, receiver: str, text: str, message_id: str) -> None:
        if self.fail_edit:
            raise TransportError("message_not_found")
        self.edits.append((receiver, text, message_id))

    async def add_reaction(self, receiver: str, message_id: str, reaction: str) -> None:
        self.reactions.append((receiver, message_id, reaction))

    def mention(self, transport_id: str) -> str:
        return f"<@{transport_id}>"

    def texts(self, receiver: Optional[str] = None) -> List[str]:
        return [m.text for m in self.sent if receiver is None or m.receiver == receiver]


class FakeWoltGroup:
    """
    Stand-in for WoltGroup. Details and venues are served in order and the
    last one is repeated forever.
    """

    def __init__(self, details=(), venues=(), join_error: Optional[Exception] = None,
                 join_gate: Optional[asyncio.Event] = None):
        self._details = list(details)
        self._venues = list(venues)
        self.join_error = join_error
        self.join_gate = join_gate
        self.join_calls = 0
        self.ready_calls = 0
        self.details_calls = 0
        self.venue_calls = 0
        self.closed = False

    async def join(self):
        self.join_calls += 1
        if self.join_gate:
            await self.join_gate.wait()
        if self.join_error:
            raise self.join_error

    async def mark_as_ready(self):
        self.ready_calls += 1

    async def details(self) -> OrderDetails:
        self.details_calls += 1
        if len(self._details) > 1:
            return self._details.pop(0)
        return self._details[0]

    async def venue_details(self, details=None) -> Venue:
        self.venue_calls += 1
        if len(self._venues) > 1:
            return self._venues.pop(0)
        return self._venues[0]

    async def aclose(self):
        self.closed = True


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def wait_until(predicate: Callable[[], bool], timeout: float = 2):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_poll(), timeout=timeout)
