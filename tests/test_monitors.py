"""Tests for the venue and delivery monitors."""

import asyncio
from datetime import timedelta, timezone

import pytest

from services.errors import OrderCanceledError
from services.group_session import GroupSession
from services.monitors import (
    DeliveryMonitor,
    VenueMonitor,
    build_closed_venue_message,
    build_progress_art,
)
from tests.helpers import FakeWoltGroup, MutableClock, order_details, purchase, utc, venue, wait_until

CHANNEL = "chat-1"
TIMES_LINE = "<code>12:30</code>" + " " * 23 + "<code>12:00</code>"


async def run_venue_monitor(monitor: VenueMonitor, session: GroupSession, client: FakeWoltGroup, polls: int):
    task = asyncio.create_task(monitor.run(session, CHANNEL))
    try:
        await wait_until(lambda: client.venue_calls >= polls)
    finally:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


class TestClosedVenueMessage:

    def test_without_estimate(self):
        assert build_closed_venue_message(venue().offline_period_end, timezone.utc, utc(12)) == (
            "Venue is closed for delivery. I'll let you know when it opens"
        )

    def test_estimate_today(self):
        assert build_closed_venue_message(utc(14, 30), timezone.utc, utc(12)) == (
            "Venue is closed for delivery (allegedly until 14:30). I'll let you know when it opens"
        )

    def test_estimate_another_day(self):
        message = build_closed_venue_message(utc(10, day=16), timezone.utc, utc(12))
        assert "(allegedly until 2024-03-16 10:00)" in message


class TestVenueMonitor:
    """Tests for open/closed notifications while waiting for the order."""

    async def test_open_closed_open_notifies_twice(self, notifier, transport):
        closed = venue(online=False, offline_period_end=utc(14))
        client = FakeWoltGroup(
            details=[order_details()],
            venues=[venue(), closed, closed, closed, closed, venue()],
        )
        session = GroupSession("ABC", client)

        await run_venue_monitor(VenueMonitor(notifier, 0, clock=lambda: utc(12)), session, client, polls=8)

        assert transport.texts() == [
            "Venue is closed for delivery (allegedly until 14:00). I'll let you know when it opens",
            "Venue is now open for delivery",
        ]
        assert transport.edits == []

    async def test_new_estimate_edits_the_notice(self, notifier, transport):
        client = FakeWoltGroup(
            details=[order_details()],
            venues=[
                venue(delivery_enabled=False, offline_period_end=utc(14)),
                venue(delivery_enabled=False, offline_period_end=utc(15)),
            ],
        )
        session = GroupSession("ABC", client)

        await run_venue_monitor(VenueMonitor(notifier, 0, clock=lambda: utc(12)), session, client, polls=4)

        assert len(transport.sent) == 1
        assert len(transport.edits) == 1
        receiver, text, message_id = transport.edits[0]
        assert message_id == transport.sent[0].message_id
        assert "(allegedly until 15:00)" in text


class TestProgressArt:
    """Tests for the delivery progress drawing."""

    def test_just_purchased(self):
        art = build_progress_art(utc(12), utc(12, 30), timezone.utc, utc(12), "🏢")

        assert art == TIMES_LINE + "\n" + "   🏢" + "_" * 13 + "🚴" + "🧑‍🍳"

    def test_arriving(self):
        art = build_progress_art(utc(12), utc(12, 30), timezone.utc, utc(12, 30), "🏢")

        assert art.split("\n")[1] == "   🏢" + "🚴" + "_" * 13 + "🧑‍🍳"

    def test_late_delivery_is_not_clamped(self):
        art = build_progress_art(utc(12), utc(12, 30), timezone.utc, utc(13), "🏢")

        assert art.split("\n")[1] == "   🏢" + "🚴" + "_" * 26 + "🧑‍🍳"


class TestDeliveryMonitor:
    """Tests for following the delivery after rates are published."""

    @pytest.fixture
    def clock(self):
        return MutableClock(utc(12, 29))

    def make_monitor(self, notifier, clock) -> DeliveryMonitor:
        return DeliveryMonitor(notifier, 0, time_till_get_ready=120, destination_emoji="🏢", clock=clock)

    async def test_get_ready_then_arrived(self, notifier, transport, clock):
        on_the_way = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30)))
        delivered = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30), delivered_at=utc(12, 31)))
        client = FakeWoltGroup(details=[on_the_way, on_the_way, delivered], venues=[venue()])
        session = GroupSession("ABC", client)
        session.rates_message_id = "50"

        await self.make_monitor(notifier, clock).run(session, CHANNEL, "Rates for Wolt order ID ABC\n")

        assert transport.texts() == ["Get ready, delivery coming soon", "Delivery arrived"]
        assert all(edit[2] == "50" for edit in transport.edits)
        assert transport.edits[-1][1].startswith("Rates for Wolt order ID ABC\n\n<code>12:31</code>")

    async def test_no_eta_yet(self, notifier, transport, clock):
        waiting = order_details("purchased", purchase_data=purchase(utc(12)))
        delivered = order_details("purchased", purchase_data=purchase(utc(12), delivered_at=utc(12, 40)))
        session = GroupSession("ABC", FakeWoltGroup(details=[waiting, waiting, delivered], venues=[venue()]))
        session.rates_message_id = "50"

        await self.make_monitor(notifier, clock).run(session, CHANNEL, "rates\n")

        assert transport.texts() == ["Delivery arrived"]
        assert len(transport.edits) == 1

    async def test_delivered_without_timestamp_uses_now(self, notifier, transport, clock):
        delivered = order_details("purchased", purchase_data={
            **purchase(utc(12), utc(12, 30)),
            "delivery_status": "delivered",
            "delivery_status_log": [{"status": "delivered"}],
        })
        session = GroupSession("ABC", FakeWoltGroup(details=[delivered], venues=[venue()]))
        session.rates_message_id = "50"

        await self.make_monitor(notifier, clock).run(session, CHANNEL, "rates\n")

        assert transport.texts() == ["Delivery arrived"]
        assert transport.edits[-1][1].startswith("rates\n\n<code>12:29</code>")

    async def test_edit_failures_are_tolerated(self, notifier, transport, clock):
        transport.fail_edit = True
        on_the_way = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30)))
        delivered = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30), delivered_at=utc(12, 31)))
        session = GroupSession("ABC", FakeWoltGroup(details=[on_the_way, on_the_way, delivered], venues=[venue()]))
        session.rates_message_id = "50"

        await self.make_monitor(notifier, clock).run(session, CHANNEL, "rates\n")

        assert transport.texts()[-1] == "Delivery arrived"

    async def test_canceled(self, notifier, clock):
        session = GroupSession("ABC", FakeWoltGroup(details=[order_details("cancelled")], venues=[venue()]))

        with pytest.raises(OrderCanceledError):
            await self.make_monitor(notifier, clock).run(session, CHANNEL, "rates\n")

    async def test_far_eta_has_no_get_ready(self, notifier, transport):
        clock = MutableClock(utc(12) - timedelta(hours=1))
        on_the_way = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30)))
        delivered = order_details("purchased", purchase_data=purchase(utc(12), utc(12, 30), delivered_at=utc(12, 31)))
        session = GroupSession("ABC", FakeWoltGroup(details=[on_the_way, on_the_way, delivered], venues=[venue()]))

        await self.make_monitor(notifier, clock).run(session, CHANNEL, "rates\n")

        assert transport.texts() == ["Delivery arrived"]
