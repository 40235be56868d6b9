import html
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from database.models import User
from utils import format_amount

logger = logging.getLogger(__name__)

GROUP_LINK_RE = re.compile(r"/group/(?P<id>[A-Z0-9]+?)(?:$|/$)")
ORDER_ID_IN_MESSAGE_RE = re.compile(r"Wolt order ID (?P<id>[A-Z0-9]+?)(?:[\s.]|$)")


@dataclass
class Rate:
    label: str
    amount: float
    user: Optional[User] = None


@dataclass
class GroupRate:
    """Per-participant shares of one order, delivery fee included"""
    rates: List[Rate]
    host: str
    delivery_rate: int = 0
    host_user: Optional[User] = None

    @classmethod
    def build(cls, raw_totals: Dict[str, float], host: str, delivery_rate: int = 0) -> "GroupRate":
        totals = dict(raw_totals)
        # The host pays too, even if they didn't take anything
        totals.setdefault(host, 0.0)

        delivery_per_person = delivery_rate / len(totals)
        rates = [Rate(label=label, amount=total + delivery_per_person) for label, total in totals.items()]
        return cls(rates=sorted(rates, key=lambda r: r.label), host=host, delivery_rate=delivery_rate)

    def ordered_rates(self) -> List[Rate]:
        return sorted(self.rates, key=lambda r: r.label)

    def rate_for(self, label: str) -> Optional[Rate]:
        for rate in self.rates:
            if rate.label == label:
                return rate
        return None

    @property
    def total(self) -> float:
        return sum(rate.amount for rate in self.rates)


def build_rates_message(group_rate: GroupRate, group_id: str, mention: Callable[[str], str]) -> str:
    lines = [f"Rates for Wolt order ID {group_id} (including {group_rate.delivery_rate} NIS for delivery):"]

    for rate in group_rate.ordered_rates():
        label = mention(rate.user.transport_id) if rate.user else html.escape(rate.label, quote=False)
        lines.append(f"{label}: {format_amount(rate.amount)}")

    host = mention(group_rate.host_user.transport_id) if group_rate.host_user else html.escape(group_rate.host, quote=False)
    lines.append("")
    lines.append(f"Pay to: {host}")

    if group_rate.host_user and group_rate.host_user.payment_preferences:
        methods = ", ".join(method.value for method in group_rate.host_user.payment_methods)
        lines.append(f"Preferred payments methods (in order): {methods}")

    return "\n".join(lines) + "\n"


def get_group_id(links: Iterable[str]) -> Optional[str]:
    """Group ID from the first link that looks like a Wolt group order"""
    for link in links:
        match = GROUP_LINK_RE.search(link)
        if match:
            return match.group("id")
    return None


def parse_order_id(text: str) -> Optional[str]:
    match = ORDER_ID_IN_MESSAGE_RE.search(text or "")
    return match.group("id") if match else None
