from datetime import datetime, tzinfo
from typing import Optional


def format_amount(amount: float) -> str:
    """Format money with two decimals"""
    return f"{amount:.2f}"


def format_clock(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    return moment.astimezone(tz).strftime("%H:%M")


def format_moment(moment: datetime, tz: tzinfo, now: datetime) -> str:
    """HH:MM when `moment` is today in `tz`, otherwise the full date"""
    local = moment.astimezone(tz)
    if local.date() == now.astimezone(tz).date():
        return local.strftime("%H:%M")
    return local.strftime("%Y-%m-%d %H:%M")
