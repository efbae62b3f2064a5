"""
otpdesk/utils/time_utils.py

Purpose: Time helpers

- One canonical timezone (settings.TIMEZONE) for order stamps and statistics
- Naive-UTC timestamps for stored datetimes
- Countdown formatting
"""

from datetime import datetime, date, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from otpdesk.core.config import settings


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime (the form MongoDB hands back).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_local(tz_name: Optional[str] = None) -> datetime:
    """
    Current time in the canonical timezone.
    """
    return datetime.now(ZoneInfo(tz_name or settings.TIMEZONE))


def today_local(tz_name: Optional[str] = None) -> date:
    return now_local(tz_name).date()


def order_timestamp(moment: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Splits a moment into the (date, time) strings stored on an order,
    expressed in the canonical timezone.
    """
    local = (moment or now_local()).astimezone(ZoneInfo(settings.TIMEZONE))
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M:%S")


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parses an ISO timestamp from the API into a naive UTC datetime.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_countdown(remaining: timedelta) -> str:
    """
    Formats a remaining duration as MM:SS, or EXPIRED at zero.
    """
    seconds = max(0, int(remaining.total_seconds()))
    if seconds == 0:
        return "EXPIRED"
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"
