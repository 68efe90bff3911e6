"""
ETA rules for delivery tasks.

Pure functions, no storage access:
- parse the ETA form payload ({"date": "DD/MM/YYYY", "time": "HH:MM"})
- validate an ETA against the current time
- format an ETA for the form payload and for customer messages
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Optional

from common.errors import InvalidEtaError

# Latest ETA a manager may pick, relative to now
MAX_ETA_AHEAD = timedelta(days=30)

# Form default when the task has no ETA yet
DEFAULT_ETA_OFFSET = timedelta(hours=2)

# Server-side slack for form values truncated to the minute
PAST_TOLERANCE = timedelta(minutes=1)

FORM_DATE_FORMAT = "%d/%m/%Y"
FORM_TIME_FORMAT = "%H:%M"
MESSAGE_FORMAT = "%B %d, %Y at %I:%M %p"

PAST_ETA_MESSAGE = "ETA cannot be in the past"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_eta_form(date_str: str, time_str: str, tz: tzinfo = timezone.utc) -> datetime:
    """
    Parse the ETA form pair into an aware datetime.

    Args:
        date_str: Date as DD/MM/YYYY
        time_str: Time as HH:MM (24h)
        tz: Timezone the manager entered the values in

    Returns:
        Timezone-aware datetime

    Raises:
        InvalidEtaError: If either part is malformed
    """
    try:
        naive = datetime.strptime(
            f"{date_str.strip()} {time_str.strip()}",
            f"{FORM_DATE_FORMAT} {FORM_TIME_FORMAT}",
        )
    except (AttributeError, ValueError):
        raise InvalidEtaError(
            f"Invalid ETA '{date_str} {time_str}': expected date DD/MM/YYYY and time HH:MM"
        )
    return naive.replace(tzinfo=tz)


def validate_eta(
    eta: datetime,
    now: Optional[datetime] = None,
    tolerance: timedelta = timedelta(0),
) -> datetime:
    """
    Check an ETA is usable and return it normalized to UTC.

    Raises:
        InvalidEtaError: If naive, in the past, or more than 30 days ahead
    """
    if eta.tzinfo is None:
        raise InvalidEtaError("ETA must include timezone info")
    now = now or _utcnow()
    if eta < now - tolerance:
        raise InvalidEtaError(PAST_ETA_MESSAGE)
    if eta > now + MAX_ETA_AHEAD:
        raise InvalidEtaError(
            f"ETA cannot be more than {MAX_ETA_AHEAD.days} days ahead"
        )
    return eta.astimezone(timezone.utc)


def format_eta_form(eta: datetime, tz: tzinfo = timezone.utc) -> Dict[str, str]:
    """Format an ETA as the form payload, in the manager's timezone."""
    local = eta.astimezone(tz)
    return {
        "date": local.strftime(FORM_DATE_FORMAT),
        "time": local.strftime(FORM_TIME_FORMAT),
    }


def format_eta_message(eta: datetime, tz: tzinfo = timezone.utc) -> str:
    """Human-readable ETA, e.g. 'March 05, 2026 at 02:30 PM'."""
    return eta.astimezone(tz).strftime(MESSAGE_FORMAT)


def default_eta(current: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """Initial form value: the task's ETA if set, else two hours from now."""
    if current is not None:
        return current
    return (now or _utcnow()) + DEFAULT_ETA_OFFSET


def latest_eta(now: Optional[datetime] = None) -> datetime:
    """Upper bound offered by the date picker."""
    return (now or _utcnow()) + MAX_ETA_AHEAD
