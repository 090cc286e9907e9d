"""Locale-independent date formatting for reports and messages."""

from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from propertysnap.core.config import get_settings

MONTHS_SHORT = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MONTHS_LONG = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def report_zone(name: Optional[str] = None) -> tzinfo:
    name = name or get_settings().report_timezone
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_local(value: datetime, zone: Optional[tzinfo] = None) -> datetime:
    """Aware datetimes move to ``zone``; naive ones are wall-clock already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(zone or report_zone())


def parse_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_timestamp(value: Union[str, datetime, None], zone: Optional[tzinfo] = None) -> str:
    """``DD Mon YYYY, HH:MM``. Empty string when there is nothing to show."""
    parsed = parse_iso(value)
    if parsed is None:
        return ""
    local = to_local(parsed, zone)
    return f"{local.day:02d} {MONTHS_SHORT[local.month - 1]} {local.year}, {local.hour:02d}:{local.minute:02d}"


def format_long_date(value: Union[date, datetime, None], zone: Optional[tzinfo] = None) -> str:
    """``15 March 2024``."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = to_local(value, zone)
    return f"{value.day} {MONTHS_LONG[value.month - 1]} {value.year}"


def iso_day(value: datetime, zone: Optional[tzinfo] = None) -> str:
    """``YYYY-MM-DD`` in the report zone."""
    return to_local(value, zone).strftime("%Y-%m-%d")
