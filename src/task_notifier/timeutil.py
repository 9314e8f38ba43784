"""Time zone resolution and date normalization."""

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from task_notifier.models import DateValue

logger = logging.getLogger(__name__)

# Fixed offset so the fallback does not depend on the host's tz database
DEFAULT_TIME_ZONE: tzinfo = timezone(timedelta(hours=9), "JST")


def resolve_time_zone(name: str | None) -> tzinfo:
    """Resolve the table's configured time zone.

    Falls back to DEFAULT_TIME_ZONE (UTC+09:00) when the name is empty or
    unknown, and logs which name was rejected.

    Args:
        name: IANA zone name, e.g. "Asia/Tokyo"

    Returns:
        tzinfo for the table
    """
    if not name or not name.strip():
        logger.warning("[TimeZone] No time zone configured, using UTC+09:00")
        return DEFAULT_TIME_ZONE
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[TimeZone] Unknown time zone '{name}', using UTC+09:00")
        return DEFAULT_TIME_ZONE


def parse_date_value(value: object) -> DateValue | None:
    """Parse a stored or imported date value.

    Accepts date/datetime objects (as produced by the YAML loader) and
    strings in YYYY-MM-DD or YYYY/MM/DD form, optionally with a time part.
    Empty values give None.

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Not a date: {value!r}")
    text = value.strip()
    if not text:
        return None
    text = text.replace("/", "-")
    if len(text) <= 10:
        return date.fromisoformat(_zero_pad_date(text))
    return datetime.fromisoformat(text)


def _zero_pad_date(text: str) -> str:
    """Turn 2026-1-5 into 2026-01-05."""
    parts = text.split("-")
    if len(parts) != 3:
        raise ValueError(f"Not a date: {text!r}")
    year, month, day = parts
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def to_local_date(value: DateValue, tz: tzinfo) -> date:
    """Calendar date of a stored date value in the table's zone.

    Plain dates and naive datetimes are table-zone wall time already; aware
    datetimes are converted first.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def midnight(value: DateValue, tz: tzinfo) -> datetime:
    """Normalize a date value to midnight in the table's zone."""
    return datetime.combine(to_local_date(value, tz), time.min, tzinfo=tz)


def today_midnight(tz: tzinfo, now: datetime | None = None) -> datetime:
    """Midnight of the current day in the table's zone."""
    current = now if now is not None else datetime.now(tz)
    if current.tzinfo is None:
        current = current.replace(tzinfo=tz)
    return midnight(current, tz)


def format_date(value: DateValue, tz: tzinfo) -> str:
    """Format a date as YYYY/MM/DD in the table's zone."""
    return to_local_date(value, tz).strftime("%Y/%m/%d")


def format_timestamp(moment: datetime, tz: tzinfo) -> str:
    """Format an audit timestamp as YYYY/MM/DD HH:MM:SS in the table's zone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return moment.astimezone(tz).strftime("%Y/%m/%d %H:%M:%S")
