import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def _local_zone(tz_name: str = ""):
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, using server local time")
        return None


def parse_datetime(value, tz_name: str = "") -> Optional[datetime]:
    """
    Parse a backend date into a naive datetime in local time.

    Accepts ``datetime``/``date`` objects and ISO-8601 strings such as
    ``2024-01-05`` or ``2024-01-05T10:30:00.000Z``. Timestamps carrying an
    offset are converted to ``tz_name`` (or the server zone) before the
    offset is dropped. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(_local_zone(tz_name)).replace(tzinfo=None)
    return parsed


def month_key(value, tz_name: str = "") -> Optional[str]:
    """Return the ``YYYY-MM`` bucket for a date, or None if it cannot be parsed."""
    parsed = parse_datetime(value, tz_name)
    if parsed is None:
        return None
    return f"{parsed.year:04d}-{parsed.month:02d}"


def iso_day(value) -> str:
    parsed = parse_datetime(value)
    return parsed.strftime("%Y-%m-%d") if parsed else ""


def display_date(value) -> str:
    parsed = parse_datetime(value)
    return parsed.strftime("%d/%m/%Y") if parsed else ""
