"""Local calendar-day helpers."""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from eventcatalog.configs.settings import get_settings


def resolve_timezone(tz_name: str | None = None) -> ZoneInfo:
    """Return the named zone, or the configured default when none is given."""
    return ZoneInfo(tz_name or get_settings().LOCAL_TIMEZONE)


def localize(dt: datetime, tz_name: str | None = None) -> datetime:
    """
    Attach the local zone to naive datetimes; convert aware ones.

    Scrapers usually emit wall-clock times for the venue, so a naive value
    is read as local time rather than UTC.
    """
    tz = resolve_timezone(tz_name)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def local_day_bounds(
    dt: datetime, tz_name: str | None = None
) -> tuple[datetime, datetime]:
    """
    Return the [start, end) UTC bounds of the local calendar day containing dt.

    Example:
        >>> start, end = local_day_bounds(datetime(2025, 12, 14, 13, 0))
        >>> start.isoformat()
        '2025-12-14T06:00:00+00:00'
    """
    tz = resolve_timezone(tz_name)
    local_date = localize(dt, tz_name).date()
    start = datetime.combine(local_date, time.min, tzinfo=tz)
    end = datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date_str(dt: datetime, tz_name: str | None = None) -> str:
    """YYYY-MM-DD of dt in the local zone."""
    return localize(dt, tz_name).strftime("%Y-%m-%d")


def format_local_time(dt: datetime | None, tz_name: str | None = None) -> str:
    """Short wall-clock label, e.g. '7:30 PM'. Empty string when unknown."""
    if dt is None:
        return ""
    return localize(dt, tz_name).strftime("%I:%M %p").lstrip("0")


def format_local_date(dt: datetime, tz_name: str | None = None) -> str:
    """Long date label used in prompts, e.g. 'Sunday, December 14, 2025'."""
    local = localize(dt, tz_name)
    return f"{local.strftime('%A, %B')} {local.day}, {local.year}"
