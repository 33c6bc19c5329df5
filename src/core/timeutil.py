"""Time helpers for metering windows."""
from __future__ import annotations

from datetime import datetime, timezone

from dateutil import tz
from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_start(now: datetime, zone_name: str = "UTC") -> datetime:
    """Return the first instant of ``now``'s calendar month in ``zone_name``, in UTC."""

    zone = tz.gettz(zone_name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {zone_name}")
    local = as_utc(now).astimezone(zone)
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(timezone.utc)


def next_month_start(now: datetime, zone_name: str = "UTC") -> datetime:
    zone = tz.gettz(zone_name)
    start = month_start(now, zone_name).astimezone(zone)
    return (start + relativedelta(months=1)).astimezone(timezone.utc)
