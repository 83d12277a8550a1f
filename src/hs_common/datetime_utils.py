"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def hours_ago(hours: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) - timedelta(hours=hours)


def start_of_month(now: datetime | None = None) -> datetime:
    """Midnight UTC on the first day of the current month."""
    current = now or utc_now()
    return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
