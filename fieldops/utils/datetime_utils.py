"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- The working day is the calendar date in settings.TZ (the company's local zone).
"""
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from fieldops.core.config import settings

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for check_in_at, check_out_at, created_at."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def get_work_date(utc_now: Optional[datetime] = None) -> date:
    """Return the working day (date in settings.TZ) for the given UTC time (default now)."""
    now = ensure_utc(utc_now) if utc_now else now_utc()
    return now.astimezone(ZoneInfo(settings.TZ)).date()
