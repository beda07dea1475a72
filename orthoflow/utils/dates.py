"""Date helpers for scheduling in the clinic timezone."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from orthoflow.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clinic_today(tz_name: str | None = None) -> date:
    """Current date in the clinic timezone. Evaluated on every call, never cached."""
    return datetime.now(ZoneInfo(tz_name or settings.CLINIC_TIMEZONE)).date()


def clinic_date(value: datetime, tz_name: str | None = None) -> date:
    """Calendar date of ``value`` in the clinic timezone (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name or settings.CLINIC_TIMEZONE)).date()


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def days_until(target: date, today: date) -> int:
    """Whole days from ``today`` to ``target`` (negative when overdue)."""
    return (target - today).days
