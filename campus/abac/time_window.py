"""Clock helpers and the time-based access check for policy rules."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from .models import TimeBasedAccess

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Current aware datetime in ``tz_name``, or in the server's local zone."""
    if tz_name:
        return datetime.now(ZoneInfo(tz_name))
    return datetime.now().astimezone()


def weekday_name(now: datetime) -> str:
    return WEEKDAYS[now.weekday()]


def time_attributes(now: datetime) -> Dict[str, Any]:
    return {
        "current_time": now.isoformat(),
        "current_hour": now.hour,
        "current_day": weekday_name(now),
    }


def as_aware(value: datetime) -> datetime:
    """MongoDB hands back naive UTC datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def within_validity(time_based_access: Optional[TimeBasedAccess], now: datetime) -> bool:
    if not time_based_access:
        return True
    if time_based_access.valid_from and now < as_aware(time_based_access.valid_from):
        return False
    if time_based_access.valid_until and now > as_aware(time_based_access.valid_until):
        return False
    return True


def evaluate_time_window(time_based_access: Optional[TimeBasedAccess], now: datetime) -> bool:
    """
    Validity interval, allowed weekdays and allowed hours must all pass.

    Day names are compared case-insensitively. Hour slots only look at the
    hour part of "HH:MM" and include both ends, so 09:00-17:00 admits
    every minute from 09:00 through 17:59.
    """
    if not time_based_access:
        return True

    if not within_validity(time_based_access, now):
        return False

    if time_based_access.allowed_days:
        today = weekday_name(now)
        if today not in {day.lower() for day in time_based_access.allowed_days}:
            return False

    if time_based_access.allowed_hours:
        hour = now.hour
        if not any(
            slot.start_hour <= hour <= slot.end_hour
            for slot in time_based_access.allowed_hours
        ):
            return False

    return True
