from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_local(tz: ZoneInfo, now_utc: datetime | None) -> datetime:
    current = now_utc or utc_now()
    if current.tzinfo is None:
        raise ValueError("now_utc must be timezone-aware")
    return current.astimezone(tz)


def local_day_key(tz: ZoneInfo, now_utc: datetime | None = None) -> str:
    """Return the YYYY-MM-DD key of the current day in ``tz``."""
    return _to_local(tz, now_utc).date().isoformat()


def midnight_utc_for_local_day(tz: ZoneInfo, day_value: date) -> datetime:
    midnight_local = datetime.combine(day_value, time.min, tzinfo=tz)
    return midnight_local.astimezone(timezone.utc)


def next_rollover_utc(tz: ZoneInfo, now_utc: datetime | None = None) -> datetime:
    # Built from the calendar date, not now + 24h, so DST days stay correct.
    local_day = _to_local(tz, now_utc).date()
    return midnight_utc_for_local_day(tz, local_day + timedelta(days=1))


def seconds_until_rollover(tz: ZoneInfo, now_utc: datetime | None = None) -> int:
    current = now_utc or utc_now()
    remaining = next_rollover_utc(tz, current) - current.astimezone(timezone.utc)
    return max(0, round(remaining.total_seconds()))


def is_rollover_minute(tz: ZoneInfo, now_utc: datetime | None = None) -> bool:
    now_local = _to_local(tz, now_utc)
    return now_local.hour == 0 and now_local.minute == 0
