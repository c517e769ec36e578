"""Send-time calculation for deferred messages.

Maps a symbolic timing preference to a concrete timestamp in the
configured local timezone:

- immediate: now
- morning:   next 09:00
- afternoon: next 14:00
- optimal:   next 10:30, moved off Saturday/Sunday to Monday

The time-of-day floor is applied first (today if still ahead, otherwise
tomorrow); the weekend rule is applied to the result of that.
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import Settings, get_settings
from core.constants import SendTiming

SEND_WINDOWS: dict[SendTiming, time] = {
    SendTiming.MORNING: time(9, 0),
    SendTiming.AFTERNOON: time(14, 0),
    SendTiming.OPTIMAL: time(10, 30),
}

WEEKDAYS_ONLY = {SendTiming.OPTIMAL}

SATURDAY = 5


def local_timezone(settings: Optional[Settings] = None) -> tzinfo:
    name = (settings or get_settings()).SCHEDULING_TIMEZONE
    # UTC needs no tz database.
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(name)


def next_occurrence(now: datetime, at: time) -> datetime:
    """Next wall-clock occurrence of ``at`` strictly after ``now``."""
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def skip_weekend(moment: datetime) -> datetime:
    while moment.weekday() >= SATURDAY:
        moment += timedelta(days=1)
    return moment


def schedule_for(
    timing: SendTiming | str,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """Concrete send time for a timing preference.

    Args:
        timing: One of immediate, optimal, morning, afternoon
        now: Reference time (defaults to the current time); naive values
            are interpreted in ``tz``
        tz: Local timezone (defaults to SCHEDULING_TIMEZONE)

    Returns:
        Timezone-aware datetime; ``>= now`` for immediate, ``> now`` otherwise

    Raises:
        ValueError: If ``timing`` is not a known preference
    """
    timing = SendTiming(timing)
    tz = tz or local_timezone()
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    if timing == SendTiming.IMMEDIATE:
        return now

    result = next_occurrence(now, SEND_WINDOWS[timing])
    if timing in WEEKDAYS_ONLY:
        result = skip_weekend(result)
    return result
