"""Schedule comparison helpers (weekday overlap and time-of-day windows)."""

from typing import Iterable

MINUTES_PER_DAY = 24 * 60


def parse_time_minutes(value: str) -> int:
    """
    Convert a wall-clock time string to minutes since midnight.

    Accepts 12-hour times with an AM/PM suffix ("8:00 AM", "12:30 pm") and
    24-hour times without one ("17:45"). 12 AM is midnight and 12 PM is noon.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid time: {value!r}")

    parts = value.strip().upper().split()
    if len(parts) > 2:
        raise ValueError(f"Invalid time: {value!r}")

    clock = parts[0]
    period = parts[1] if len(parts) == 2 else None

    try:
        hours_str, minutes_str = clock.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except ValueError:
        raise ValueError(f"Invalid time: {value!r}") from None

    if not 0 <= minutes < 60:
        raise ValueError(f"Invalid time: {value!r}")

    if period is None:
        if not 0 <= hours < 24:
            raise ValueError(f"Invalid time: {value!r}")
        return hours * 60 + minutes

    if period not in ("AM", "PM") or not 1 <= hours <= 12:
        raise ValueError(f"Invalid time: {value!r}")

    if period == "AM" and hours == 12:
        hours = 0
    elif period == "PM" and hours != 12:
        hours += 12
    return hours * 60 + minutes


def time_difference_minutes(time1: str, time2: str) -> int:
    """Absolute difference between two times of day, in minutes."""
    return abs(parse_time_minutes(time1) - parse_time_minutes(time2))


def is_time_match(time1: str, time2: str, window: int = 60) -> bool:
    """True when the two times are at most ``window`` minutes apart."""
    return time_difference_minutes(time1, time2) <= window


def normalize_days(days: Iterable[str]) -> frozenset:
    """Lower-cased, stripped weekday tags."""
    return frozenset(str(day).strip().lower() for day in days if str(day).strip())


def is_day_match(days1: Iterable[str], days2: Iterable[str]) -> bool:
    """True when the two day sets share at least one day."""
    return bool(normalize_days(days1) & normalize_days(days2))
