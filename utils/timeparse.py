import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

_TWELVE_HOUR = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)
_TWENTY_FOUR_HOUR = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_clock(value) -> Optional[Tuple[int, int]]:
    """
    "10:00 AM" -> (10, 0), "12:30 AM" -> (0, 30), "2:15 PM" -> (14, 15), "14:15" -> (14, 15).
    Returns None when the string isn't a recognisable clock time.
    """
    if not isinstance(value, str):
        return None

    m = _TWELVE_HOUR.match(value)
    if m:
        hour, minute, meridiem = int(m.group(1)), int(m.group(2)), m.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            return None
        if meridiem == "PM" and hour != 12:
            hour += 12
        if meridiem == "AM" and hour == 12:
            hour = 0
        return hour, minute

    m = _TWENTY_FOUR_HOUR.match(value)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            return None
        return hour, minute

    return None


def parse_hour(value) -> Optional[float]:
    clock = parse_clock(value)
    if clock is None:
        return None
    hour, minute = clock
    return hour + minute / 60


def parse_date(value) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def combine(day: str, time_str: str) -> Optional[datetime]:
    d = parse_date(day)
    clock = parse_clock(time_str)
    if d is None or clock is None:
        return None
    hour, minute = clock
    return datetime(d.year, d.month, d.day) + timedelta(hours=hour, minutes=minute)
