"""
Blocked-interval calculation.

Each confirmed booking blocks [start, end + buffer) on its date, in fractional
24-hour values (9.5 == 9:30). Intervals of one date are neither merged nor
sorted; anything checking a candidate slot must test it against every interval.
"""
import logging
from typing import Iterable, Optional

from models.booking import Booking, TYPE_FREE, STATUS_CANCELLED
from services.settings_store import WorkSettings, get_settings
from utils.timeparse import parse_hour

log = logging.getLogger(__name__)

FREE_DURATION_HOURS = 0.5
PAID_DURATION_HOURS = 1.0


def default_duration(booking_type: str) -> float:
    return FREE_DURATION_HOURS if booking_type == TYPE_FREE else PAID_DURATION_HOURS


def blocked_interval(start_time: str, end_time: Optional[str], booking_type: str, buffer_minutes: int) -> Optional[dict]:
    """{"from": start, "to": end + buffer}, or None when the start time can't be parsed."""
    start = parse_hour(start_time)
    if start is None:
        return None

    end = parse_hour(end_time) if end_time else None
    if end is None or end <= start:
        end = start + default_duration(booking_type)

    return {"from": round(start, 4), "to": round(end + buffer_minutes / 60, 4)}


def intervals_overlap(a: dict, b: dict) -> bool:
    return a["from"] < b["to"] and b["from"] < a["to"]


def find_overlap(candidate: dict, intervals: Iterable[dict]) -> Optional[dict]:
    for interval in intervals:
        if intervals_overlap(candidate, interval):
            return interval
    return None


def blocked_by_date(bookings: Iterable, buffer_minutes: int) -> dict:
    unavailable = {}
    for b in bookings:
        if getattr(b, "status", None) == STATUS_CANCELLED:
            continue
        interval = blocked_interval(b.time, b.end_time, b.type, buffer_minutes)
        if interval is None:
            log.warning("Skipping booking %s with unparseable time %r", getattr(b, "id", None), b.time)
            continue
        unavailable.setdefault(b.date, []).append(interval)
    return unavailable


def compute_availability(bookings: Iterable, settings: WorkSettings) -> dict:
    payload = {"unavailable": blocked_by_date(bookings, settings.buffer_minutes)}
    payload.update(settings.to_dict())
    return payload


def current_availability() -> dict:
    rows = Booking.query.filter(Booking.status != STATUS_CANCELLED).all()
    return compute_availability(rows, get_settings())
