from types import SimpleNamespace

from services.availability import (
    blocked_interval, blocked_by_date, compute_availability, find_overlap, intervals_overlap,
)
from services.settings_store import WorkSettings

from conftest import future_day


def _booking(date, time, end=None, type_="paid", status="confirmed", id_=1):
    return SimpleNamespace(id=id_, date=date, time=time, end_time=end, type=type_, status=status)


def test_paid_hour_with_one_hour_buffer():
    assert blocked_interval("10:00 AM", "11:00 AM", "paid", 60) == {"from": 10, "to": 12}


def test_missing_end_uses_default_duration():
    assert blocked_interval("10:00 AM", None, "free", 60) == {"from": 10, "to": 11.5}
    assert blocked_interval("10:00 AM", None, "paid", 0) == {"from": 10, "to": 11}


def test_end_before_start_falls_back_to_default_duration():
    assert blocked_interval("3:00 PM", "2:00 PM", "paid", 30) == {"from": 15, "to": 16.5}


def test_unparseable_start_blocks_nothing():
    assert blocked_interval("whenever", None, "paid", 60) is None


def test_compute_availability_groups_by_date_and_echoes_settings():
    settings = WorkSettings(work_days=(1, 2, 3), work_start=9, work_end=17, buffer_minutes=60)
    bookings = [
        _booking("2026-03-02", "10:00 AM", "11:00 AM"),
        _booking("2026-03-02", "2:00 PM", None, type_="free", id_=2),
        _booking("2026-03-03", "9:00 AM", "10:00 AM", id_=3),
        _booking("2026-03-03", "1:00 PM", "2:00 PM", status="cancelled", id_=4),
        _booking("2026-03-04", "at some point", None, id_=5),
    ]

    result = compute_availability(bookings, settings)

    assert result["unavailable"] == {
        "2026-03-02": [{"from": 10, "to": 12}, {"from": 14, "to": 15.5}],
        "2026-03-03": [{"from": 9, "to": 11}],
    }
    assert result["workDays"] == [1, 2, 3]
    assert result["workStart"] == 9
    assert result["workEnd"] == 17
    assert result["bufferMinutes"] == 60


def test_overlap_is_symmetric_and_half_open():
    a = {"from": 10, "to": 12}
    assert intervals_overlap(a, {"from": 11, "to": 13})
    assert intervals_overlap({"from": 11, "to": 13}, a)
    assert not intervals_overlap(a, {"from": 12, "to": 13})
    # candidate fully containing an existing interval still clashes
    assert find_overlap({"from": 8, "to": 14}, [a]) == a


def test_availability_endpoint_is_public(client, user):
    from services import booking_ledger

    day = future_day()
    booking_ledger.create_booking(day, "10:00 AM", "11:00 AM", "paid", "50", user.email)

    resp = client.get("/api/bookings/availability")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["unavailable"][day] == [{"from": 10, "to": 12}]
    assert body["workDays"] == [1, 2, 3, 4, 5]


def test_blocked_by_date_skips_cancelled():
    rows = [_booking("2026-03-02", "10:00 AM", status="cancelled")]
    assert blocked_by_date(rows, 60) == {}
