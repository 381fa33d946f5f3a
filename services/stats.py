from datetime import date as date_cls
from decimal import Decimal

from sqlalchemy import func

from models import db
from models.booking import Booking, TYPE_FREE, TYPE_PAID, STATUS_CANCELLED
from models.user import User
from utils.money import parse_amount
from utils.timeparse import parse_hour

RECENT_LIMIT = 5


def _with_user(bookings):
    emails = {b.email for b in bookings}
    users = {u.email: u for u in User.query.filter(User.email.in_(emails)).all()} if emails else {}
    out = []
    for b in bookings:
        row = b.to_dict()
        u = users.get(b.email)
        row["userName"] = u.name if u else None
        row["userPicture"] = u.picture if u else None
        out.append(row)
    return out


def _slot_order(b: Booking):
    hour = parse_hour(b.time)
    return b.date, hour if hour is not None else -1.0


def total_revenue() -> Decimal:
    # cancelled paid bookings still count; refunds live in the wallet ledger
    total = Decimal("0")
    for (cost,) in db.session.query(Booking.cost).filter(Booking.type == TYPE_PAID).all():
        amount = parse_amount(cost)
        if amount is not None:
            total += amount
    return total


def booking_stats(today=None) -> dict:
    today = (today or date_cls.today()).isoformat()

    active = Booking.query.filter(Booking.status != STATUS_CANCELLED)
    upcoming = sorted(active.filter(Booking.date >= today).all(), key=_slot_order)[:RECENT_LIMIT]
    # latest created, whatever the slot date or status
    recent = (
        Booking.query
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    cancelled = (
        Booking.query
        .filter(Booking.status == STATUS_CANCELLED)
        .order_by(Booking.cancelled_at.desc(), Booking.id.desc())
        .all()
    )

    by_type = (
        db.session.query(Booking.type, func.count(Booking.id))
        .group_by(Booking.type)
        .order_by(Booking.type)
        .all()
    )

    revenue = total_revenue()
    return {
        "totalBookings": Booking.query.count(),
        "totalPaidBookings": Booking.query.filter_by(type=TYPE_PAID).count(),
        "totalFreeBookings": Booking.query.filter_by(type=TYPE_FREE).count(),
        "totalRevenue": float(revenue),
        "totalUsers": User.query.count(),
        "bookingsByType": [{"type": t, "count": c} for t, c in by_type],
        "upcomingBookings": _with_user(upcoming),
        "recentBookings": _with_user(recent),
        "cancelledBookings": _with_user(cancelled),
    }
