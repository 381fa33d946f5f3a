"""
Booking ledger: owns booking rows and their state transitions.

    created (unpaid, or paid for free sessions) -> paid -> cancelled
    created (unpaid) -> cancelled

`meet_link` is an orthogonal attribute set once the calendar answers; it never
gates a transition. Nothing leaves `cancelled`.
"""
import logging
from contextlib import ExitStack
from datetime import datetime, timedelta
from typing import Callable, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import (
    Booking, BookingComment, BOOKING_TYPES, TYPE_FREE, TYPE_PAID,
    STATUS_CONFIRMED, STATUS_CANCELLED, make_slot_key,
)
from models.user import User
from services import wallet_ledger
from services.availability import blocked_interval, blocked_by_date, find_overlap
from services.engine import get_engine
from services.errors import (
    ValidationError, FreeSessionUsed, SlotTaken, AlreadyPaid, AlreadyCancelled,
    NotFound, Forbidden, TooLate, DuplicateComment, PaymentReferenceUsed, Conflict,
)
from services.settings_store import get_settings
from utils.money import parse_amount, has_at_most_two_places
from utils.timeparse import parse_clock, parse_date, parse_hour, combine

log = logging.getLogger(__name__)

CALENDAR_WARNING = "Calendar invitation will be sent separately"
MAX_COMMENT_LENGTH = 2000


def _is_owner_or_admin(booking: Booking, user: User) -> bool:
    return user.is_admin or booking.email == user.email


def _get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    return booking


def normalize_booking_input(date, start, end, booking_type, cost):
    if not date or not start or not booking_type:
        raise ValidationError("Please fill in all required fields")
    if booking_type not in BOOKING_TYPES:
        raise ValidationError("Invalid booking type")
    if parse_date(date) is None:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")
    if parse_clock(start) is None:
        raise ValidationError("Invalid start time. Use e.g. 10:00 AM")
    if end and parse_clock(end) is None:
        raise ValidationError("Invalid end time. Use e.g. 11:00 AM")

    if booking_type == TYPE_FREE:
        return date.strip(), start.strip(), (end or None), booking_type, "0"

    amount = parse_amount(cost)
    if amount is None or amount <= 0 or not has_at_most_two_places(amount):
        raise ValidationError("Paid bookings need a positive cost")
    return date.strip(), start.strip(), (end or None), booking_type, format(amount, "f")


def has_used_free_session(email: str) -> bool:
    # any status: cancelling a free session doesn't give the right back
    return Booking.query.filter_by(email=email, type=TYPE_FREE).first() is not None


def _ensure_slot_free(date: str, start: str, end: Optional[str], booking_type: str):
    settings = get_settings()
    candidate = blocked_interval(start, end, booking_type, settings.buffer_minutes)
    existing = Booking.query.filter(Booking.date == date, Booking.status != STATUS_CANCELLED).all()
    clash = find_overlap(candidate, blocked_by_date(existing, settings.buffer_minutes).get(date, []))
    if clash is not None:
        raise SlotTaken(details={"blocked": clash})


def validate_new_booking(date, start, end, booking_type, cost, owner_email: str):
    """All checks create_booking makes before inserting, without inserting."""
    normalized = normalize_booking_input(date, start, end, booking_type, cost)
    if normalized[3] == TYPE_FREE and has_used_free_session(owner_email):
        raise FreeSessionUsed()
    _ensure_slot_free(normalized[0], normalized[1], normalized[2], normalized[3])
    return normalized


def create_booking(date, start, end, booking_type, cost, owner_email: str,
                   on_insert: Optional[Callable[[Booking], None]] = None) -> Booking:
    """
    Inserts a confirmed booking: paid=True for free sessions, unpaid otherwise.

    Check and insert run under a per-date lock; the unique slot key and the
    one-free-per-email index back that up across processes. `on_insert` runs
    after the row is flushed and before the commit, in the same transaction
    (the wallet debit for wallet-paid bookings); if it raises, nothing is kept.
    """
    date, start, end, booking_type, cost = normalize_booking_input(date, start, end, booking_type, cost)
    engine = get_engine()

    with ExitStack() as stack:
        if booking_type == TYPE_FREE:
            stack.enter_context(engine.slot_lock.hold(("free", owner_email)))
        stack.enter_context(engine.slot_lock.hold(("date", date)))

        if booking_type == TYPE_FREE and has_used_free_session(owner_email):
            raise FreeSessionUsed()
        _ensure_slot_free(date, start, end, booking_type)

        booking = Booking(
            date=date,
            time=start,
            end_time=end,
            type=booking_type,
            cost=cost,
            email=owner_email,
            paid=booking_type == TYPE_FREE,
            status=STATUS_CONFIRMED,
            slot_key=make_slot_key(date, start),
        )
        db.session.add(booking)
        try:
            db.session.flush()
            if on_insert is not None:
                on_insert(booking)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if booking_type == TYPE_FREE and has_used_free_session(owner_email):
                raise FreeSessionUsed()
            raise SlotTaken()
        except Exception:
            db.session.rollback()
            raise

    log.info("Booking %s created for %s on %s at %s (%s)", booking.id, owner_email, date, start, booking_type)
    return booking


def payment_reference_used(reference: str) -> bool:
    if not reference:
        return False
    if Booking.query.filter_by(payment_reference=reference).first() is not None:
        return True
    return wallet_ledger.reference_exists(reference)


def mark_paid(booking_id: int, reference: Optional[str] = None) -> Booking:
    booking = _get_booking(booking_id)
    if booking.paid:
        raise AlreadyPaid()
    if booking.is_cancelled:
        raise AlreadyCancelled()
    if reference and wallet_ledger.reference_exists(reference):
        raise PaymentReferenceUsed()

    values = {"paid": True}
    if reference:
        values["payment_reference"] = reference
    try:
        result = db.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.paid.is_(False), Booking.status == STATUS_CONFIRMED)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        settled = result.rowcount > 0
        if settled:
            db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise PaymentReferenceUsed()
    except Exception:
        db.session.rollback()
        raise

    if not settled:
        # lost to a concurrent settlement or cancel; report whichever won
        db.session.rollback()
        db.session.refresh(booking)
        if booking.is_cancelled:
            raise AlreadyCancelled()
        raise AlreadyPaid()
    return booking


def find_unpaid(owner_email: str, date, start) -> Optional[Booking]:
    """The owner's confirmed, still-unpaid booking at this slot, if any."""
    if not isinstance(date, str) or not isinstance(start, str) or not date or not start:
        return None
    return (
        Booking.query
        .filter_by(
            slot_key=make_slot_key(date.strip(), start),
            email=owner_email,
            type=TYPE_PAID,
            paid=False,
            status=STATUS_CONFIRMED,
        )
        .first()
    )


def get_unpaid_for(booking_id: int, requester: User) -> Booking:
    """A booking the requester owns that can still be settled."""
    booking = _get_booking(booking_id)
    if booking.email != requester.email:
        raise Forbidden("You can only pay for your own bookings")
    if booking.is_cancelled:
        raise AlreadyCancelled()
    if booking.paid:
        raise AlreadyPaid()
    return booking


def link_calendar(booking: Booking) -> Optional[str]:
    """Best-effort calendar event + meeting link. Returns a warning instead of raising."""
    try:
        event = get_engine().calendar.create_event(booking)
    except Exception as exc:
        log.warning("Failed to add booking %s to calendar: %s", booking.id, exc)
        return CALENDAR_WARNING

    if event is not None:
        booking.meet_link = event.meet_link
        booking.calendar_event_id = event.event_id
        db.session.commit()
    return None


def effective_end_at(booking: Booking) -> Optional[datetime]:
    return combine(booking.date, booking.end_time or booking.time)


def _refund_for(booking: Booking):
    """(amount, wallet) owed back to the owner if the booking were cancelled now."""
    if booking.type != TYPE_PAID or not booking.paid:
        return None, None
    amount = parse_amount(booking.cost)
    owner = User.query.filter_by(email=booking.email).first()
    if amount is None or amount <= 0 or owner is None:
        log.warning("Booking %s is paid but can't be refunded (cost=%r)", booking.id, booking.cost)
        return None, None
    return amount, wallet_ledger.get_or_create(owner.id)


def cancel(booking_id: int, requester: User, now: Optional[datetime] = None) -> dict:
    """
    Cancels a confirmed booking more than CANCEL_MIN_DAYS before it ends.

    A settled paid booking is refunded to the owner's wallet in the same
    database transaction as the status flip. The flip only matches a row that
    is still confirmed and whose `paid` flag is the one the refund was based on,
    so a repeated call can't refund twice and a settlement landing mid-cancel
    is refunded rather than lost.
    """
    booking = _get_booking(booking_id)
    if not _is_owner_or_admin(booking, requester):
        raise Forbidden("You can only cancel your own bookings")
    if booking.is_cancelled:
        raise AlreadyCancelled()

    ends_at = effective_end_at(booking)
    if ends_at is None:
        raise ValidationError("Booking has an invalid date or time")

    min_days = current_app.config.get("CANCEL_MIN_DAYS", 7)
    now = now or datetime.now()
    if ends_at - now <= timedelta(days=min_days):
        raise TooLate(f"Bookings can only be cancelled more than {min_days} days in advance")

    # `paid` only ever goes False -> True, so a second pass sees the final value
    for _ in range(2):
        paid_seen = booking.paid
        refund_amount, wallet = _refund_for(booking)
        try:
            result = db.session.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.status == STATUS_CONFIRMED,
                    Booking.paid.is_(paid_seen),
                )
                .values(status=STATUS_CANCELLED, cancelled_at=datetime.utcnow(), slot_key=None)
                .execution_options(synchronize_session="fetch")
            )
            flipped = result.rowcount > 0
            if flipped:
                if refund_amount is not None:
                    wallet_ledger.credit(
                        wallet.id,
                        refund_amount,
                        f"Refund for cancelled booking #{booking.id}",
                        performed_by=requester.id,
                        commit=False,
                    )
                db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if flipped:
            break
        db.session.rollback()
        db.session.refresh(booking)
        if booking.is_cancelled:
            raise AlreadyCancelled()
    else:
        raise Conflict("Booking changed while cancelling, please retry")

    if booking.calendar_event_id:
        try:
            get_engine().calendar.delete_event(booking.calendar_event_id)
        except Exception as exc:
            log.warning("Failed to delete calendar event for booking %s: %s", booking.id, exc)

    return {
        "refunded": refund_amount is not None,
        "refund_amount": str(refund_amount) if refund_amount is not None else None,
        "booking": booking,
    }


def _sort_key(booking: Booking):
    hour = parse_hour(booking.time)
    return booking.date, hour if hour is not None else -1.0


def list_for(user: User):
    """Admins see every booking, users their own; newest date and time first."""
    q = Booking.query
    if not user.is_admin:
        q = q.filter(Booking.email == user.email)
    return sorted(q.all(), key=_sort_key, reverse=True)


# ---------- comments ----------

def _visible_booking(booking_id: int, requester: User) -> Booking:
    booking = _get_booking(booking_id)
    if not _is_owner_or_admin(booking, requester):
        raise Forbidden("You can only access comments on your own bookings")
    return booking


def _clean_comment(text) -> str:
    text = (text or "").strip() if isinstance(text, str) else ""
    if not text:
        raise ValidationError("Comment is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")
    return text


def list_comments(booking_id: int, requester: User):
    _visible_booking(booking_id, requester)
    return (
        BookingComment.query
        .filter_by(booking_id=booking_id)
        .order_by(BookingComment.created_at.asc(), BookingComment.id.asc())
        .all()
    )


def add_comment(booking_id: int, requester: User, text) -> BookingComment:
    _visible_booking(booking_id, requester)
    text = _clean_comment(text)

    if BookingComment.query.filter_by(booking_id=booking_id, user_id=requester.id).first():
        raise DuplicateComment()

    row = BookingComment(booking_id=booking_id, user_id=requester.id, comment=text)
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateComment()
    return row


def edit_comment(booking_id: int, comment_id: int, requester: User, text) -> BookingComment:
    row = db.session.get(BookingComment, comment_id)
    if row is None or row.booking_id != booking_id:
        raise NotFound("Comment not found")
    if row.user_id != requester.id and not requester.is_admin:
        raise Forbidden("Only the author or an admin can edit this comment")

    row.comment = _clean_comment(text)
    row.updated_at = datetime.utcnow()
    db.session.commit()
    return row
