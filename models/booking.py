from datetime import datetime
from models.db import db

TYPE_FREE = "free"
TYPE_PAID = "paid"
BOOKING_TYPES = (TYPE_FREE, TYPE_PAID)

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"


def make_slot_key(date: str, time: str) -> str:
    return f"{date}|{time.strip().upper()}"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.String(10), nullable=False, index=True)  # YYYY-MM-DD
    time = db.Column(db.String(20), nullable=False)              # e.g. "10:00 AM"
    end_time = db.Column(db.String(20), nullable=True)

    type = db.Column(db.String(10), nullable=False)   # free, paid
    cost = db.Column(db.String(32), nullable=False, default="0")
    email = db.Column(db.String(255), nullable=False, index=True)

    paid = db.Column(db.Boolean, nullable=False, default=False)
    meet_link = db.Column(db.String(512), nullable=True)
    calendar_event_id = db.Column(db.String(255), nullable=True)

    # gateway transaction that settled it; one booking per gateway payment
    payment_reference = db.Column(db.String(255), nullable=True, unique=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_CONFIRMED)
    # status values: confirmed, cancelled

    # "<date>|<time>" while confirmed, NULL once cancelled so the slot is released
    slot_key = db.Column(db.String(40), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    comments = db.relationship("BookingComment", back_populates="booking", lazy="dynamic")

    __table_args__ = (
        # Hard business-rule: one confirmed booking per (date, start time)
        db.UniqueConstraint("slot_key", name="uq_booking_slot_key"),
        # One free session per email for life, whatever its status
        db.Index(
            "uq_booking_one_free_per_email",
            "email",
            unique=True,
            sqlite_where=db.text("type = 'free'"),
            postgresql_where=db.text("type = 'free'"),
        ),
        db.CheckConstraint("type IN ('free', 'paid')", name="ck_booking_type"),
        db.CheckConstraint("status IN ('confirmed', 'cancelled')", name="ck_booking_status"),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == STATUS_CANCELLED

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date,
            "time": self.time,
            "endTime": self.end_time,
            "type": self.type,
            "cost": self.cost,
            "email": self.email,
            "paid": bool(self.paid),
            "meet_link": self.meet_link,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "cancelledAt": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }


class BookingComment(db.Model):
    __tablename__ = "booking_comments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    comment = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="comments")
    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "user_id", name="uq_comment_booking_user"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "comment": self.comment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
