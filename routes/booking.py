from flask import Blueprint, request, jsonify, g

from models.user import ROLE_ADMIN
from security.rbac import require_roles
from services import booking_ledger, payment_orchestrator
from services.availability import current_availability
from utils.audit import log_event
from utils.auth_context import login_required

booking_bp = Blueprint("booking", __name__, url_prefix="/api/bookings")


# ---------- PUBLIC: availability ----------
@booking_bp.get("/availability")
def availability():
    return jsonify(current_availability()), 200


# ---------- USER: create / list ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    booking_type = data.get("type")

    if booking_type == "free":
        outcome = payment_orchestrator.book_and_pay(g.user, data)
        return jsonify(outcome.to_dict()), 201

    # paid bookings start unpaid; settlement happens through /api/payment
    booking = booking_ledger.create_booking(
        data.get("date"),
        data.get("time"),
        data.get("endTime"),
        booking_type,
        data.get("cost"),
        g.user.email,
    )
    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"type": booking.type, "cost": booking.cost})
    return jsonify(message="Booking confirmed", booking=booking.to_dict()), 201


@booking_bp.get("")
@login_required
def list_bookings():
    rows = booking_ledger.list_for(g.user)
    return jsonify(data={"bookings": [b.to_dict() for b in rows]}), 200


# ---------- ADMIN: settle by hand ----------
@booking_bp.patch("/<int:booking_id>/mark-paid")
@require_roles(ROLE_ADMIN)
def mark_paid(booking_id: int):
    booking = booking_ledger.mark_paid(booking_id)
    log_event("BOOKING_MARK_PAID", user_id=g.user.id, entity="booking", entity_id=booking.id)

    body = {"message": "Payment confirmed", "id": booking.id}
    warning = booking_ledger.link_calendar(booking)
    if warning:
        body["warning"] = warning
    return jsonify(body), 200


# ---------- OWNER/ADMIN: cancel ----------
@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    result = booking_ledger.cancel(booking_id, g.user)
    booking = result["booking"]

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"refunded": result["refunded"]})
    if result["refunded"]:
        log_event("BOOKING_REFUND", user_id=g.user.id, entity="booking", entity_id=booking.id,
                  metadata={"amount": result["refund_amount"], "owner": booking.email})

    return jsonify(
        message="Booking cancelled",
        booking=booking.to_dict(),
        refunded=result["refunded"],
        refund_amount=result["refund_amount"],
    ), 200


# ---------- comments ----------
@booking_bp.get("/<int:booking_id>/comments")
@login_required
def list_comments(booking_id: int):
    rows = booking_ledger.list_comments(booking_id, g.user)
    return jsonify(comments=[c.to_dict() for c in rows]), 200


@booking_bp.post("/<int:booking_id>/comments")
@login_required
def add_comment(booking_id: int):
    data = request.get_json(silent=True) or {}
    row = booking_ledger.add_comment(booking_id, g.user, data.get("comment"))
    log_event("COMMENT_CREATE", user_id=g.user.id, entity="booking_comment", entity_id=row.id,
              metadata={"booking_id": booking_id})
    return jsonify(message="Comment added", comment=row.to_dict()), 201


@booking_bp.patch("/<int:booking_id>/comments/<int:comment_id>")
@login_required
def edit_comment(booking_id: int, comment_id: int):
    data = request.get_json(silent=True) or {}
    row = booking_ledger.edit_comment(booking_id, comment_id, g.user, data.get("comment"))
    log_event("COMMENT_UPDATE", user_id=g.user.id, entity="booking_comment", entity_id=row.id,
              metadata={"booking_id": booking_id})
    return jsonify(message="Comment updated", comment=row.to_dict()), 200
