from flask import Blueprint, request, jsonify, g

from services import payment_orchestrator
from utils.auth_context import login_required

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment")


@payments_bp.post("/initiate")
@login_required
def initiate_payment():
    data = request.get_json(silent=True) or {}
    return jsonify(payment_orchestrator.initiate(g.user, data)), 200


@payments_bp.post("/verify")
@login_required
def verify_payment():
    data = request.get_json(silent=True) or {}
    outcome = payment_orchestrator.book_and_pay(
        g.user,
        data.get("booking_data"),
        payment_type=data.get("payment_type"),
        transaction_id=data.get("transaction_id"),
        booking_id=data.get("booking_id"),
    )
    if not outcome.paid:
        # booking is kept unpaid so the payment can be retried or settled by an admin
        return jsonify(outcome.to_dict()), 400
    return jsonify(outcome.to_dict()), 200


@payments_bp.post("/webhook")
def payment_webhook():
    # raw body: the signature is computed over the exact bytes
    payload = request.get_data()
    payment_orchestrator.handle_webhook(payload, request.headers)
    return jsonify(status="success"), 200
