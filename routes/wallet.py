from flask import Blueprint, request, jsonify, g

from models.user import ROLE_ADMIN
from security.rbac import require_roles
from services import payment_orchestrator, wallet_ledger
from services.errors import ValidationError, NotFound
from utils.audit import log_event
from utils.auth_context import login_required
from utils.money import format_cents

wallet_bp = Blueprint("wallet", __name__, url_prefix="/api/wallet")

MAX_PAGE_SIZE = 100


@wallet_bp.get("")
@login_required
def get_wallet():
    wallet = wallet_ledger.get_or_create(g.user.id)
    txs = wallet_ledger.recent_transactions(wallet.id, limit=10)
    return jsonify(
        wallet=wallet_ledger.wallet_to_dict(wallet),
        transactions=[wallet_ledger.transaction_to_dict(t) for t in txs],
    ), 200


@wallet_bp.get("/transactions")
@login_required
def list_transactions():
    limit = request.args.get("limit", type=int) or 20
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, request.args.get("offset", type=int) or 0)

    wallet = wallet_ledger.get_or_create(g.user.id)
    txs = wallet_ledger.recent_transactions(wallet.id, limit=limit, offset=offset)
    return jsonify(
        transactions=[wallet_ledger.transaction_to_dict(t) for t in txs],
        limit=limit,
        offset=offset,
    ), 200


@wallet_bp.post("/topup")
@login_required
def top_up():
    data = request.get_json(silent=True) or {}
    wallet, tx = payment_orchestrator.top_up_from_gateway(g.user, data.get("transaction_id"))

    log_event("WALLET_TOPUP", user_id=g.user.id, entity="wallet", entity_id=wallet.id,
              metadata={"amount": format_cents(tx.amount), "reference": tx.reference})
    return jsonify(message="Wallet topped up successfully", wallet=wallet_ledger.wallet_to_dict(wallet)), 200


@wallet_bp.post("/debit")
@login_required
def debit():
    data = request.get_json(silent=True) or {}
    description = (data.get("description") or "").strip() if isinstance(data.get("description"), str) else ""
    if not description:
        raise ValidationError("Invalid amount or missing description")

    wallet = wallet_ledger.get_or_create(g.user.id)
    tx = wallet_ledger.debit(wallet.id, data.get("amount"), description, performed_by=g.user.id)
    wallet = wallet_ledger.find_wallet(g.user.id)

    log_event("WALLET_DEBIT", user_id=g.user.id, entity="wallet", entity_id=wallet.id,
              metadata={"amount": format_cents(tx.amount), "description": description})
    return jsonify(message="Payment successful", wallet=wallet_ledger.wallet_to_dict(wallet)), 200


@wallet_bp.post("/admin/topup")
@require_roles(ROLE_ADMIN)
def admin_top_up():
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId")
    description = data.get("description")
    if not user_id or not description or not isinstance(description, str):
        raise ValidationError("Missing required fields")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid userId")

    try:
        tx = wallet_ledger.admin_credit(user_id, data.get("amount"), description.strip(), admin_id=g.user.id)
    except NotFound:
        raise NotFound("User wallet not found")
    wallet = wallet_ledger.find_wallet(user_id)

    log_event("WALLET_ADMIN_TOPUP", user_id=g.user.id, entity="wallet", entity_id=wallet.id,
              metadata={"amount": format_cents(tx.amount), "owner_id": user_id})
    return jsonify(
        message="Wallet topped up successfully by admin",
        wallet=wallet_ledger.wallet_to_dict(wallet),
    ), 200
