"""
Booking + settlement saga.

    free     create (already paid)                       -> calendar
    wallet   create + debit + settle, one transaction     -> calendar
    gateway  create unpaid -> verify with gateway -> paid -> calendar

Ledger writes are committed before the calendar is called, and a calendar
failure only adds a warning. A gateway payment that can't be verified leaves
the booking persisted and unpaid so it can be retried or inspected.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from models import db
from models.booking import Booking, TYPE_FREE
from models.user import User
from services import booking_ledger, wallet_ledger
from services.engine import get_engine
from services.errors import (
    ValidationError, InsufficientFunds, ExternalServiceFailure, Conflict,
    PaymentReferenceUsed,
)
from utils.audit import log_event
from utils.money import parse_amount, to_cents, format_cents

log = logging.getLogger(__name__)

PAYMENT_FREE = "free"
PAYMENT_WALLET = "wallet"
PAYMENT_GATEWAY = "gateway"


@dataclass
class BookingOutcome:
    booking: Booking
    paid: bool
    warning: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    def to_dict(self):
        body = {"booking": self.booking.to_dict()}
        if self.paid:
            body["message"] = "Booking confirmed"
        else:
            body["error"] = self.error or "Payment verification failed"
            if self.details:
                body["details"] = self.details
        if self.warning:
            body["warning"] = self.warning
        return body


def resolve_payment_type(booking_type: str, payment_type: Optional[str]) -> str:
    if booking_type == TYPE_FREE:
        return PAYMENT_FREE
    if payment_type == PAYMENT_WALLET:
        return PAYMENT_WALLET
    return PAYMENT_GATEWAY


def _fields(booking_data):
    if not isinstance(booking_data, dict):
        raise ValidationError("Missing booking data")
    return (
        booking_data.get("date"),
        booking_data.get("time"),
        booking_data.get("endTime"),
        booking_data.get("type"),
        booking_data.get("cost"),
    )


def book_and_pay(user: User, booking_data: Optional[dict], payment_type: Optional[str] = None,
                 transaction_id: Optional[str] = None, booking_id=None) -> BookingOutcome:
    """
    Books and pays in one call. Passing `booking_id` (or resending the same
    slot) after a failed gateway verification settles the unpaid booking that
    attempt left behind instead of creating a new one.
    """
    if booking_id is not None:
        return _retry_gateway(user, _booking_id(booking_id), transaction_id)

    date, start, end, booking_type, cost = _fields(booking_data)
    method = resolve_payment_type(booking_type, payment_type)

    if method == PAYMENT_FREE:
        booking = booking_ledger.create_booking(date, start, end, booking_type, cost, user.email)
        log_event("BOOKING_CREATE", user_id=user.id, entity="booking", entity_id=booking.id,
                  metadata={"type": booking.type, "payment": method})
        return BookingOutcome(booking, True, warning=booking_ledger.link_calendar(booking))

    if method == PAYMENT_WALLET:
        return _pay_with_wallet(user, date, start, end, booking_type, cost)

    return _pay_with_gateway(user, date, start, end, booking_type, cost, transaction_id)


def _pay_with_wallet(user: User, date, start, end, booking_type, cost) -> BookingOutcome:
    wallet = wallet_ledger.get_or_create(user.id)

    def _settle(booking: Booking):
        wallet_ledger.debit(
            wallet.id,
            booking.cost,
            f"Payment for booking #{booking.id}",
            performed_by=user.id,
            commit=False,
        )
        booking.paid = True

    booking = booking_ledger.create_booking(date, start, end, booking_type, cost, user.email, on_insert=_settle)
    log_event("BOOKING_CREATE", user_id=user.id, entity="booking", entity_id=booking.id,
              metadata={"type": booking.type, "payment": PAYMENT_WALLET, "cost": booking.cost})
    return BookingOutcome(booking, True, warning=booking_ledger.link_calendar(booking))


def _pay_with_gateway(user: User, date, start, end, booking_type, cost, transaction_id) -> BookingOutcome:
    if not transaction_id:
        raise ValidationError("Missing transaction_id")
    if booking_ledger.payment_reference_used(transaction_id):
        raise PaymentReferenceUsed()

    booking = booking_ledger.find_unpaid(user.email, date, start)
    if booking is not None:
        log.info("Reusing unpaid booking %s for transaction %s", booking.id, transaction_id)
        return _settle_with_gateway(user, booking, transaction_id)

    booking = booking_ledger.create_booking(date, start, end, booking_type, cost, user.email)
    log_event("BOOKING_CREATE", user_id=user.id, entity="booking", entity_id=booking.id,
              metadata={"type": booking.type, "payment": PAYMENT_GATEWAY, "cost": booking.cost})
    return _settle_with_gateway(user, booking, transaction_id)


def _booking_id(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Invalid booking_id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid booking_id")


def _retry_gateway(user: User, booking_id: int, transaction_id) -> BookingOutcome:
    if not transaction_id:
        raise ValidationError("Missing transaction_id")
    if booking_ledger.payment_reference_used(transaction_id):
        raise PaymentReferenceUsed()
    booking = booking_ledger.get_unpaid_for(booking_id, user)
    return _settle_with_gateway(user, booking, transaction_id)


def _settle_with_gateway(user: User, booking: Booking, transaction_id: str) -> BookingOutcome:
    try:
        verification = get_engine().gateway.verify_transaction(transaction_id)
    except ExternalServiceFailure as exc:
        log.warning("Gateway verification of %s failed: %s", transaction_id, exc.message)
        return _unpaid(user, booking, transaction_id, exc.message)

    if not verification.verified:
        return _unpaid(user, booking, transaction_id, "Payment status is not successful")

    cost_amount = parse_amount(booking.cost)
    if verification.amount is not None and verification.amount < cost_amount:
        return _unpaid(user, booking, transaction_id, "Paid amount does not cover the booking cost")

    try:
        booking_ledger.mark_paid(booking.id, reference=transaction_id)
    except Conflict as exc:
        return _unpaid(user, booking, transaction_id, exc.message)

    log_event("PAYMENT_VERIFIED", user_id=user.id, entity="booking", entity_id=booking.id,
              metadata={"transaction_id": transaction_id})
    return BookingOutcome(booking, True, warning=booking_ledger.link_calendar(booking))


def _unpaid(user: User, booking: Booking, transaction_id: str, details: str) -> BookingOutcome:
    log_event("PAYMENT_FAILED", user_id=user.id, entity="booking", entity_id=booking.id,
              metadata={"transaction_id": transaction_id, "reason": details})
    return BookingOutcome(booking, False, error="Payment verification failed", details=details)


def initiate(user: User, data: dict) -> dict:
    """Wallet: balance check only. Gateway: opens a checkout and returns its link."""
    amount = parse_amount(data.get("amount"))
    if amount is None or amount <= 0:
        raise ValidationError("Missing required fields")

    booking_data = data.get("booking_data")
    if booking_data:
        date, start, end, booking_type, cost = _fields(booking_data)
        booking_ledger.validate_new_booking(date, start, end, booking_type, cost, user.email)

    if data.get("use_wallet"):
        wallet = wallet_ledger.get_or_create(user.id)
        if wallet.balance < to_cents(amount):
            raise InsufficientFunds(details={"wallet_balance": format_cents(wallet.balance)})
        return {
            "payment_type": PAYMENT_WALLET,
            "wallet_balance": format_cents(wallet.balance),
            "amount": format(amount, "f"),
        }

    base_url = current_app.config.get("FRONTEND_BASE_URL", "").rstrip("/")
    redirect_url = data.get("redirect_url") or f"{base_url}/payment-complete"
    reference = data.get("tx_ref") or f"consult-{user.id}-{uuid.uuid4().hex[:12]}"
    checkout = get_engine().gateway.initiate_checkout(
        amount,
        {"email": user.email, "name": data.get("name") or user.name},
        reference,
        redirect_url,
    )
    log_event("PAYMENT_CHECKOUT_CREATED", user_id=user.id, entity="payment", entity_id=reference,
              metadata={"amount": format(amount, "f")})
    out = {"payment_type": PAYMENT_GATEWAY, "tx_ref": reference}
    out.update(checkout)
    return out


def top_up_from_gateway(user: User, transaction_id: str):
    """Credits the wallet with a verified gateway payment, once per transaction."""
    if not transaction_id:
        raise ValidationError("Missing transaction_id")
    if booking_ledger.payment_reference_used(transaction_id):
        raise PaymentReferenceUsed()

    verification = get_engine().gateway.verify_transaction(transaction_id)
    if not verification.verified or not verification.amount:
        raise ValidationError("Payment verification failed")

    wallet = wallet_ledger.get_or_create(user.id)
    tx = wallet_ledger.credit(wallet.id, verification.amount, "Wallet top-up", performed_by=user.id,
                              reference=transaction_id)
    db.session.refresh(wallet)
    return wallet, tx


def handle_webhook(payload: bytes, headers) -> dict:
    """
    Reconciles a gateway "payment completed" notification with an unpaid booking.

    Authentication failures raise WebhookAuthError. Once authenticated this
    never raises: no match, already-processed and internal errors are logged
    and acknowledged so the gateway doesn't keep redelivering.
    """
    engine = get_engine()
    notification = engine.gateway.parse_notification(payload, headers)

    try:
        if not notification.completed:
            log.info("Ignoring webhook event %s", notification.event_type)
            return {"matched": False}

        if notification.transaction_id and booking_ledger.payment_reference_used(notification.transaction_id):
            log.info("Webhook for %s already applied", notification.transaction_id)
            return {"matched": False}

        booking = engine.matcher.find_booking(notification)
        if booking is None:
            log.warning("No unpaid booking matches payment of %s from %s", notification.amount, notification.email)
            log_event("WEBHOOK_UNMATCHED", entity="payment", entity_id=notification.transaction_id,
                      metadata={"amount": notification.amount, "email": notification.email})
            return {"matched": False}

        try:
            booking_ledger.mark_paid(booking.id, reference=notification.transaction_id)
        except Conflict as exc:
            log.info("Webhook could not settle booking %s: %s", booking.id, exc.message)
            return {"matched": False}

        booking_ledger.link_calendar(booking)
        log_event("WEBHOOK_BOOKING_PAID", entity="booking", entity_id=booking.id,
                  metadata={"transaction_id": notification.transaction_id})
        return {"matched": True, "booking_id": booking.id}
    except Exception:
        db.session.rollback()
        log.exception("Webhook reconciliation failed")
        return {"matched": False}
