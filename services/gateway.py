import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe

from services.errors import ExternalServiceFailure, WebhookAuthError
from utils.money import to_cents


@dataclass(frozen=True)
class Verification:
    verified: bool
    amount: Optional[Decimal]
    reference: Optional[str]
    email: Optional[str] = None


@dataclass(frozen=True)
class PaymentNotification:
    event_type: str
    completed: bool
    amount: Optional[Decimal]
    email: Optional[str]
    reference: Optional[str]
    transaction_id: Optional[str] = None


class PaymentGateway:
    def verify_transaction(self, transaction_id: str) -> Verification:
        raise NotImplementedError

    def initiate_checkout(self, amount: Decimal, payer: dict, reference: str, redirect_url: str) -> dict:
        raise NotImplementedError

    def parse_notification(self, payload: bytes, headers) -> PaymentNotification:
        """Authenticates a webhook delivery; raises WebhookAuthError when the signature doesn't match."""
        raise NotImplementedError


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    # Stripe substitutes {CHECKOUT_SESSION_ID} itself, keep the braces readable
    new_query = urlencode(query, safe="{}")
    return urlunparse(parts._replace(query=new_query))


def _field(obj, key):
    if obj is None:
        return None
    try:
        return obj[key]
    except KeyError:
        return None


def _minor_to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return (Decimal(int(value)) / 100).quantize(Decimal("0.01"))


class StripeGateway(PaymentGateway):
    """Stripe Checkout Sessions: the transaction id is the checkout session id."""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str],
                 currency: str = "usd", max_network_retries: int = 2):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = (currency or "usd").lower()
        self.max_network_retries = max_network_retries

    def _configure(self):
        if not self.secret_key:
            raise ExternalServiceFailure("Stripe secret key missing (STRIPE_SECRET_KEY)")
        stripe.api_key = self.secret_key
        stripe.max_network_retries = self.max_network_retries

    def verify_transaction(self, transaction_id: str) -> Verification:
        self._configure()
        try:
            session = stripe.checkout.Session.retrieve(transaction_id)
        except stripe.StripeError as exc:
            raise ExternalServiceFailure(f"Payment verification failed: {exc}")

        details = _field(session, "customer_details")
        return Verification(
            verified=_field(session, "status") == "complete" and _field(session, "payment_status") == "paid",
            amount=_minor_to_decimal(_field(session, "amount_total")),
            reference=_field(session, "client_reference_id"),
            email=_field(details, "email") or _field(session, "customer_email"),
        )

    def initiate_checkout(self, amount: Decimal, payer: dict, reference: str, redirect_url: str) -> dict:
        self._configure()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {"name": payer.get("description") or "Consultation session"},
                        "unit_amount": to_cents(amount),
                    },
                    "quantity": 1,
                }],
                customer_email=payer.get("email"),
                client_reference_id=reference,
                success_url=_append_query(redirect_url, {"status": "successful", "transaction_id": "{CHECKOUT_SESSION_ID}"}),
                cancel_url=_append_query(redirect_url, {"status": "cancelled"}),
                metadata={
                    "tx_ref": reference,
                    "payer_name": payer.get("name") or "",
                },
            )
        except stripe.StripeError as exc:
            raise ExternalServiceFailure(f"Payment initiation failed: {exc}")

        return {"checkout_link": session["url"], "transaction_id": session["id"]}

    def parse_notification(self, payload: bytes, headers) -> PaymentNotification:
        if not self.webhook_secret:
            raise ExternalServiceFailure("Webhook secret not configured")

        sig_header = headers.get("Stripe-Signature")
        if not sig_header:
            raise WebhookAuthError()
        try:
            stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError):
            raise WebhookAuthError()

        # signature checked, read the plain JSON body
        event = json.loads(payload)
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        details = obj.get("customer_details") or {}
        return PaymentNotification(
            event_type=event_type,
            completed=event_type == "checkout.session.completed" and obj.get("payment_status") == "paid",
            amount=_minor_to_decimal(obj.get("amount_total")),
            email=details.get("email") or obj.get("customer_email"),
            reference=obj.get("client_reference_id"),
            transaction_id=obj.get("id"),
        )


def gateway_from_config(config) -> PaymentGateway:
    return StripeGateway(
        secret_key=config.get("STRIPE_SECRET_KEY"),
        webhook_secret=config.get("STRIPE_WEBHOOK_SECRET"),
        currency=config.get("PAYMENT_CURRENCY", "usd"),
        max_network_retries=config.get("STRIPE_MAX_NETWORK_RETRIES", 2),
    )
