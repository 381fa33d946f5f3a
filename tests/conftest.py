"""
Test configuration: in-memory SQLite, fake calendar/gateway/identity collaborators,
and helpers that authenticate through real server-side sessions.
"""
import json
from datetime import date, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import Config
from models import db
from models.user import User, ROLE_USER, ROLE_ADMIN
from security.session import create_session
from services.calendar import CalendarService, CalendarEvent
from services.engine import BookingEngine
from services.errors import ExternalServiceFailure, WebhookAuthError
from services.gateway import PaymentGateway, Verification, PaymentNotification
from services.identity import IdentityVerifier, Identity
from services.errors import InvalidCredential


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ADMIN_EMAILS = ["owner@example.com"]
    GOOGLE_CALENDAR_ENABLED = False
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_dummy"
    FRONTEND_BASE_URL = "http://frontend.test"


class FakeCalendar(CalendarService):
    def __init__(self):
        self.fail = False
        self.created = []
        self.deleted = []

    def create_event(self, booking):
        if self.fail:
            raise ExternalServiceFailure("calendar is down")
        self.created.append(booking.id)
        return CalendarEvent(event_id=f"evt-{booking.id}", meet_link=f"https://meet.example/{booking.id}")

    def delete_event(self, event_id):
        self.deleted.append(event_id)


class FakeGateway(PaymentGateway):
    """Transactions are registered up front; webhook bodies are plain JSON signed with a header."""

    SIGNATURE = "valid-signature"

    def __init__(self):
        self.transactions = {}
        self.checkouts = []
        self.down = False

    def add(self, transaction_id, amount, verified=True, email=None):
        self.transactions[transaction_id] = Verification(
            verified=verified,
            amount=Decimal(str(amount)),
            reference=transaction_id,
            email=email,
        )

    def verify_transaction(self, transaction_id):
        if self.down:
            raise ExternalServiceFailure("Payment verification failed: gateway timeout")
        return self.transactions.get(transaction_id, Verification(False, None, transaction_id))

    def initiate_checkout(self, amount, payer, reference, redirect_url):
        self.checkouts.append((amount, payer, reference, redirect_url))
        return {"checkout_link": f"https://pay.example/{reference}", "transaction_id": f"cs_{reference}"}

    def parse_notification(self, payload, headers):
        if headers.get("X-Test-Signature") != self.SIGNATURE:
            raise WebhookAuthError()
        body = json.loads(payload)
        amount = body.get("amount")
        return PaymentNotification(
            event_type=body.get("event", "payment.completed"),
            completed=body.get("status") == "successful",
            amount=Decimal(str(amount)) if amount is not None else None,
            email=body.get("email"),
            reference=body.get("tx_ref"),
            transaction_id=body.get("id"),
        )


class FakeIdentity(IdentityVerifier):
    def verify(self, credential):
        # "google:<email>:<name>"
        parts = credential.split(":")
        if len(parts) < 2 or parts[0] != "google":
            raise InvalidCredential()
        return Identity(email=parts[1].lower(), name=parts[2] if len(parts) > 2 else None)


@pytest.fixture
def engine():
    return BookingEngine(calendar=FakeCalendar(), gateway=FakeGateway(), identity=FakeIdentity())


@pytest.fixture
def app(engine):
    app = create_app(TestConfig, engine=engine)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def calendar(engine):
    return engine.calendar


@pytest.fixture
def gateway(engine):
    return engine.gateway


def make_user(email="client@example.com", name="Client", role=ROLE_USER):
    user = User(email=email, name=name, role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    return make_user()


@pytest.fixture
def admin(app):
    return make_user("admin@example.com", "Admin", ROLE_ADMIN)


def auth_headers(user):
    """Bearer-token clients skip the double-submit CSRF check."""
    return {"Authorization": f"Bearer {create_session(user.id)}"}


def future_day(days=30):
    return (date.today() + timedelta(days=days)).isoformat()
