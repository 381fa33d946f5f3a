from flask import current_app

from services.calendar import CalendarService, calendar_from_config
from services.gateway import PaymentGateway, gateway_from_config
from services.identity import IdentityVerifier, identity_from_config
from services.webhook_matching import WebhookMatcher, AmountEmailMatcher
from utils.locks import KeyedLock


class BookingEngine:
    """Holds the external collaborators and the in-process slot locks for one app."""

    def __init__(self, calendar: CalendarService = None, gateway: PaymentGateway = None,
                 matcher: WebhookMatcher = None, identity: IdentityVerifier = None):
        self.calendar = calendar
        self.gateway = gateway
        self.identity = identity
        self.matcher = matcher or AmountEmailMatcher()
        self.slot_lock = KeyedLock()

    def init_app(self, app):
        if self.calendar is None:
            self.calendar = calendar_from_config(app.config)
        if self.gateway is None:
            self.gateway = gateway_from_config(app.config)
        if self.identity is None:
            self.identity = identity_from_config(app.config)
        app.extensions["booking_engine"] = self


def get_engine() -> BookingEngine:
    return current_app.extensions["booking_engine"]
