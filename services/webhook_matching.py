"""
How a gateway notification finds the booking it pays for.

The notification doesn't carry our booking id, so the default strategy is a
heuristic: the most recent unpaid, confirmed booking with the same cost and
payer email. Swap in another WebhookMatcher once checkout references carry
the booking id.
"""
from typing import Optional

from models.booking import Booking, STATUS_CONFIRMED, TYPE_PAID
from services.gateway import PaymentNotification
from utils.money import parse_amount


class WebhookMatcher:
    def find_booking(self, notification: PaymentNotification) -> Optional[Booking]:
        raise NotImplementedError


class AmountEmailMatcher(WebhookMatcher):
    def find_booking(self, notification: PaymentNotification) -> Optional[Booking]:
        if notification.amount is None or not notification.email:
            return None

        candidates = (
            Booking.query
            .filter(
                Booking.email == notification.email.strip().lower(),
                Booking.type == TYPE_PAID,
                Booking.paid.is_(False),
                Booking.status == STATUS_CONFIRMED,
            )
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )
        # cost is stored as text ("50", "50.00", "$50"), so compare as numbers
        for booking in candidates:
            if parse_amount(booking.cost) == notification.amount:
                return booking
        return None
