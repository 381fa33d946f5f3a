"""
Error taxonomy for the booking and ledger engine.

Every error carries the HTTP status it maps to and a stable code, so the
app-level error handler can render any of them as {"error": ..., "code": ...}.
"""


class BookingError(Exception):
    status_code = 500
    code = "ERROR"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        body = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PolicyViolation(BookingError):
    status_code = 403
    code = "POLICY_VIOLATION"


class FreeSessionUsed(PolicyViolation):
    code = "FREE_SESSION_USED"

    def __init__(self, message="Free consultation already used", details=None):
        super().__init__(message, details)


class TooLate(PolicyViolation):
    code = "TOO_LATE_TO_CANCEL"


class Conflict(BookingError):
    status_code = 409
    code = "CONFLICT"


class SlotTaken(Conflict):
    code = "SLOT_TAKEN"

    def __init__(self, message="Selected time slot is not available", details=None):
        super().__init__(message, details)


class AlreadyPaid(Conflict):
    code = "ALREADY_PAID"

    def __init__(self, message="Booking is already paid", details=None):
        super().__init__(message, details)


class AlreadyCancelled(Conflict):
    code = "ALREADY_CANCELLED"

    def __init__(self, message="Booking is already cancelled", details=None):
        super().__init__(message, details)


class DuplicateComment(Conflict):
    code = "DUPLICATE_COMMENT"

    def __init__(self, message="You have already commented on this booking", details=None):
        super().__init__(message, details)


class NotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class Forbidden(BookingError):
    status_code = 403
    code = "FORBIDDEN"


class InsufficientFunds(BookingError):
    status_code = 400
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, message="Insufficient wallet balance", details=None):
        super().__init__(message, details)


class ExternalServiceFailure(BookingError):
    status_code = 502
    code = "EXTERNAL_SERVICE_FAILURE"


class WebhookAuthError(BookingError):
    status_code = 401
    code = "INVALID_SIGNATURE"

    def __init__(self, message="Invalid signature", details=None):
        super().__init__(message, details)


class PaymentReferenceUsed(Conflict):
    code = "PAYMENT_REFERENCE_USED"

    def __init__(self, message="This payment has already been applied", details=None):
        super().__init__(message, details)


class InvalidCredential(BookingError):
    status_code = 401
    code = "INVALID_CREDENTIAL"

    def __init__(self, message="Invalid Google credential", details=None):
        super().__init__(message, details)
