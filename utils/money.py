from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENTS = Decimal("0.01")
# largest single amount accepted anywhere (bookings, top-ups, debits)
MAX_AMOUNT = Decimal("1000000")


def parse_amount(value) -> Optional[Decimal]:
    """
    Parses 50, "50", "50.25" or legacy "$1,250.00" into a Decimal.
    Returns None for anything that isn't a finite number or is beyond MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        if not cleaned:
            return None
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return None
    return amount


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def has_at_most_two_places(amount: Decimal) -> bool:
    try:
        return amount == amount.quantize(CENTS)
    except InvalidOperation:
        return False


def format_cents(cents: int) -> str:
    return str((Decimal(cents) / 100).quantize(CENTS))
