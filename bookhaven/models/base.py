from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal('0.01')


def utcnow():
    """Naive UTC timestamp, matching what the database hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_money(value):
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)
