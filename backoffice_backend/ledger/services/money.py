# ledger/services/money.py

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ledger.services.exceptions import InvalidAmount

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(v) -> Decimal:
    try:
        d = Decimal(str(v if v is not None else "0.00"))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmount(f"Invalid amount: {v!r}") from exc

    if not d.is_finite():
        raise InvalidAmount(f"Invalid amount: {v!r}")

    return d.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def require_positive_amount(v) -> Decimal:
    amt = to_money(v)
    if amt <= ZERO:
        raise InvalidAmount("Amount must be > 0")
    return amt
