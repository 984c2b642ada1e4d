from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Optional

from coupleledger.app.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Anything smaller than one cent is treated as zero when comparing balances
EPSILON = Decimal("0.01")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce a float/int/str/Decimal into a Decimal, rejecting garbage"""
    if value is None:
        raise ValidationError(field, "Value is required")
    if isinstance(value, bool):
        raise ValidationError(field, "Must be a number", value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() avoids binary float artefacts such as 0.1 -> 0.1000000000000000055
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(field, "Must be a number", value)
    if not result.is_finite():
        raise ValidationError(field, "Must be a finite number", value)
    return result


def quantize_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def floor_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_DOWN)


def require_positive(value: Any, field: str = "amount") -> Decimal:
    amount = to_decimal(value, field)
    if amount <= ZERO:
        raise ValidationError(field, "Must be greater than zero", value)
    return amount


def require_non_negative(value: Any, field: str = "amount") -> Decimal:
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise ValidationError(field, "Must not be negative", value)
    return amount


def require_not_future(value: date, today: Optional[date] = None, field: str = "date") -> date:
    if value is None:
        raise ValidationError(field, "Date is required")
    today = today or date.today()
    if value > today:
        raise ValidationError(field, "Date must be today or earlier", value.isoformat())
    return value


def is_effectively_zero(value: Decimal) -> bool:
    return abs(value) < EPSILON


def as_amount(value: Optional[Decimal]) -> Optional[float]:
    """Render a Decimal for JSON responses (two decimals, float)"""
    if value is None:
        return None
    return float(quantize_cents(to_decimal(value)))
