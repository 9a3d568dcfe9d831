from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Final

ZERO: Final[Decimal] = Decimal("0")
MONEY_QUANT: Final[Decimal] = Decimal("0.01")
# Largest decimal exponent, either way, accepted for a monetary amount.
MAX_AMOUNT_EXPONENT: Final[int] = 15


def to_amount(value: Any) -> Decimal:
    """Coerce a loosely typed monetary field into a non-negative Decimal.

    Anything that is not a finite, non-negative number (None, booleans, blank or
    non-numeric strings, NaN, infinities, negative amounts) becomes zero. So do
    amounts whose magnitude is outside ``10**-15 .. 10**15``; later arithmetic on
    those would overflow the decimal context.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    else:
        return ZERO

    if not amount.is_finite() or amount < 0:
        return ZERO
    if not amount or abs(amount.adjusted()) > MAX_AMOUNT_EXPONENT:
        return ZERO
    return amount


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal) -> str:
    quantized = quantize_money(amount)
    sign = "-" if quantized < 0 else ""
    return f"{sign}${abs(quantized):,.2f}"
