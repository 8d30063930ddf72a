"""
Amount normalization for ledger and balance computations.
"""
from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce an amount into a finite Decimal.

    None, booleans, non-numeric strings, NaN and infinities become zero so a
    single malformed row never prevents a ledger from rendering.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    else:
        return ZERO

    if not result.is_finite():
        return ZERO
    return result
