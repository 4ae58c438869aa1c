"""
Exact conversions between on-chain integer amounts and decimal token amounts.

Amounts never pass through float: the token precision is known per chain, so
``Decimal.scaleb`` shifts the decimal point without rounding.
"""
from decimal import Decimal, InvalidOperation
from typing import Union

Number = Union[Decimal, int, str]


def to_decimal(amount_raw: int, decimals: int) -> Decimal:
    """10_500_000 at 6 decimals -> Decimal('10.500000')."""
    if amount_raw < 0:
        raise ValueError(f"Amount cannot be negative: {amount_raw}")
    quantum = Decimal(1).scaleb(-decimals)
    return Decimal(amount_raw).scaleb(-decimals).quantize(quantum)


def format_units(amount_raw: int, decimals: int) -> str:
    """Human-readable form, e.g. '10.5' or '25.0'."""
    text = format(to_decimal(amount_raw, decimals), "f")
    if "." in text:
        text = text.rstrip("0")
        if text.endswith("."):
            text += "0"
    return text


def parse_units(amount: Number, decimals: int) -> int:
    """Decimal('10.5') at 6 decimals -> 10_500_000. Rejects excess precision."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount}")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)
