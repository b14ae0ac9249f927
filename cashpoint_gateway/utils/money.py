"""Decimal <-> minor-unit conversion"""

from decimal import Decimal, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up"""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(TWO_PLACES)


def format_amount(cents: int) -> str:
    """Render minor units as "12.50" for prompts and receipts"""
    return f"{from_cents(cents):.2f}"
