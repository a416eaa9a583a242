"""
Monetary precision helpers.

All order and payment arithmetic runs on Decimal values quantized to the
currency's minor unit, never on float.

Key Principles:
1. NEVER use float for money
2. Quantize once per stored value, with ROUND_HALF_EVEN
3. Compare tendered amounts unrounded; round only what gets stored
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from typing import Iterable, Union

from core_backend.exceptions import ValidationError

getcontext().prec = 28

# Currency minor unit exponents (how many decimal places)
CURRENCY_EXPONENT = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "CAD": 2,
    "AUD": 2,
    "CHF": 2,
    "THB": 2,
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
}

ZERO = Decimal("0.00")

# Largest accepted difference between a tendered amount and an order total.
PAYMENT_EPSILON = Decimal("0.01")

Amount = Union[Decimal, str, int, float]


def currency_exponent(currency: str) -> int:
    """
    Get the number of decimal places for a currency.

    Examples:
        >>> currency_exponent("USD")
        2
        >>> currency_exponent("JPY")
        0
    """
    return CURRENCY_EXPONENT.get(currency.upper(), 2)


def quantize(currency: str, amount: Amount) -> Decimal:
    """
    Round to currency decimals using banker's rounding (ROUND_HALF_EVEN).

    Examples:
        >>> quantize("USD", "10.125")
        Decimal('10.12')
        >>> quantize("USD", 3)
        Decimal('3.00')
    """
    if isinstance(amount, float):
        # Go through str so 0.1 stays 0.1
        amount = str(amount)
    step = Decimal(10) ** -currency_exponent(currency)
    return Decimal(amount).quantize(step, rounding=ROUND_HALF_EVEN)


def to_minor(currency: str, amount: Amount) -> int:
    """
    Convert to minor units (e.g., cents) after quantization.

    Examples:
        >>> to_minor("USD", "10.127")
        1013
    """
    quantized = quantize(currency, amount)
    return int((quantized * (10 ** currency_exponent(currency))).to_integral_value())


def from_minor(currency: str, minor: int) -> Decimal:
    """
    Convert from minor units to Decimal.

    Examples:
        >>> from_minor("USD", 1013)
        Decimal('10.13')
    """
    return quantize(currency, Decimal(minor) / (Decimal(10) ** currency_exponent(currency)))


def sum_amounts(currency: str, amounts: Iterable[Amount]) -> Decimal:
    """Add amounts in minor units so long sums cannot drift."""
    return from_minor(currency, sum(to_minor(currency, a) for a in amounts))


def to_decimal(amount: Amount) -> Decimal:
    """
    Parse an incoming amount without rounding it.

    Raises:
        ValidationError: the value is not a finite number
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    return value


def within_tolerance(amount: Amount, expected: Amount, epsilon: Decimal = PAYMENT_EPSILON) -> bool:
    """
    True when amount and expected differ by no more than epsilon. Neither
    side is rounded first, so 11.0149 against 11.00 is outside one cent.

    Examples:
        >>> within_tolerance("12.01", "12.00")
        True
        >>> within_tolerance("12.0149", "12.00")
        False
    """
    return abs(to_decimal(amount) - to_decimal(expected)) <= epsilon


def format_money(currency: str, amount: Amount) -> str:
    """
    Format an amount for printed documents.

    Examples:
        >>> format_money("USD", "12.5")
        'USD 12.50'
    """
    return f"{currency.upper()} {quantize(currency, amount)}"
