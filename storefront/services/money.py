"""
Money Utilities - integer minor units in, Decimal for display.

Cart amounts travel as integers in minor currency units (cents).
The client never derives totals from these helpers; they only format
what the authoritative engine returned.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

# Currencies without a minor unit (ISO 4217 exponent 0)
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "RUB": "₽",
}

# Symbol goes before the amount for these
PREFIX_SYMBOL_CURRENCIES = frozenset({"USD", "EUR", "GBP", "JPY"})


def to_decimal(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Returns Decimal("0") for None or unparsable input.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, float):
            # Via str to avoid binary float artifacts
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def _exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def from_minor_units(amount: int, currency: str = "USD") -> Decimal:
    """
    Convert minor units to a Decimal amount in major units.

    Example: from_minor_units(999) -> Decimal("9.99")
    """
    exponent = _exponent(currency)
    if exponent == 0:
        return Decimal(amount)
    return Decimal(amount) / (Decimal(10) ** exponent)


def to_minor_units(value: Union[str, int, float, Decimal], currency: str = "USD") -> int:
    """
    Convert a major-unit amount to integer minor units (half-up rounding).

    Example: to_minor_units("9.99") -> 999
    """
    scaled = to_decimal(value) * (Decimal(10) ** _exponent(currency))
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def format_price(amount: int, currency: str = "USD") -> str:
    """
    Format an amount in minor units for display.

    Examples:
        format_price(999) -> "$9.99"
        format_price(1500, "JPY") -> "¥1,500"
        format_price(12345, "RUB") -> "123.45 ₽"
    """
    currency = currency.upper()
    major = from_minor_units(amount, currency)
    if _exponent(currency) == 0:
        formatted = f"{int(major):,}"
    else:
        formatted = f"{major.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"

    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    if currency in PREFIX_SYMBOL_CURRENCIES:
        return f"{symbol}{formatted}"
    return f"{formatted} {symbol}"
