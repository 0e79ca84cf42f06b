"""
Unified money formatting for the whole project.

Usage:
    from subtracker.utils.money import format_money

    format_money(15.99, "USD")     -> "$15.99"
    format_money(1200, "TRY")      -> "₺1,200.00"
    format_money(5, "CHF")         -> "5.00 CHF"
"""
from decimal import Decimal

_CURRENCY_SYMBOL = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "TRY": "₺",
}


def currency_symbol(code: str) -> str:
    """Символ валюты; для неизвестных — ISO-код."""
    return _CURRENCY_SYMBOL.get(code, code)


def format_money(amount, currency: str = "USD", decimals: int = 2) -> str:
    """
    Отформатировать сумму с разделителями тысяч и символом валюты.

    Known currencies get a symbol prefix, unknown ones an ISO-code suffix.
    """
    if isinstance(amount, str):
        amount = Decimal(amount)
    formatted = f"{{:,.{decimals}f}}".format(amount)
    symbol = _CURRENCY_SYMBOL.get(currency)
    if symbol:
        return f"{symbol}{formatted}"
    return f"{formatted} {currency}"
