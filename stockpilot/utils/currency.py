"""Currency symbol lookup for amounts printed by the CLI."""

from typing import Optional

DEFAULT_SYMBOL = "$"

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "NGN": "₦",
    "GHS": "₵",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "CHF",
    "CNY": "¥",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "INR": "₹",
    "BRL": "R$",
    "ZAR": "R",
    "KRW": "₩",
    "SGD": "S$",
    "HKD": "HK$",
    "MXN": "$",
    "IDR": "Rp",
    "TRY": "₺",
    "PLN": "zł",
    "THB": "฿",
    "MYR": "RM",
    "PHP": "₱",
    "CZK": "Kč",
    "HUF": "Ft",
    "ILS": "₪",
    "AED": "د.إ",
    "NZD": "NZ$",
    "TWD": "NT$",
    "VND": "₫",
    "UAH": "₴",
    "RON": "lei",
    "KWD": "د.ك",
}


def get_currency_symbol(currency_code: Optional[str] = None) -> str:
    """Return the display symbol for an ISO 4217 code, ``$`` when unknown."""
    if not currency_code:
        return DEFAULT_SYMBOL
    return CURRENCY_SYMBOLS.get(currency_code.strip().upper(), DEFAULT_SYMBOL)
