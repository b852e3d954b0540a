"""Currency utilities — static conversion of supplier prices into the base currency."""

from decimal import ROUND_HALF_UP, Decimal

# Static exchange rates to USD (can be updated periodically)
EXCHANGE_RATES_TO_USD: dict[str, float] = {
    "USD": 1.0,
    "CAD": 0.74,
    "GBP": 1.27,
    "EUR": 1.08,
    "JPY": 0.0067,
    "AUD": 0.65,
    "SGD": 0.75,
    "HKD": 0.13,
    "INR": 0.012,
    "AED": 0.27,
    "QAR": 0.27,
    "THB": 0.028,
    "IDR": 0.000064,
    "MYR": 0.21,
    "LKR": 0.0033,
    "MVR": 0.065,
    "TRY": 0.031,
    "KRW": 0.00074,
    "TWD": 0.031,
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$", "CAD": "CA$", "GBP": "£", "EUR": "€",
    "JPY": "¥", "AUD": "A$", "SGD": "S$", "HKD": "HK$",
    "INR": "₹", "AED": "AED", "QAR": "QAR", "THB": "฿",
    "KRW": "₩", "TWD": "NT$",
}

CENTS = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round a money amount to two decimal places."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def convert(amount: Decimal | float, from_currency: str, to_currency: str) -> Decimal:
    """Convert between two currencies through USD. Unknown currencies pass through unchanged."""
    amount = Decimal(str(amount))
    from_currency = (from_currency or to_currency).upper()
    to_currency = to_currency.upper()
    if from_currency == to_currency:
        return quantize(amount)

    from_rate = EXCHANGE_RATES_TO_USD.get(from_currency)
    to_rate = EXCHANGE_RATES_TO_USD.get(to_currency)
    if not from_rate or not to_rate:
        return quantize(amount)

    usd = amount * Decimal(str(from_rate))
    return quantize(usd / Decimal(str(to_rate)))


def format_price(amount: float, currency: str = "INR") -> str:
    """Format a price with currency symbol for display."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{round(amount):,}"
