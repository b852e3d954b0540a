from decimal import Decimal

from wayfare.data.currency import convert, format_price, quantize


def test_convert_goes_through_usd() -> None:
    assert convert(100, "USD", "INR") == Decimal("8333.33")
    assert convert("2500", "thb", "INR") == Decimal("5833.33")


def test_convert_same_or_unknown_currency_passes_through() -> None:
    assert convert(Decimal("12.345"), "INR", "INR") == Decimal("12.35")
    assert convert(50, "XYZ", "INR") == Decimal("50.00")
    assert convert(50, "", "INR") == Decimal("50.00")


def test_quantize_rounds_half_up() -> None:
    assert quantize(Decimal("0.125")) == Decimal("0.13")


def test_format_price() -> None:
    assert format_price(16688.4, "INR") == "₹16,688"
    assert format_price(1200, "MVR") == "MVR 1,200"
