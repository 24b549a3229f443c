from datetime import date, datetime
from decimal import Decimal

from app.utils.formatting import amount_in_words, format_currency, format_date, to_decimal


def test_format_currency_uses_two_decimals():
    assert format_currency(150.5) == "R$ 150.50"
    assert format_currency(0) == "R$ 0.00"
    assert format_currency("1234.567") == "R$ 1234.57"


def test_to_decimal_rounds_half_up():
    assert to_decimal(0.125) == Decimal("0.13")
    assert to_decimal(2.675) == Decimal("2.68")


def test_format_date():
    assert format_date(datetime(2024, 5, 2, 10, 30)) == "02/05/2024"
    assert format_date(date(2024, 12, 31)) == "31/12/2024"
    assert format_date("2024-01-15T08:00:00Z") == "15/01/2024"


def test_amount_in_words():
    assert amount_in_words(150.50) == "cento e cinquenta reais e cinquenta centavos"
    assert amount_in_words(1) == "um real"
    assert amount_in_words(100) == "cem reais"
    assert amount_in_words(0.01) == "um centavo"
    assert amount_in_words(0) == "zero reais"


def test_amount_in_words_thousands():
    assert amount_in_words(1100) == "mil e cem reais"
    assert amount_in_words(1230) == "mil duzentos e trinta reais"
    assert amount_in_words(2000000) == "dois milhões de reais"
