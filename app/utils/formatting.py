"""
Formatação de valores para documentos: moeda, datas e valor por extenso
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal, str]

_CENTS = Decimal("0.01")


def to_decimal(amount: Number) -> Decimal:
    """Converte para Decimal com 2 casas (via str para não herdar ruído de float)"""
    return Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_currency(amount: Number) -> str:
    """150.5 -> 'R$ 150.50'"""
    return f"R$ {to_decimal(amount):.2f}"


def format_date(value: Union[date, datetime, str, None]) -> str:
    """Data no formato dd/mm/aaaa; aceita ISO string"""
    if value is None:
        value = datetime.now()
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    return value.strftime('%d/%m/%Y')


_UNITS = ["", "um", "dois", "três", "quatro", "cinco", "seis", "sete", "oito", "nove"]
_TEENS = ["dez", "onze", "doze", "treze", "catorze", "quinze",
          "dezesseis", "dezessete", "dezoito", "dezenove"]
_TENS = ["", "", "vinte", "trinta", "quarenta", "cinquenta",
         "sessenta", "setenta", "oitenta", "noventa"]
_HUNDREDS = ["", "cento", "duzentos", "trezentos", "quatrocentos", "quinhentos",
             "seiscentos", "setecentos", "oitocentos", "novecentos"]


def _below_thousand(n: int) -> str:
    if n == 100:
        return "cem"
    hundreds, rest = divmod(n, 100)
    parts = []
    if hundreds:
        parts.append(_HUNDREDS[hundreds])
    if rest >= 20:
        tens, units = divmod(rest, 10)
        parts.append(_TENS[tens] if not units else f"{_TENS[tens]} e {_UNITS[units]}")
    elif rest >= 10:
        parts.append(_TEENS[rest - 10])
    elif rest:
        parts.append(_UNITS[rest])
    return " e ".join(parts)


def _join(head: str, rest: int) -> str:
    # "mil e cem", "mil e vinte", mas "mil duzentos e trinta"
    if not rest:
        return head
    connector = " e " if rest < 100 or rest % 100 == 0 else " "
    return f"{head}{connector}{_integer_words(rest)}"


def _integer_words(n: int) -> str:
    if n >= 1_000_000:
        millions, rest = divmod(n, 1_000_000)
        head = "um milhão" if millions == 1 else f"{_integer_words(millions)} milhões"
        return _join(head, rest)
    if n >= 1000:
        thousands, rest = divmod(n, 1000)
        head = "mil" if thousands == 1 else f"{_below_thousand(thousands)} mil"
        return _join(head, rest)
    return _below_thousand(n)


def amount_in_words(amount: Number) -> str:
    """Valor monetário por extenso: 150.50 -> 'cento e cinquenta reais e cinquenta centavos'"""
    value = to_decimal(amount)
    reais = int(value)
    centavos = int((value - reais) * 100)

    if reais == 0 and centavos == 0:
        return "zero reais"

    parts = []
    if reais:
        words = _integer_words(reais)
        if reais == 1:
            parts.append(f"{words} real")
        elif reais % 1_000_000 == 0:
            parts.append(f"{words} de reais")
        else:
            parts.append(f"{words} reais")
    if centavos:
        words = _below_thousand(centavos)
        parts.append(f"{words} centavo" if centavos == 1 else f"{words} centavos")

    return " e ".join(parts)
