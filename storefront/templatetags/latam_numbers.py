from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django import template

register = template.Library()


def _as_decimal(value):
    if value in (None, ""):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@register.filter(name="latam_number")
def latam_number(value, decimals=2):
    """1234.5 -> 1.234,50 (thousands with dots, decimals with a comma)."""
    try:
        places = max(int(decimals), 0)
    except (TypeError, ValueError):
        places = 2
    try:
        number = _as_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        return value
    integer, _, fraction = f"{abs(number):,.{places}f}".partition(".")
    text = integer.replace(",", ".")
    if fraction:
        text = f"{text},{fraction}"
    return f"-{text}" if number < 0 else text


@register.filter(name="ars")
def ars(value):
    """Pesos as shown on receipts and emails: $ 12.345,00."""
    return f"$ {latam_number(value, 2)}"
