from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

CENTS = Decimal("0.01")


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    if value is None or value == "":
        return Decimal("0.00")
    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    return dec.quantize(CENTS, rounding=ROUND_HALF_UP)


def whole_units(value: Decimal | float | int | str) -> int:
    """Floor a quantity to whole units (2.9 -> 2)."""
    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    return int(dec.to_integral_value(rounding=ROUND_FLOOR))
