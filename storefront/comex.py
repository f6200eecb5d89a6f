"""Export (COMEX) price sheet: EXW prices in foreign currency plus box logistics."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from django.db import transaction

from .models import Product
from .pricing import DEFAULT_LINE, get_setting_decimal, group_by_line, set_setting

USD_RATE_KEY = "COTIZACION_USD"
BRL_RATE_KEY = "COTIZACION_BRL"
DEFAULT_USD_RATE = Decimal("1000")
DEFAULT_BRL_RATE = Decimal("180")
PALLET_AREA_CM2 = Decimal("10000")
CM3_PER_M3 = Decimal("1000000")


@dataclass
class ComexRow:
    product_id: int
    name: str
    line: str
    price_usd: Decimal
    price_brl: Decimal
    box_volume_m3: Decimal
    weight_per_box_kg: Decimal
    boxes_per_pallet: int
    units_per_box: int | None


def exchange_rates() -> dict:
    return {
        "usd": get_setting_decimal(USD_RATE_KEY, DEFAULT_USD_RATE),
        "brl": get_setting_decimal(BRL_RATE_KEY, DEFAULT_BRL_RATE),
    }


@transaction.atomic
def save_exchange_rates(usd, brl) -> None:
    set_setting(USD_RATE_KEY, Decimal(str(usd)))
    set_setting(BRL_RATE_KEY, Decimal(str(brl)))


def comex_row(product: Product, usd_rate: Decimal, brl_rate: Decimal) -> ComexRow:
    wholesale = product.price_wholesale or Decimal("0")
    volume = Decimal("0")
    weight = Decimal("0")
    boxes = 0
    if product.has_logistics_data:
        length, width, height = product.box_length_cm, product.box_width_cm, product.box_height_cm
        volume = (length * width * height / CM3_PER_M3).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
        weight = (product.unit_weight_kg * product.units_per_box).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
        boxes = int((PALLET_AREA_CM2 / (length * width)).to_integral_value(rounding=ROUND_FLOOR))
    return ComexRow(
        product_id=product.pk,
        name=product.name,
        line=product.line or DEFAULT_LINE,
        price_usd=(wholesale / usd_rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        price_brl=(wholesale / brl_rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        box_volume_m3=volume,
        weight_per_box_kg=weight,
        boxes_per_pallet=boxes,
        units_per_box=product.units_per_box,
    )


def comex_price_sheet(usd_rate=None, brl_rate=None) -> dict:
    """COMEX rows grouped by product line; rates default to the stored quotes."""
    rates = exchange_rates()
    usd = Decimal(str(usd_rate)) if usd_rate else rates["usd"]
    brl = Decimal(str(brl_rate)) if brl_rate else rates["brl"]
    rows = [comex_row(p, usd, brl) for p in Product.objects.order_by("created_at", "id")]
    return group_by_line(rows, line_of=lambda row: row.line)
