import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation as DecimalInvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction

from . import procedures
from .errors import DuplicateConstraint, InvalidOperation
from .models import Customer, PriceList, PriceListItem, Product, SystemSetting
from .utils import to_decimal

logger = logging.getLogger(__name__)

LINE_ORDER = ["ULTRAHISNE", "BODYTAN CARIBEAN", "SECRET", "ESSENS", "General"]
DEFAULT_LINE = "General"

THRESHOLD_RETAIL_KEY = "UMBRAL_COMERCIO"
THRESHOLD_WHOLESALE_KEY = "UMBRAL_MAYORISTA"

PAYMENT_MERCADOPAGO = "mercadopago"
PAYMENT_TRANSFER = "transferencia"


@dataclass
class CheckoutTotals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    total: Decimal


# --- System settings -----------------------------------------------------


def get_setting_decimal(key: str, default: Decimal) -> Decimal:
    raw = SystemSetting.objects.filter(key=key).values_list("value", flat=True).first()
    try:
        value = Decimal(str(raw)) if raw not in (None, "") else default
    except DecimalInvalidOperation:
        logger.warning("Ajuste %s con valor inválido: %r", key, raw)
        return default
    return value if value > 0 else default


def set_setting(key: str, value) -> SystemSetting:
    setting, _ = SystemSetting.objects.update_or_create(key=key, defaults={"value": str(value)})
    return setting


def get_thresholds() -> dict:
    return {
        "retail": get_setting_decimal(THRESHOLD_RETAIL_KEY, Decimal("0")),
        "wholesale": get_setting_decimal(THRESHOLD_WHOLESALE_KEY, Decimal("0")),
    }


@transaction.atomic
def save_thresholds(retail, wholesale) -> None:
    set_setting(THRESHOLD_RETAIL_KEY, to_decimal(retail))
    set_setting(THRESHOLD_WHOLESALE_KEY, to_decimal(wholesale))


# --- Tier prices and checkout --------------------------------------------


def dynamic_price(product: Product, quantity: int) -> Decimal:
    """Best tier price for ``quantity`` units: wholesale, then retail, then public."""
    if product.min_qty_wholesale is not None and quantity >= product.min_qty_wholesale and product.price_wholesale > 0:
        return product.price_wholesale
    if product.min_qty_retail is not None and quantity >= product.min_qty_retail and product.price_retail > 0:
        return product.price_retail
    return product.price_public


def shipping_cost(subtotal: Decimal) -> Decimal:
    subtotal = to_decimal(subtotal)
    if subtotal <= 0:
        return Decimal("0.00")
    if subtotal >= settings.STOREFRONT_FREE_SHIPPING_THRESHOLD:
        return Decimal("0.00")
    return to_decimal(settings.STOREFRONT_SHIPPING_COST)


def transfer_discount(subtotal: Decimal, payment_method: str) -> Decimal:
    if payment_method != PAYMENT_TRANSFER:
        return Decimal("0.00")
    return to_decimal(to_decimal(subtotal) * settings.STOREFRONT_TRANSFER_DISCOUNT)


def checkout_totals(subtotal, payment_method: str) -> CheckoutTotals:
    subtotal = to_decimal(subtotal)
    discount = transfer_discount(subtotal, payment_method)
    shipping = shipping_cost(subtotal)
    return CheckoutTotals(subtotal=subtotal, discount=discount, shipping=shipping, total=subtotal - discount + shipping)


def vat_for(subtotal, apply_vat: bool = True) -> Decimal:
    if not apply_vat:
        return Decimal("0.00")
    return to_decimal(to_decimal(subtotal) * settings.STOREFRONT_VAT_RATE)


# --- Price lists ---------------------------------------------------------


def create_price_list(name: str) -> PriceList:
    name = (name or "").strip()
    if not name:
        raise InvalidOperation("El nombre de la lista es obligatorio.")
    try:
        with transaction.atomic():
            return PriceList.objects.create(name=name)
    except IntegrityError as exc:
        raise DuplicateConstraint(f'Ya existe una lista de precios con el nombre "{name}".', details=str(exc)) from exc


@transaction.atomic
def upsert_price_list_items(price_list: PriceList, prices) -> int:
    """Insert or update ``(product_id, price)`` pairs on ``price_list``."""
    count = 0
    for product_id, price in prices:
        PriceListItem.objects.update_or_create(
            price_list=price_list, product_id=product_id, defaults={"price": to_decimal(price)}
        )
        count += 1
    return count


@procedures.procedure("create_price_list_with_products")
def _create_price_list_with_products(name, items):
    if PriceList.objects.filter(name=name).exists():
        raise DuplicateConstraint(f'Ya existe una lista de precios con el nombre "{name}".')
    price_list = PriceList.objects.create(name=name)
    PriceListItem.objects.bulk_create(
        [
            PriceListItem(price_list=price_list, product_id=item["product_id"], price=to_decimal(item["price"]))
            for item in items
        ]
    )
    return price_list.pk


def create_price_list_with_products(name: str, prices) -> PriceList:
    name = (name or "").strip()
    if not name:
        raise InvalidOperation("El nombre de la lista es obligatorio.")
    items = [{"product_id": product_id, "price": price} for product_id, price in prices]
    list_id = procedures.call("create_price_list_with_products", name=name, items=items)
    logger.info("Lista de precios '%s' creada con %s productos", name, len(items))
    return PriceList.objects.get(pk=list_id)


def price_list_items(price_list: PriceList) -> list[dict]:
    items = price_list.items.select_related("product").order_by("product__created_at", "product__id")
    return [
        {
            "product_id": item.product_id,
            "product_name": item.product.name,
            "price": item.price,
            "line": item.product.line or DEFAULT_LINE,
        }
        for item in items
    ]


def group_by_line(rows, line_of=None) -> dict:
    """Group rows by product line in the catalog's fixed line order."""
    grouped = {}
    for row in rows:
        line = line_of(row) if line_of else row.get("line")
        grouped.setdefault(line or DEFAULT_LINE, []).append(row)
    ordered = {line: grouped[line] for line in LINE_ORDER if line in grouped}
    for line, items in grouped.items():
        ordered.setdefault(line, items)
    return ordered


def public_price_list() -> dict:
    rows = [
        {
            "product_id": p.pk,
            "product_name": p.name,
            "line": p.line or DEFAULT_LINE,
            "price_public": p.price_public,
            "price_retail": p.price_retail,
            "price_wholesale": p.price_wholesale,
            "min_qty_retail": p.min_qty_retail,
            "min_qty_wholesale": p.min_qty_wholesale,
        }
        for p in Product.objects.order_by("created_at", "id")
    ]
    return group_by_line(rows)


def customer_price_list(customer: Customer) -> dict:
    """Prices for ``customer``: list overrides where present, public price otherwise."""
    overrides = {}
    if customer.price_list_id:
        overrides = dict(customer.price_list.items.values_list("product_id", "price"))
    rows = [
        {
            "product_id": p.pk,
            "product_name": p.name,
            "line": p.line or DEFAULT_LINE,
            "price": overrides.get(p.pk, p.price_public),
        }
        for p in Product.objects.order_by("created_at", "id")
    ]
    return group_by_line(rows)
