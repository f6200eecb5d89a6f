import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.utils import timezone

from . import mercadopago, procedures, services
from .allocation import Allocation, CartLine, allocate_cart
from .errors import InvalidOperation, StorefrontError, classify_database_error
from .models import Customer, Product, Sale, SaleItem
from .pricing import PAYMENT_MERCADOPAGO, PAYMENT_TRANSFER, checkout_totals, dynamic_price, vat_for
from .utils import to_decimal

logger = logging.getLogger(__name__)


@dataclass
class SaleHeader:
    customer: Customer | None = None
    sale_date: date | None = None
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    sale_type: str = Sale.SaleType.SALE
    status: str = Sale.Status.PENDING
    channel: str = ""
    store: str = ""
    cost_total: Decimal | None = None
    exchange_rate: Decimal | None = None
    first_payment: Decimal | None = None
    notes: str = ""
    user: object = None


@dataclass
class Payer:
    name: str
    surname: str
    email: str
    phone: str = ""
    dni: str = ""
    street_name: str = ""
    street_number: str = ""
    zip_code: str = ""
    city: str = ""
    province: str = ""

    @property
    def full_address(self) -> str:
        return f"{self.street_name} {self.street_number}, {self.city}, {self.province} (CP: {self.zip_code})"


@dataclass
class WebOrder:
    sale: Sale
    lines: list = field(default_factory=list)
    init_point: str = ""


def prepare_sale_items(lines) -> list[Allocation]:
    """Allocate cart lines against the lots currently in stock."""
    lines = list(lines)
    return allocate_cart(lines, services.lots_for_sale({line.product_id for line in lines}))


def _check_subtotal(header: SaleHeader, allocations) -> None:
    items_total = sum((Decimal(a.quantity) * to_decimal(a.unit_price) for a in allocations), Decimal("0.00"))
    if to_decimal(items_total) != to_decimal(header.subtotal):
        raise InvalidOperation(
            f"El subtotal de la venta ({to_decimal(header.subtotal)}) no coincide con la suma de los ítems "
            f"({to_decimal(items_total)})."
        )


def create_sale(header: SaleHeader, allocations) -> Sale:
    """Insert the sale header and its items.

    Item inserts deduct stock from their lot. When any item fails the header
    written before them is deleted again and the error is re-raised.
    """
    allocations = list(allocations)
    if not allocations:
        raise InvalidOperation("La venta no tiene ítems.")
    if header.status not in Sale.Status.values:
        raise InvalidOperation(f"Estado de venta inválido: {header.status}")
    _check_subtotal(header, allocations)

    sale = Sale.objects.create(
        customer=header.customer,
        date=header.sale_date or timezone.localdate(),
        subtotal=to_decimal(header.subtotal),
        tax=to_decimal(header.tax),
        total=to_decimal(header.total),
        sale_type=header.sale_type,
        status=header.status,
        channel=header.channel,
        store=header.store,
        cost_total=header.cost_total,
        exchange_rate=header.exchange_rate,
        first_payment=header.first_payment,
        notes=header.notes,
        user=header.user,
    )
    try:
        with transaction.atomic():
            for allocation in allocations:
                SaleItem.objects.create(
                    sale=sale,
                    product_id=allocation.product_id,
                    lot_id=allocation.lot_id,
                    quantity=Decimal(allocation.quantity),
                    unit_price=to_decimal(allocation.unit_price),
                )
    except StorefrontError as exc:
        logger.error("Fallo al insertar ítems de la venta %s, se elimina la cabecera: %s", sale.pk, exc)
        sale.delete()
        raise
    except DatabaseError as exc:
        logger.error("Fallo al insertar ítems de la venta %s, se elimina la cabecera: %s", sale.pk, exc)
        sale.delete()
        raise classify_database_error(exc, "create_sale") from exc

    logger.info("Venta %s creada con %s ítems, total %s", sale.pk, len(allocations), sale.total)
    return sale


def delete_sale(sale: Sale | int) -> None:
    """Delete a sale and give every item's quantity back to its lot."""
    sale_id = sale.pk if isinstance(sale, Sale) else sale
    procedures.call("restore_stock_and_delete_sale", sale_id=sale_id)


def update_sale_status(sale: Sale, status: str) -> Sale:
    if status not in Sale.Status.values:
        raise InvalidOperation(f"Estado de venta inválido: {status}")
    sale.status = status
    sale.save(update_fields=["status"])
    return sale


def cart_lines(quantities: dict) -> list[CartLine]:
    """Build priced cart lines from ``{product_id: quantity}`` using tier prices."""
    products = Product.objects.in_bulk([int(pid) for pid, qty in quantities.items() if int(qty) > 0])
    lines = []
    for product_id, quantity in quantities.items():
        quantity = int(quantity)
        if quantity <= 0:
            continue
        product = products.get(int(product_id))
        if product is None:
            raise InvalidOperation(f"Producto inexistente: {product_id}")
        lines.append(CartLine(product.pk, quantity, dynamic_price(product, quantity), product.name))
    return lines


def create_backoffice_sale(
    customer: Customer | None,
    lines,
    user=None,
    apply_vat: bool = True,
    sale_type: str = Sale.SaleType.SALE,
    status: str = Sale.Status.PENDING,
    channel: str = "",
    notes: str = "",
) -> Sale:
    lines = list(lines)
    allocations = prepare_sale_items(lines)
    subtotal = sum((Decimal(line.quantity) * to_decimal(line.unit_price) for line in lines), Decimal("0.00"))
    tax = vat_for(subtotal, apply_vat)
    header = SaleHeader(
        customer=customer,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        sale_type=sale_type,
        status=status,
        channel=channel,
        notes=notes,
        user=user,
    )
    return create_sale(header, allocations)


def web_order_notes(payment_method: str, totals, payer: Payer) -> str:
    method_label = "WEB MP" if payment_method == PAYMENT_MERCADOPAGO else "WEB TRANSFERENCIA"
    shipping_note = f" [Incluye Envío: ${totals.shipping:.2f}]" if totals.shipping > 0 else " [Envío Gratis]"
    discount_note = f" [Descuento Transferencia 5%: -${totals.discount:.2f}]" if totals.discount > 0 else ""
    return (
        f"{method_label}{shipping_note}{discount_note} - {payer.name} {payer.surname} (DNI: {payer.dni})"
        f" - Tel: {payer.phone} - Dirección: {payer.full_address}"
    )


def place_web_order(quantities: dict, payer: Payer, payment_method: str = PAYMENT_MERCADOPAGO, store: str = "") -> WebOrder:
    """Storefront checkout: allocate, record a pending sale and, for Mercado Pago, open a preference."""
    if payment_method not in (PAYMENT_MERCADOPAGO, PAYMENT_TRANSFER):
        raise InvalidOperation(f"Método de pago inválido: {payment_method}")
    lines = cart_lines(quantities)
    if not lines:
        raise InvalidOperation("El carrito está vacío.")
    allocations = prepare_sale_items(lines)
    subtotal = sum((Decimal(line.quantity) * line.unit_price for line in lines), Decimal("0.00"))
    totals = checkout_totals(subtotal, payment_method)
    header = SaleHeader(
        subtotal=totals.subtotal,
        tax=Decimal("0.00"),
        total=totals.total,
        status=Sale.Status.PENDING,
        channel=Sale.Channel.STORE,
        store=store,
        notes=web_order_notes(payment_method, totals, payer),
    )
    sale = create_sale(header, allocations)
    order = WebOrder(sale=sale, lines=lines)
    if payment_method == PAYMENT_MERCADOPAGO:
        order.init_point = mercadopago.create_preference(lines, payer, sale.pk, totals.shipping)
    return order
