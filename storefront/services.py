import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Prefetch, Sum
from django.db.models.functions import Coalesce

from . import procedures
from .allocation import LotSnapshot
from .errors import DuplicateConstraint, InvalidOperation, SameWarehouseTransfer
from .models import Lot, Product, ProductSupply, Supply, Warehouse
from .utils import to_decimal

logger = logging.getLogger(__name__)

SINGLE_DEFAULT_CONSTRAINT = "single_default_warehouse"


def products_with_stock():
    """Products annotated with ``stock`` (sum of lot quantities) and their lots prefetched."""
    lots = Lot.objects.select_related("warehouse").order_by("expiration_date", "created_at", "id")
    return (
        Product.objects.annotate(stock=Coalesce(Sum("lots__current_quantity"), Decimal("0.00")))
        .prefetch_related(Prefetch("lots", queryset=lots))
        .order_by("name")
    )


def lots_for_sale(product_ids) -> dict:
    """Snapshot of every lot with stock for ``product_ids``, keyed by product id."""
    snapshot = {pid: [] for pid in product_ids}
    lots = Lot.objects.filter(product_id__in=list(product_ids), current_quantity__gt=0).order_by("id")
    for lot in lots:
        snapshot.setdefault(lot.product_id, []).append(
            LotSnapshot(
                lot_id=lot.pk,
                remaining=lot.current_quantity,
                expiration_date=lot.expiration_date,
                created_at=lot.created_at,
                warehouse_id=lot.warehouse_id,
            )
        )
    return snapshot


def _translate_warehouse_integrity(exc: IntegrityError) -> Exception:
    if SINGLE_DEFAULT_CONSTRAINT in str(exc) or "is_default" in str(exc):
        return DuplicateConstraint(
            "Ya existe un depósito predeterminado. Por favor, desmarque el actual antes de asignar uno nuevo.",
            details=str(exc),
        )
    return DuplicateConstraint(f"No se pudo guardar el depósito: {exc}", details=str(exc))


@transaction.atomic
def save_warehouse(name: str, address: str = "", is_default: bool = False, warehouse: Warehouse | None = None):
    """Create or update a warehouse; flagging it default unflags the previous one."""
    if not (name or "").strip():
        raise InvalidOperation("El nombre del depósito es obligatorio.")
    if is_default:
        others = Warehouse.objects.filter(is_default=True)
        if warehouse is not None:
            others = others.exclude(pk=warehouse.pk)
        others.update(is_default=False)
    warehouse = warehouse or Warehouse()
    warehouse.name = name.strip()
    warehouse.address = address or ""
    warehouse.is_default = bool(is_default)
    try:
        with transaction.atomic():
            warehouse.save()
    except IntegrityError as exc:
        raise _translate_warehouse_integrity(exc) from exc
    return warehouse


def delete_warehouse(warehouse: Warehouse) -> None:
    if warehouse.lots.exists():
        raise InvalidOperation(f"El depósito {warehouse.name} tiene lotes asociados y no puede eliminarse.")
    warehouse.delete()


def default_warehouse() -> Warehouse | None:
    return Warehouse.objects.filter(is_default=True).first()


def transfer_stock(lot: Lot, destination: Warehouse, quantity, user=None, notes: str = "") -> int:
    """Move ``quantity`` units of ``lot`` to ``destination``; returns the transfer id."""
    if lot.warehouse_id == destination.pk:
        raise SameWarehouseTransfer()
    transfer_id = procedures.call(
        "transfer_stock",
        lot_id=lot.pk,
        destination_warehouse_id=destination.pk,
        quantity=quantity,
        user_id=getattr(user, "pk", None),
        notes=notes,
    )
    logger.info(
        "Transferencia %s: lote %s, %s u. de %s a %s",
        transfer_id,
        lot.lot_number,
        quantity,
        lot.warehouse_id,
        destination.pk,
    )
    return transfer_id


def transfer_history() -> list[dict]:
    return procedures.call("list_transfer_history")


def register_production(product: Product, quantity, lot_number: str, expiration_date=None, lab_cost=0) -> Lot:
    if not (lot_number or "").strip():
        raise InvalidOperation("El número de lote es obligatorio.")
    lot_id = procedures.call(
        "register_production",
        product_id=product.pk,
        quantity=quantity,
        lot_number=lot_number.strip(),
        expiration_date=expiration_date,
        lab_cost=lab_cost,
    )
    return Lot.objects.get(pk=lot_id)


def update_production(lot: Lot, lot_number: str, initial_quantity, expiration_date=None, lab_cost=0) -> Lot:
    procedures.call(
        "update_production",
        lot_id=lot.pk,
        lot_number=lot_number,
        initial_quantity=initial_quantity,
        expiration_date=expiration_date,
        lab_cost=lab_cost,
    )
    lot.refresh_from_db()
    return lot


@transaction.atomic
def save_supply(data: dict, product_ids=None, supply: Supply | None = None) -> Supply:
    """Create or update a supply and replace its product links (one unit per product)."""
    supply = supply or Supply()
    supply.name = (data.get("name") or "").strip()
    if not supply.name:
        raise InvalidOperation("El nombre del insumo es obligatorio.")
    supply.stock = to_decimal(data.get("stock", supply.stock))
    supply.unit = data.get("unit") or supply.unit
    supply.unit_cost = to_decimal(data.get("unit_cost", supply.unit_cost))
    supply.supplier = data.get("supplier", supply.supplier) or ""
    supply.category = data.get("category", supply.category) or ""
    supply.save()
    if product_ids is not None:
        ProductSupply.objects.filter(supply=supply).delete()
        ProductSupply.objects.bulk_create(
            [ProductSupply(product_id=pid, supply=supply, quantity=Decimal("1.000")) for pid in product_ids]
        )
    return supply


def add_supply_stock(supply: Supply, quantity, new_cost, lot_number: str = "", purchase_date=None) -> Supply:
    procedures.call(
        "add_supply_stock",
        supply_id=supply.pk,
        quantity=quantity,
        new_cost=new_cost,
        lot_number=lot_number,
        purchase_date=purchase_date,
    )
    supply.refresh_from_db()
    return supply
