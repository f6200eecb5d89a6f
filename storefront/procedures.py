"""Named data-store procedures.

Multi-row operations that must run as one unit are registered here by name
and executed with :func:`call` inside a single transaction. Every procedure
has a fixed argument shape and a documented return shape in ``CONTRACTS``;
calling a name that has no registered implementation raises
``ProcedureNotFound`` with that contract attached so an operator knows what to
install.
"""

import inspect
import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F

from .errors import (
    InsufficientSourceStock,
    InvalidOperation,
    ProcedureNotFound,
    SameWarehouseTransfer,
    StorefrontError,
    classify_database_error,
)
from .models import Lot, Sale, StockTransfer, Supply, Warehouse
from .utils import to_decimal

logger = logging.getLogger(__name__)

CONTRACTS = {
    "restore_stock_and_delete_sale": {
        "args": ["sale_id"],
        "returns": "None",
    },
    "transfer_stock": {
        "args": ["lot_id", "destination_warehouse_id", "quantity", "user_id", "notes"],
        "returns": "StockTransfer id",
    },
    "list_transfer_history": {
        "args": [],
        "returns": "list[{id, date, product_name, from_warehouse_name, to_warehouse_name, quantity, user_email, notes, lot_number}]",
    },
    "add_supply_stock": {
        "args": ["supply_id", "quantity", "new_cost", "lot_number", "purchase_date"],
        "returns": "None",
    },
    "register_production": {
        "args": ["product_id", "quantity", "lot_number", "expiration_date", "lab_cost"],
        "returns": "Lot id",
    },
    "update_production": {
        "args": ["lot_id", "lot_number", "initial_quantity", "expiration_date", "lab_cost"],
        "returns": "None",
    },
    "create_price_list_with_products": {
        "args": ["name", "items"],
        "returns": "PriceList id",
    },
    "list_users_as_admin": {
        "args": [],
        "returns": "list[{id, email, roles}]",
    },
    "update_user_roles": {
        "args": ["acting_user_id", "user_id", "roles"],
        "returns": "None",
    },
    "approve_access_request": {
        "args": ["request_id"],
        "returns": "None",
    },
    "reject_access_request": {
        "args": ["request_id"],
        "returns": "None",
    },
    "product_statistics": {
        "args": [],
        "returns": "list[{product_id, name, sold_this_month, sold_total, unit_cost, profit_total_*, profit_unit_*}]",
    },
    "dashboard_stats": {
        "args": [],
        "returns": "{sales_count, revenue_year, lot_stock_total, supply_count, low_stock_products, low_stock_supplies}",
    },
}

REGISTRY = {}


def procedure(name: str):
    """Register ``func`` under ``name``; its parameters must match the contract."""

    def decorator(func):
        contract = CONTRACTS.get(name)
        if contract is not None:
            params = list(inspect.signature(func).parameters)
            if params != contract["args"]:
                raise ValueError(f"Procedure {name} expects {contract['args']}, got {params}")
        REGISTRY[name] = func
        return func

    return decorator


def call(name: str, /, **kwargs):
    func = REGISTRY.get(name)
    if func is None:
        logger.error("Procedimiento %s no registrado", name)
        raise ProcedureNotFound(name, remediation=CONTRACTS.get(name))
    # Raises TypeError on a mismatched argument shape.
    inspect.signature(func).bind(**kwargs)
    try:
        with transaction.atomic():
            return func(**kwargs)
    except StorefrontError:
        raise
    except DatabaseError as exc:
        raise classify_database_error(exc, name) from exc


@procedure("restore_stock_and_delete_sale")
def restore_stock_and_delete_sale(sale_id):
    sale = Sale.objects.select_for_update().filter(pk=sale_id).first()
    if sale is None:
        raise InvalidOperation(f"La venta {sale_id} no existe.")
    items = list(sale.items.all())
    for item in items:
        Lot.objects.filter(pk=item.lot_id).update(current_quantity=F("current_quantity") + item.quantity)
    sale.items.all().delete()
    sale.delete()
    logger.info("Venta %s eliminada, %s ítems devueltos a stock", sale_id, len(items))


@procedure("transfer_stock")
def transfer_stock(lot_id, destination_warehouse_id, quantity, user_id, notes):
    qty = to_decimal(quantity)
    if qty <= 0:
        raise InvalidOperation("La cantidad a transferir debe ser mayor a cero.")
    source = Lot.objects.select_for_update().select_related("product").get(pk=lot_id)
    if source.warehouse_id == int(destination_warehouse_id):
        raise SameWarehouseTransfer()
    if source.current_quantity < qty:
        raise InsufficientSourceStock(source.current_quantity, qty)
    destination_warehouse = Warehouse.objects.get(pk=destination_warehouse_id)

    source.current_quantity -= qty
    source.save(update_fields=["current_quantity"])

    destination = (
        Lot.objects.select_for_update()
        .filter(product_id=source.product_id, lot_number=source.lot_number, warehouse=destination_warehouse)
        .first()
    )
    if destination is None:
        destination = Lot.objects.create(
            product_id=source.product_id,
            warehouse=destination_warehouse,
            lot_number=source.lot_number,
            initial_quantity=qty,
            current_quantity=qty,
            expiration_date=source.expiration_date,
            lab_cost=source.lab_cost,
        )
    else:
        destination.initial_quantity += qty
        destination.current_quantity += qty
        destination.save(update_fields=["initial_quantity", "current_quantity"])

    transfer = StockTransfer.objects.create(
        product_id=source.product_id,
        source_lot=source,
        destination_lot=destination,
        from_warehouse_id=source.warehouse_id,
        to_warehouse=destination_warehouse,
        quantity=qty,
        user_id=user_id,
        notes=notes or "",
    )
    return transfer.pk


@procedure("list_transfer_history")
def list_transfer_history():
    transfers = StockTransfer.objects.select_related(
        "product", "from_warehouse", "to_warehouse", "user", "source_lot"
    ).order_by("-created_at", "-id")
    return [
        {
            "id": t.pk,
            "date": t.created_at,
            "product_name": t.product.name,
            "from_warehouse_name": t.from_warehouse.name,
            "to_warehouse_name": t.to_warehouse.name,
            "quantity": t.quantity,
            "user_email": t.user.email if t.user else "",
            "notes": t.notes,
            "lot_number": t.source_lot.lot_number,
        }
        for t in transfers
    ]


@procedure("add_supply_stock")
def add_supply_stock(supply_id, quantity, new_cost, lot_number, purchase_date):
    qty = to_decimal(quantity)
    if qty <= 0:
        raise InvalidOperation("La cantidad a agregar debe ser mayor a cero.")
    supply = Supply.objects.select_for_update().get(pk=supply_id)
    supply.stock += qty
    supply.unit_cost = to_decimal(new_cost)
    supply.last_lot_ordered = lot_number or ""
    supply.last_purchase_at = purchase_date
    supply.save(update_fields=["stock", "unit_cost", "last_lot_ordered", "last_purchase_at"])


@procedure("register_production")
def register_production(product_id, quantity, lot_number, expiration_date, lab_cost):
    qty = to_decimal(quantity)
    if qty <= 0:
        raise InvalidOperation("La cantidad producida debe ser mayor a cero.")
    warehouse = Warehouse.objects.filter(is_default=True).first()
    if warehouse is None:
        raise InvalidOperation(
            'No se encontró un depósito predeterminado. Por favor, marque uno en "Gestión de Depósitos".'
        )
    cost = to_decimal(lab_cost)
    lot = (
        Lot.objects.select_for_update()
        .filter(product_id=product_id, lot_number=lot_number, warehouse=warehouse)
        .first()
    )
    if lot is None:
        try:
            with transaction.atomic():
                lot = Lot.objects.create(
                    product_id=product_id,
                    warehouse=warehouse,
                    lot_number=lot_number,
                    initial_quantity=qty,
                    current_quantity=qty,
                    expiration_date=expiration_date,
                    lab_cost=cost,
                )
        except IntegrityError as exc:
            raise classify_database_error(exc, "register_production") from exc
        logger.info("Producción registrada: lote %s (%s u.)", lot_number, qty)
        return lot.pk

    # Merge into the existing lot: quantities and lab cost add up, latest expiration wins.
    lot.initial_quantity += qty
    lot.current_quantity += qty
    if expiration_date and (lot.expiration_date is None or expiration_date > lot.expiration_date):
        lot.expiration_date = expiration_date
    lot.lab_cost += cost
    lot.save(update_fields=["initial_quantity", "current_quantity", "expiration_date", "lab_cost"])
    logger.info("Producción sumada al lote existente %s (+%s u.)", lot_number, qty)
    return lot.pk


@procedure("update_production")
def update_production(lot_id, lot_number, initial_quantity, expiration_date, lab_cost):
    lot = Lot.objects.select_for_update().get(pk=lot_id)
    new_initial = to_decimal(initial_quantity)
    sold = lot.initial_quantity - lot.current_quantity
    if new_initial < sold:
        raise InvalidOperation(
            f"La nueva cantidad inicial no puede ser menor que la cantidad ya vendida de este lote ({sold})"
        )
    lot.lot_number = lot_number
    lot.initial_quantity = new_initial
    lot.current_quantity = new_initial - sold
    lot.expiration_date = expiration_date
    lot.lab_cost = to_decimal(lab_cost)
    lot.save(update_fields=["lot_number", "initial_quantity", "current_quantity", "expiration_date", "lab_cost"])

