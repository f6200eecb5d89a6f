"""Cart to lot allocation.

Pure functions: given cart lines and a snapshot of each product's lots, decide
which lot supplies how many units. Nothing here touches the database; the sale
writer persists the result and the stock deduction happens when items are
inserted.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal

from .errors import AllocationIntegrityError, InsufficientStock
from .utils import whole_units


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: Decimal | int
    unit_price: Decimal
    product_name: str = ""


@dataclass(frozen=True)
class LotSnapshot:
    lot_id: int
    remaining: Decimal
    expiration_date: date | None = None
    created_at: datetime | None = None
    warehouse_id: int | None = None


@dataclass(frozen=True)
class Allocation:
    product_id: int
    lot_id: int
    quantity: Decimal
    unit_price: Decimal


def _sort_key(lot: LotSnapshot):
    # Undated lots go after every dated lot; created_at then id keep the order stable.
    return (
        lot.expiration_date is None,
        lot.expiration_date or date.max,
        lot.created_at is None,
        lot.created_at or datetime.max,
        lot.lot_id,
    )


def order_lots(lots):
    return sorted(lots, key=_sort_key)


def usable_lots(lots) -> list[tuple[LotSnapshot, int]]:
    """Return ``(lot, whole_units)`` pairs in consumption order, skipping lots under one unit."""
    usable = []
    for lot in order_lots(lots):
        units = whole_units(lot.remaining)
        if units >= 1:
            usable.append((lot, units))
    return usable


def available_quantity(lots) -> int:
    return sum(units for _, units in usable_lots(lots))


def allocate_line(line: CartLine, lots) -> list[Allocation]:
    """Drain usable lots in order until ``line.quantity`` is covered.

    Lots count only their whole units, but the request itself is not rounded:
    2.5 units come out of a lot holding 3.
    """
    requested = Decimal(str(line.quantity))
    if requested <= 0:
        return []

    available = available_quantity(lots)
    if available < requested:
        raise InsufficientStock(line.product_name or f"producto {line.product_id}", requested, available)

    remaining = requested
    allocations = []
    for lot, units in usable_lots(lots):
        if remaining <= 0:
            break
        take = min(Decimal(units), remaining)
        allocations.append(Allocation(line.product_id, lot.lot_id, take, line.unit_price))
        remaining -= take

    if remaining > 0:
        raise AllocationIntegrityError(
            f"No se pudo asignar stock completo para {line.product_name or line.product_id}. Faltan {remaining}",
            details=f"requested={requested} remaining={remaining}",
        )
    return allocations


def allocate_cart(lines, lots_by_product: dict) -> list[Allocation]:
    """Allocate every cart line, failing as a whole if any line cannot be covered.

    Lines of the same product share their lots: what an earlier line took is
    no longer available to the next one.
    """
    taken: dict[int, Decimal] = {}
    allocations = []
    for line in lines:
        lots = [
            replace(lot, remaining=lot.remaining - taken.get(lot.lot_id, Decimal("0")))
            for lot in lots_by_product.get(line.product_id, [])
        ]
        line_allocations = allocate_line(line, lots)
        for allocation in line_allocations:
            taken[allocation.lot_id] = taken.get(allocation.lot_id, Decimal("0")) + allocation.quantity
        allocations.extend(line_allocations)
    return allocations
