import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .models import Lot, Product, ProductSupply, Sale, SaleItem, Supply
from .procedures import call, procedure

ZERO = Decimal("0.00")


@dataclass
class ProductDashboard:
    product: Product
    supplies_cost: Decimal
    recent_lab_cost: Decimal
    total_cost: Decimal
    net_profit: Decimal
    margin: Decimal
    units_sold: Decimal
    revenue: Decimal
    average_price: Decimal
    last_sale_date: date | None
    stock_total: Decimal
    supplies_detail: list = field(default_factory=list)
    stock_by_warehouse: list = field(default_factory=list)
    sales_by_day: dict = field(default_factory=dict)
    sales_by_month: dict = field(default_factory=dict)
    sales_by_year: dict = field(default_factory=dict)


def _q(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def months_ago(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def margin_percent(price: Decimal, cost: Decimal) -> Decimal:
    """(price - cost) / price as a percentage; 0 when the price is not positive."""
    if price is None or price <= 0:
        return ZERO
    return _q((price - cost) / price * Decimal("100"))


def supplies_cost(product: Product) -> tuple[Decimal, list]:
    """Bill-of-materials cost at current supply prices."""
    detail = []
    total = ZERO
    for link in ProductSupply.objects.filter(product=product).select_related("supply"):
        line_cost = link.quantity * (link.supply.unit_cost or ZERO)
        total += line_cost
        detail.append(
            {
                "id": link.supply_id,
                "name": link.supply.name,
                "quantity": link.quantity,
                "unit": link.supply.unit,
                "cost": _q(line_cost),
            }
        )
    return _q(total), detail


def recent_lab_cost(product: Product) -> Decimal:
    lot = Lot.objects.filter(product=product).order_by("-created_at", "-id").first()
    return lot.lab_cost if lot else ZERO


def unit_cost(product: Product) -> Decimal:
    return supplies_cost(product)[0] + recent_lab_cost(product)


def bucket_sales(rows, today: date) -> tuple[dict, dict, dict]:
    """Split ``(sale_date, quantity)`` rows into day, month and year totals."""
    day_start = today - timedelta(days=30)
    month_start = months_ago(today, 12)
    by_day, by_month, by_year = {}, {}, {}
    for sale_date, quantity in rows:
        year = str(sale_date.year)
        by_year[year] = by_year.get(year, ZERO) + quantity
        if sale_date >= month_start:
            month = f"{sale_date.year}-{sale_date.month:02d}"
            by_month[month] = by_month.get(month, ZERO) + quantity
        if sale_date >= day_start:
            day = sale_date.isoformat()
            by_day[day] = by_day.get(day, ZERO) + quantity
    return by_day, by_month, by_year


def product_dashboard(product: Product, today: date | None = None) -> ProductDashboard:
    today = today or timezone.localdate()
    bom_cost, detail = supplies_cost(product)
    lab_cost = recent_lab_cost(product)
    total_cost = bom_cost + lab_cost
    price = product.price_public

    rows = list(SaleItem.objects.filter(product=product).values_list("sale__date", "quantity", "unit_price"))
    units = sum((qty for _, qty, _ in rows), ZERO)
    revenue = sum((qty * unit_price for _, qty, unit_price in rows), ZERO)
    last_sale = max((sale_date for sale_date, _, _ in rows), default=None)
    by_day, by_month, by_year = bucket_sales([(d, qty) for d, qty, _ in rows], today)

    stock_by_warehouse = list(
        Lot.objects.filter(product=product)
        .values("warehouse_id", "warehouse__name")
        .annotate(stock=Sum("current_quantity"))
        .order_by("warehouse__name")
    )
    return ProductDashboard(
        product=product,
        supplies_cost=bom_cost,
        recent_lab_cost=lab_cost,
        total_cost=total_cost,
        net_profit=price - total_cost,
        margin=margin_percent(price, total_cost),
        units_sold=units,
        revenue=_q(revenue),
        average_price=_q(revenue / units) if units > 0 else ZERO,
        last_sale_date=last_sale,
        stock_total=sum((row["stock"] or ZERO for row in stock_by_warehouse), ZERO),
        supplies_detail=detail,
        stock_by_warehouse=stock_by_warehouse,
        sales_by_day=by_day,
        sales_by_month=by_month,
        sales_by_year=by_year,
    )


@procedure("product_statistics")
def _product_statistics():
    today = timezone.localdate()
    sold = {
        row["product_id"]: row
        for row in SaleItem.objects.values("product_id").annotate(
            total=Sum("quantity"),
            month=Coalesce(
                Sum("quantity", filter=Q(sale__date__year=today.year, sale__date__month=today.month)),
                ZERO,
            ),
        )
    }
    stats = []
    for product in Product.objects.order_by("name"):
        cost = unit_cost(product)
        row = sold.get(product.pk, {})
        total_sold = row.get("total") or ZERO
        profit_unit = {
            "public": product.price_public - cost,
            "retail": product.price_retail - cost,
            "wholesale": product.price_wholesale - cost,
        }
        stats.append(
            {
                "product_id": product.pk,
                "name": product.name,
                "sold_this_month": row.get("month") or ZERO,
                "sold_total": total_sold,
                "unit_cost": cost,
                "profit_total_public": profit_unit["public"] * total_sold,
                "profit_total_retail": profit_unit["retail"] * total_sold,
                "profit_total_wholesale": profit_unit["wholesale"] * total_sold,
                "profit_unit_public": profit_unit["public"],
                "profit_unit_retail": profit_unit["retail"],
                "profit_unit_wholesale": profit_unit["wholesale"],
            }
        )
    return stats


@procedure("dashboard_stats")
def _dashboard_stats():
    today = timezone.localdate()
    low_products = (
        Product.objects.annotate(stock=Sum("lots__current_quantity"))
        .filter(stock__isnull=False, stock__lt=settings.STOREFRONT_LOW_STOCK_PRODUCTS)
        .order_by("stock", "name")
    )
    low_supplies = Supply.objects.filter(stock__lt=settings.STOREFRONT_LOW_STOCK_SUPPLIES).order_by("stock", "name")
    return {
        "sales_count": Sale.objects.count(),
        "revenue_year": Sale.objects.filter(date__year=today.year).aggregate(total=Coalesce(Sum("total"), ZERO))[
            "total"
        ],
        "lot_stock_total": Lot.objects.aggregate(total=Coalesce(Sum("current_quantity"), ZERO))["total"],
        "supply_count": Supply.objects.count(),
        "low_stock_products": [{"id": p.pk, "name": p.name, "stock": p.stock} for p in low_products],
        "low_stock_supplies": [
            {"id": s.pk, "name": s.name, "stock": s.stock, "unit": s.unit} for s in low_supplies
        ],
    }


def product_statistics() -> list[dict]:
    return call("product_statistics")


def dashboard_stats() -> dict:
    return call("dashboard_stats")
