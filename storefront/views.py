import decimal
import json
import logging
from functools import wraps

from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import accounts, comex, knowledge, mercadopago, pricing, reporting, sales, services
from .accounts import Role, role_required
from .allocation import CartLine
from .errors import InvalidOperation, StorefrontError
from .models import AccessRequest, Customer, KnowledgeItem, Lot, Product, Sale, Supply, Warehouse
from .utils import CENTS, to_decimal

logger = logging.getLogger(__name__)

BACKOFFICE_ROLES = (Role.SUPERADMIN, Role.SELLER, Role.BACKOFFICE)
REPORT_ROLES = (Role.SUPERADMIN, Role.BACKOFFICE, Role.ANALYST)
COMEX_ROLES = (Role.SUPERADMIN, Role.COMEX)


def json_errors(view):
    """Render storefront errors as JSON with their status code."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except StorefrontError as exc:
            return JsonResponse(exc.as_dict(), status=exc.http_status)

    return wrapper


def _payload(request) -> dict:
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidOperation("JSON inválido.", details=str(exc)) from exc
        if not isinstance(data, dict):
            raise InvalidOperation("Se esperaba un objeto JSON.")
        return data
    return request.POST.dict()


def _date_or_none(value):
    if not value:
        return None
    parsed = parse_date(str(value))
    if parsed is None:
        raise InvalidOperation(f"Fecha inválida: {value}")
    return parsed


def _flag(value, default: bool = False) -> bool:
    """Read a checkbox-like value; form posts send "false"/"0" as text."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("0", "false", "no", "off")


def _sale_lines(items) -> list[CartLine]:
    if not isinstance(items, list):
        raise InvalidOperation("Los ítems de la venta deben ser una lista.")
    parsed = []
    for item in items:
        try:
            product_id = int(item["product_id"])
            quantity = decimal.Decimal(str(item.get("quantity") or 0))
            price = item.get("unit_price")
            unit_price = to_decimal(price) if price not in (None, "") else None
            # SaleItem keeps two decimals; anything finer would not match the lot decrement.
            exact = quantity.is_finite() and quantity == quantity.quantize(CENTS)
        except (KeyError, TypeError, ValueError, AttributeError, decimal.InvalidOperation) as exc:
            raise InvalidOperation(f"Ítem de venta inválido: {item}", details=str(exc)) from exc
        if not exact or quantity <= 0:
            raise InvalidOperation(f"Cantidad inválida en el ítem: {item}")
        if unit_price is not None and (not unit_price.is_finite() or unit_price < 0):
            raise InvalidOperation(f"Precio inválido en el ítem: {item}")
        parsed.append((product_id, quantity, unit_price))

    products = Product.objects.in_bulk([product_id for product_id, _, _ in parsed])
    lines = []
    for product_id, quantity, unit_price in parsed:
        product = products.get(product_id)
        if product is None:
            raise InvalidOperation(f"Producto inexistente: {product_id}")
        if unit_price is None:
            unit_price = pricing.dynamic_price(product, quantity)
        lines.append(CartLine(product.pk, quantity, unit_price, product.name))
    return lines


def _lot_dict(lot: Lot) -> dict:
    return {
        "id": lot.pk,
        "lot_number": lot.lot_number,
        "warehouse_id": lot.warehouse_id,
        "warehouse_name": lot.warehouse.name,
        "initial_quantity": lot.initial_quantity,
        "current_quantity": lot.current_quantity,
        "expiration_date": lot.expiration_date,
        "lab_cost": lot.lab_cost,
    }


def _warehouse_dict(warehouse: Warehouse) -> dict:
    return {
        "id": warehouse.pk,
        "name": warehouse.name,
        "address": warehouse.address,
        "is_default": warehouse.is_default,
    }


def _supply_dict(supply: Supply) -> dict:
    return {
        "id": supply.pk,
        "name": supply.name,
        "stock": supply.stock,
        "unit": supply.unit,
        "unit_cost": supply.unit_cost,
        "supplier": supply.supplier,
        "category": supply.category,
        "last_purchase_at": supply.last_purchase_at,
        "last_lot_ordered": supply.last_lot_ordered,
    }


def _knowledge_dict(item: KnowledgeItem) -> dict:
    return {"id": item.pk, "question": item.question, "answer": item.answer, "category": item.category}


# --- Catalog and stock ---------------------------------------------------


@role_required(*BACKOFFICE_ROLES, Role.ANALYST)
@require_http_methods(["GET"])
def products_stock(request):
    products = [
        {
            "id": product.pk,
            "barcode": product.barcode,
            "name": product.name,
            "line": product.line,
            "price_public": product.price_public,
            "price_retail": product.price_retail,
            "price_wholesale": product.price_wholesale,
            "stock": product.stock,
            "lots": [_lot_dict(lot) for lot in product.lots.all()],
        }
        for product in services.products_with_stock()
    ]
    return JsonResponse({"products": products})


@require_http_methods(["GET"])
def public_price_list(request):
    return JsonResponse({"lines": pricing.public_price_list(), "thresholds": pricing.get_thresholds()})


@login_required
@require_http_methods(["GET"])
def customer_price_list(request):
    customer = Customer.objects.filter(user=request.user).select_related("price_list").first()
    if customer is None:
        return JsonResponse({"error": "not_found", "message": "El usuario no tiene un cliente asociado."}, status=404)
    return JsonResponse(
        {
            "customer": customer.name,
            "price_list": customer.price_list.name if customer.price_list else None,
            "lines": pricing.customer_price_list(customer),
        }
    )


# --- Checkout and payments -----------------------------------------------


@csrf_exempt
@require_http_methods(["POST"])
@json_errors
def checkout(request):
    data = _payload(request)
    payer_data = data.get("payer") or {}
    try:
        payer = sales.Payer(**payer_data)
    except TypeError as exc:
        raise InvalidOperation("Datos del comprador incompletos.", details=str(exc)) from exc
    order = sales.place_web_order(
        data.get("items") or {},
        payer,
        payment_method=data.get("payment_method") or pricing.PAYMENT_MERCADOPAGO,
        store=data.get("store") or "",
    )
    return JsonResponse(
        {
            "sale_id": order.sale.pk,
            "status": order.sale.status,
            "subtotal": order.sale.subtotal,
            "total": order.sale.total,
            "init_point": order.init_point,
        },
        status=201,
    )


@csrf_exempt
@require_http_methods(["POST"])
@json_errors
def process_payment(request):
    data = _payload(request)
    sale = get_object_or_404(Sale, pk=data.get("sale_id"))
    result = mercadopago.process_payment(data.get("form_data") or {}, sale.pk)
    return JsonResponse({"id": result.get("id"), "status": result.get("status"), "detail": result.get("status_detail")})


@csrf_exempt
@require_http_methods(["GET", "POST"])
def mercadopago_webhook(request):
    payload = request.GET.dict()
    raw_body = request.body.decode("utf-8", errors="replace") if request.body else ""
    if raw_body:
        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError:
            logger.warning("Webhook de Mercado Pago con JSON inválido: %r", raw_body[:200])
            return HttpResponse("OK")
        if isinstance(body, dict):
            payload.update(body)
    if not payload:
        return HttpResponse("OK")
    try:
        result = mercadopago.handle_webhook(payload, raw_body)
    except StorefrontError as exc:
        logger.error("Error procesando webhook de Mercado Pago: %s", exc.message)
        return HttpResponse("OK")
    return HttpResponse(f"OK:{result.outcome}")


@require_http_methods(["GET"])
def payment_success(request):
    return HttpResponse("¡Gracias por tu compra! Tu pago fue aprobado y estamos preparando el pedido.")


@require_http_methods(["GET"])
def payment_failure(request):
    return HttpResponse("No pudimos procesar el pago. Podés intentarlo nuevamente o elegir otro medio de pago.")


# --- Sales ---------------------------------------------------------------


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def sale_create(request):
    data = _payload(request)
    customer = None
    if data.get("customer_id"):
        customer = get_object_or_404(Customer, pk=data["customer_id"])
    lines = _sale_lines(data.get("items") or [])
    if not lines:
        raise InvalidOperation("La venta no tiene ítems.")
    sale = sales.create_backoffice_sale(
        customer,
        lines,
        user=request.user,
        apply_vat=_flag(data.get("apply_vat"), default=True),
        sale_type=data.get("sale_type") or Sale.SaleType.SALE,
        status=data.get("status") or Sale.Status.PENDING,
        channel=data.get("channel") or "",
        notes=data.get("notes") or "",
    )
    return JsonResponse({"id": sale.pk, "subtotal": sale.subtotal, "tax": sale.tax, "total": sale.total}, status=201)


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def sale_delete(request, sale_id: int):
    sale = get_object_or_404(Sale, pk=sale_id)
    sales.delete_sale(sale)
    return JsonResponse({"ok": True})


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def sale_status_update(request, sale_id: int):
    sale = get_object_or_404(Sale, pk=sale_id)
    sales.update_sale_status(sale, (_payload(request).get("status") or "").strip())
    return JsonResponse({"ok": True, "status": sale.status, "label": sale.get_status_display()})


# --- Warehouses, transfers and production --------------------------------


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["GET", "POST"])
@json_errors
def warehouses(request):
    if request.method == "POST":
        data = _payload(request)
        warehouse = services.save_warehouse(
            data.get("name") or "", data.get("address") or "", _flag(data.get("is_default"))
        )
        return JsonResponse(_warehouse_dict(warehouse), status=201)
    return JsonResponse({"warehouses": [_warehouse_dict(w) for w in Warehouse.objects.order_by("name")]})


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def warehouse_update(request, pk: int):
    warehouse = get_object_or_404(Warehouse, pk=pk)
    data = _payload(request)
    warehouse = services.save_warehouse(
        data.get("name") or warehouse.name,
        data.get("address", warehouse.address),
        _flag(data.get("is_default")),
        warehouse=warehouse,
    )
    return JsonResponse(_warehouse_dict(warehouse))


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def warehouse_delete(request, pk: int):
    services.delete_warehouse(get_object_or_404(Warehouse, pk=pk))
    return JsonResponse({"ok": True})


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["GET", "POST"])
@json_errors
def stock_transfers(request):
    if request.method == "GET":
        return JsonResponse({"transfers": services.transfer_history()})
    data = _payload(request)
    lot = get_object_or_404(Lot.objects.select_related("product"), pk=data.get("lot_id"))
    destination = get_object_or_404(Warehouse, pk=data.get("destination_warehouse_id"))
    transfer_id = services.transfer_stock(
        lot, destination, data.get("quantity"), user=request.user, notes=data.get("notes") or ""
    )
    return JsonResponse({"id": transfer_id}, status=201)


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def production_register(request):
    data = _payload(request)
    product = get_object_or_404(Product, pk=data.get("product_id"))
    lot = services.register_production(
        product,
        data.get("quantity"),
        data.get("lot_number") or "",
        expiration_date=_date_or_none(data.get("expiration_date")),
        lab_cost=data.get("lab_cost") or 0,
    )
    return JsonResponse(_lot_dict(lot), status=201)


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def production_update(request, lot_id: int):
    lot = get_object_or_404(Lot.objects.select_related("warehouse"), pk=lot_id)
    data = _payload(request)
    lot = services.update_production(
        lot,
        data.get("lot_number") or lot.lot_number,
        data.get("initial_quantity", lot.initial_quantity),
        expiration_date=_date_or_none(data.get("expiration_date")),
        lab_cost=data.get("lab_cost", lot.lab_cost),
    )
    return JsonResponse(_lot_dict(lot))


# --- Supplies ------------------------------------------------------------


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["GET", "POST"])
@json_errors
def supplies(request):
    if request.method == "POST":
        data = _payload(request)
        supply = services.save_supply(data, product_ids=data.get("product_ids"))
        return JsonResponse(_supply_dict(supply), status=201)
    return JsonResponse({"supplies": [_supply_dict(s) for s in Supply.objects.order_by("name")]})


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def supply_update(request, pk: int):
    supply = get_object_or_404(Supply, pk=pk)
    data = _payload(request)
    supply = services.save_supply(data, product_ids=data.get("product_ids"), supply=supply)
    return JsonResponse(_supply_dict(supply))


@role_required(*BACKOFFICE_ROLES)
@require_http_methods(["POST"])
@json_errors
def supply_add_stock(request, pk: int):
    supply = get_object_or_404(Supply, pk=pk)
    data = _payload(request)
    supply = services.add_supply_stock(
        supply,
        data.get("quantity"),
        data.get("new_cost", supply.unit_cost),
        lot_number=data.get("lot_number") or "",
        purchase_date=_date_or_none(data.get("purchase_date")) or timezone.localdate(),
    )
    return JsonResponse(_supply_dict(supply))


# --- Prices --------------------------------------------------------------


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["POST"])
@json_errors
def price_list_create(request):
    data = _payload(request)
    prices = [(int(item["product_id"]), item["price"]) for item in data.get("items") or []]
    price_list = pricing.create_price_list_with_products(data.get("name") or "", prices)
    return JsonResponse({"id": price_list.pk, "name": price_list.name, "items": len(prices)}, status=201)


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["GET", "POST"])
@json_errors
def price_thresholds(request):
    if request.method == "POST":
        data = _payload(request)
        pricing.save_thresholds(data.get("retail"), data.get("wholesale"))
    return JsonResponse(pricing.get_thresholds())


# --- Dashboards ----------------------------------------------------------


@role_required(*REPORT_ROLES)
@require_http_methods(["GET"])
@json_errors
def dashboard(request):
    return JsonResponse(reporting.dashboard_stats())


@role_required(*REPORT_ROLES)
@require_http_methods(["GET"])
@json_errors
def product_statistics(request):
    return JsonResponse({"products": reporting.product_statistics()})


@role_required(*REPORT_ROLES)
@require_http_methods(["GET"])
def product_dashboard(request, pk: int):
    product = get_object_or_404(Product, pk=pk)
    data = reporting.product_dashboard(product)
    return JsonResponse(
        {
            "product_id": product.pk,
            "name": product.name,
            "supplies_cost": data.supplies_cost,
            "recent_lab_cost": data.recent_lab_cost,
            "total_cost": data.total_cost,
            "net_profit": data.net_profit,
            "margin": data.margin,
            "units_sold": data.units_sold,
            "revenue": data.revenue,
            "average_price": data.average_price,
            "last_sale_date": data.last_sale_date,
            "stock_total": data.stock_total,
            "supplies_detail": data.supplies_detail,
            "stock_by_warehouse": data.stock_by_warehouse,
            "sales_by_day": data.sales_by_day,
            "sales_by_month": data.sales_by_month,
            "sales_by_year": data.sales_by_year,
        }
    )


# --- COMEX ---------------------------------------------------------------


@role_required(*COMEX_ROLES)
@require_http_methods(["GET"])
def comex_sheet(request):
    sheet = comex.comex_price_sheet(request.GET.get("usd") or None, request.GET.get("brl") or None)
    lines = {line: [vars(row) for row in rows] for line, rows in sheet.items()}
    return JsonResponse({"rates": comex.exchange_rates(), "lines": lines})


@role_required(Role.SUPERADMIN)
@require_http_methods(["POST"])
@json_errors
def comex_rates(request):
    data = _payload(request)
    try:
        comex.save_exchange_rates(data["usd"], data["brl"])
    except (KeyError, ArithmeticError) as exc:
        raise InvalidOperation("Cotizaciones inválidas.", details=str(exc)) from exc
    return JsonResponse(comex.exchange_rates())


@login_required
@require_http_methods(["POST"])
@json_errors
def access_request_create(request):
    data = _payload(request)
    access_request = accounts.request_comex_access(
        request.user,
        data.get("company_name") or "",
        data.get("contact_person") or "",
        data.get("email") or request.user.email,
        data.get("country") or "",
        data.get("message") or "",
    )
    return JsonResponse({"id": access_request.pk, "status": access_request.status}, status=201)


@role_required(Role.SUPERADMIN)
@require_http_methods(["GET"])
def access_requests(request):
    rows = [
        {
            "id": r.pk,
            "company_name": r.company_name,
            "contact_person": r.contact_person,
            "email": r.email,
            "country": r.country,
            "message": r.message,
            "created_at": r.created_at,
        }
        for r in accounts.pending_access_requests(request.user)
    ]
    return JsonResponse({"requests": rows})


@role_required(Role.SUPERADMIN)
@require_http_methods(["POST"])
@json_errors
def access_request_approve(request, pk: int):
    accounts.approve_access_request(request.user, get_object_or_404(AccessRequest, pk=pk))
    return JsonResponse({"ok": True})


@role_required(Role.SUPERADMIN)
@require_http_methods(["POST"])
@json_errors
def access_request_reject(request, pk: int):
    accounts.reject_access_request(request.user, get_object_or_404(AccessRequest, pk=pk))
    return JsonResponse({"ok": True})


# --- Users ---------------------------------------------------------------


@role_required(Role.SUPERADMIN)
@require_http_methods(["GET"])
@json_errors
def users(request):
    return JsonResponse({"users": accounts.list_users(request.user)})


@role_required(Role.SUPERADMIN)
@require_http_methods(["POST"])
@json_errors
def user_roles_update(request, pk: int):
    user = get_object_or_404(get_user_model(), pk=pk)
    roles = _payload(request).get("roles") or []
    if isinstance(roles, str):
        roles = [role.strip() for role in roles.split(",") if role.strip()]
    accounts.update_user_roles(request.user, user, roles)
    return JsonResponse({"ok": True, "roles": user.profile.roles if hasattr(user, "profile") else roles})


# --- Knowledge base ------------------------------------------------------


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["GET", "POST"])
@json_errors
def knowledge_items(request):
    if request.method == "POST":
        data = _payload(request)
        item = knowledge.save_item(
            data.get("question"), data.get("answer"), data.get("category") or KnowledgeItem.Category.GENERAL
        )
        return JsonResponse(_knowledge_dict(item), status=201)
    items = knowledge.search(request.GET.get("q", ""), request.GET.get("category", ""))
    return JsonResponse({"items": [_knowledge_dict(item) for item in items]})


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["POST"])
@json_errors
def knowledge_item_update(request, pk: int):
    item = get_object_or_404(KnowledgeItem, pk=pk)
    data = _payload(request)
    item = knowledge.save_item(
        data.get("question", item.question),
        data.get("answer", item.answer),
        data.get("category") or item.category,
        item=item,
    )
    return JsonResponse(_knowledge_dict(item))


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["POST"])
def knowledge_item_delete(request, pk: int):
    get_object_or_404(KnowledgeItem, pk=pk).delete()
    return JsonResponse({"ok": True})


@role_required(Role.SUPERADMIN, Role.BACKOFFICE)
@require_http_methods(["GET"])
def knowledge_export(request):
    response = HttpResponse(knowledge.export_training_jsonl(), content_type="application/jsonl; charset=utf-8")
    response["Content-Disposition"] = 'attachment; filename="entrenamiento.jsonl"'
    return response


@csrf_exempt
@require_http_methods(["POST"])
@json_errors
def assistant_chat(request):
    data = _payload(request)
    history = request.session.get("assistant_history", [])
    reply = knowledge.ask_assistant(data.get("message") or "", history)
    history.append({"role": "user", "content": data.get("message")})
    history.append({"role": "assistant", "content": reply})
    request.session["assistant_history"] = history[-knowledge.HISTORY_LIMIT:]
    return JsonResponse({"reply": reply})
