import json
import logging
import re
import uuid
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings

from . import notifications
from .errors import PaymentVerificationFailed, StorefrontError, UnknownWebhookEvent
from .models import PaymentNotification, Sale
from .utils import to_decimal

logger = logging.getLogger(__name__)

MP_BASE_URL = "https://api.mercadopago.com"
PAYMENT_EVENTS = ("payment.created", "payment.updated")
PAYABLE_STATUSES = (Sale.Status.PENDING, Sale.Status.ABANDONED)
FOUR_DIGIT_AREA_PREFIXES = ("29", "38", "37", "26")


@dataclass
class WebhookResult:
    outcome: str
    payment_id: str = ""
    sale_id: int | None = None
    notification_id: int | None = None


def _request(method: str, path: str, data=None, idempotency_key: str | None = None) -> dict:
    url = f"{MP_BASE_URL}{path}"
    body = None
    headers = {"Accept": "application/json", "Authorization": f"Bearer {settings.MP_ACCESS_TOKEN}"}
    if idempotency_key:
        headers["X-Idempotency-Key"] = idempotency_key
    if data is not None:
        body = json.dumps(data).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = Request(url, data=body, headers=headers, method=method)
    with urlopen(req, timeout=30) as resp:
        raw = resp.read()
    return json.loads(raw.decode("utf-8") or "{}")


def _provider_message(exc: HTTPError, default: str) -> str:
    try:
        data = json.loads(exc.read().decode("utf-8") or "{}")
    except (ValueError, OSError):
        return default
    cause = data.get("cause") or []
    if cause and isinstance(cause, list) and cause[0].get("description"):
        return cause[0]["description"]
    return data.get("message") or default


def parse_argentine_phone(raw: str) -> dict:
    """Split an Argentine phone number into ``area_code`` and ``number``.

    Accepts numbers with or without country code (54), mobile prefix (9),
    trunk zero and the legacy 15 prefix.
    """
    digits = re.sub(r"\D", "", raw or "")
    if digits.startswith("54"):
        digits = digits[2:]
    is_mobile = digits.startswith("9")
    if is_mobile:
        digits = digits[1:]
    if digits.startswith("0"):
        digits = digits[1:]

    if len(digits) == 10:
        if digits.startswith("11"):
            area_code, number = "11", digits[2:]
        elif digits.startswith(FOUR_DIGIT_AREA_PREFIXES):
            area_code, number = digits[:4], digits[4:]
        else:
            area_code, number = digits[:3], digits[3:]
    elif len(digits) > 7:
        logger.warning("Teléfono con longitud no estándar (%s dígitos): %s", len(digits), raw)
        area_code, number = digits[:-7], digits[-7:]
    else:
        area_code, number = "", digits

    if is_mobile:
        number = f"9{number}"
        if number.startswith("915"):
            number = f"9{number[3:]}"
    elif number.startswith("15"):
        number = number[2:]
    return {"area_code": area_code, "number": number}


def identification_for(raw: str) -> dict:
    """DNI unless the document has 11 digits (CUIT)."""
    digits = re.sub(r"\D", "", raw or "")
    return {"type": "CUIT" if len(digits) == 11 else "DNI", "number": digits}


def preference_items(lines, shipping_cost=None) -> list[dict]:
    items = [
        {
            "id": str(line.product_id),
            "title": line.product_name,
            "quantity": int(Decimal(str(line.quantity)).to_integral_value(rounding=ROUND_FLOOR)),
            "unit_price": float(to_decimal(line.unit_price)),
            "currency_id": "ARS",
        }
        for line in lines
    ]
    if shipping_cost and to_decimal(shipping_cost) > 0:
        items.append(
            {
                "id": "shipping",
                "title": "Costo de Envío",
                "quantity": 1,
                "unit_price": float(to_decimal(shipping_cost)),
                "currency_id": "ARS",
            }
        )
    return items


def _back_url(path: str) -> str:
    return f"{settings.STOREFRONT_APP_URL.rstrip('/')}{path}"


def build_preference(lines, payer, external_reference, shipping_cost=None, notification_url: str = "") -> dict:
    # Only name, surname and email are sent; phone and document are kept on the sale notes.
    preference = {
        "items": preference_items(lines, shipping_cost),
        "payer": {"name": payer.name, "surname": payer.surname, "email": payer.email},
        "external_reference": str(external_reference) if external_reference else "NO_ID",
        "back_urls": {
            "success": _back_url("/pago/exito/"),
            "failure": _back_url("/pago/error/"),
            "pending": _back_url("/pago/error/"),
        },
        "auto_return": "approved",
        "statement_descriptor": settings.MP_STATEMENT_DESCRIPTOR,
    }
    notification_url = notification_url or settings.MP_NOTIFICATION_URL
    if notification_url:
        preference["notification_url"] = notification_url
    return preference


def create_preference(lines, payer, external_reference, shipping_cost=None, notification_url: str = "") -> str:
    """Open a checkout preference for the sale and return its ``init_point``."""
    if not settings.MP_ACCESS_TOKEN:
        raise StorefrontError("Falta configurar MP_ACCESS_TOKEN.", code="payment_config")
    preference = build_preference(lines, payer, external_reference, shipping_cost, notification_url)
    try:
        data = _request("POST", "/checkout/preferences", data=preference, idempotency_key=str(uuid.uuid4()))
    except HTTPError as exc:
        message = _provider_message(exc, "No se pudo crear la preferencia de pago.")
        logger.error("Mercado Pago rechazó la preferencia de la venta %s: %s", external_reference, message)
        raise StorefrontError(f"Error de conexión con Mercado Pago: {message}", code="payment_provider") from exc
    except URLError as exc:
        logger.error("Mercado Pago no disponible: %s", exc)
        raise StorefrontError(f"Error de conexión con Mercado Pago: {exc.reason}", code="payment_provider") from exc
    init_point = data.get("init_point")
    if not init_point:
        raise StorefrontError("El servicio de pago no devolvió un link válido.", code="payment_provider")
    logger.info("Preferencia creada para la venta %s", external_reference)
    return init_point


def process_payment(form_data: dict, external_reference) -> dict:
    """Charge a card payment collected by the checkout brick."""
    payer = form_data.get("payer") or {}
    phone = payer.get("phone") or {}
    if isinstance(phone, str):
        phone = parse_argentine_phone(phone)
    body = dict(form_data)
    body["external_reference"] = str(external_reference)
    body["statement_descriptor"] = settings.MP_STATEMENT_DESCRIPTOR
    body["additional_info"] = {
        "items": (form_data.get("additional_info") or {}).get("items", []),
        "payer": {
            "first_name": payer.get("first_name"),
            "last_name": payer.get("last_name"),
            "phone": {"area_code": phone.get("area_code"), "number": phone.get("number")},
            "address": payer.get("address"),
        },
        "shipments": {"receiver_address": payer.get("address")},
    }
    if payer.get("identification"):
        doc = payer["identification"]
        number = doc.get("number") if isinstance(doc, dict) else doc
        body["payer"] = {**payer, "identification": identification_for(str(number))}
    try:
        result = _request("POST", "/v1/payments", data=body, idempotency_key=str(uuid.uuid4()))
    except HTTPError as exc:
        message = _provider_message(exc, "Error procesando el pago en Mercado Pago")
        logger.error("Pago rechazado para la venta %s: %s", external_reference, message)
        raise StorefrontError(message, code="payment_provider") from exc
    logger.info("Pago procesado para la venta %s, estado %s", external_reference, result.get("status"))
    return result


def get_payment(payment_id: str) -> dict:
    try:
        return _request("GET", f"/v1/payments/{payment_id}")
    except HTTPError as exc:
        raise PaymentVerificationFailed(
            f"No se pudo verificar el pago {payment_id}. Estado HTTP: {exc.code}", details=str(exc)
        ) from exc
    except (URLError, ValueError) as exc:
        raise PaymentVerificationFailed(f"No se pudo verificar el pago {payment_id}.", details=str(exc)) from exc


def _payment_id_from(payload: dict) -> str:
    data = payload.get("data") or {}
    payment_id = data.get("id") if isinstance(data, dict) else None
    if not payment_id and payload.get("topic") == "payment":
        payment_id = payload.get("id") or payload.get("resource")
    return str(payment_id or "").rstrip("/").split("/")[-1]


def _is_payment_event(payload: dict) -> bool:
    return payload.get("topic") == "payment" or payload.get("type") == "payment" or payload.get("action") in PAYMENT_EVENTS


def apply_approved_payment(payment: dict) -> WebhookResult:
    """Move the referenced sale to Pagada; repeated deliveries change nothing."""
    payment_id = str(payment.get("id", ""))
    reference = str(payment.get("external_reference") or "")
    if not reference.isdigit():
        logger.warning("Pago %s aprobado sin referencia de venta válida (%r)", payment_id, reference)
        return WebhookResult("no_reference", payment_id)
    sale_id = int(reference)
    updated = Sale.objects.filter(pk=sale_id, status__in=PAYABLE_STATUSES).update(
        status=Sale.Status.PAID,
        payment_id=payment_id,
        notes=f"Pagado vía Mercado Pago (ID: {payment_id}).",
    )
    if not updated:
        if Sale.objects.filter(pk=sale_id).exists():
            logger.info("Pago %s ya aplicado a la venta %s", payment_id, sale_id)
            return WebhookResult("duplicate", payment_id, sale_id)
        logger.warning("Pago %s referencia una venta inexistente: %s", payment_id, sale_id)
        return WebhookResult("no_reference", payment_id, sale_id)
    logger.info("Venta %s marcada como Pagada (pago %s)", sale_id, payment_id)
    notifications.send_payment_approved_email(payment)
    return WebhookResult("approved", payment_id, sale_id)


def handle_webhook(payload: dict, raw_body: str = "") -> WebhookResult:
    """Process a Mercado Pago notification.

    The payment status is always fetched from Mercado Pago; the status in the
    payload is never used. Anything outside the approval path is logged and
    reported back as an outcome so the caller can acknowledge it.
    """
    notification = PaymentNotification.objects.create(
        topic=str(payload.get("topic") or payload.get("type") or ""),
        action=str(payload.get("action") or ""),
        raw_payload=raw_body or json.dumps(payload),
    )
    result = _handle(payload)
    result.notification_id = notification.pk
    notification.payment_id = result.payment_id
    notification.outcome = result.outcome
    notification.save(update_fields=["payment_id", "outcome"])
    return result


def _handle(payload: dict) -> WebhookResult:
    try:
        if not _is_payment_event(payload):
            raise UnknownWebhookEvent(
                f"Evento ignorado: topic={payload.get('topic')} type={payload.get('type')} action={payload.get('action')}"
            )
        payment_id = _payment_id_from(payload)
        if not payment_id:
            logger.warning("Notificación de pago sin ID: %s", payload)
            return WebhookResult("no_payment_id")
        payment = get_payment(payment_id)
    except UnknownWebhookEvent as exc:
        logger.info(exc.message)
        return WebhookResult("ignored")
    except PaymentVerificationFailed as exc:
        logger.error("%s (%s)", exc.message, exc.details)
        return WebhookResult("verification_failed", _payment_id_from(payload))

    if payment.get("status") != "approved":
        logger.info("Pago %s con estado %s, sin cambios", payment_id, payment.get("status"))
        return WebhookResult("not_approved", payment_id)
    return apply_approved_payment(payment)
