import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)

EMAIL_TEMPLATE = "storefront/emails/payment_approved.html"


def payment_email_context(payment: dict) -> dict:
    items = []
    for item in (payment.get("additional_info") or {}).get("items") or []:
        quantity = item.get("quantity") or 0
        unit_price = item.get("unit_price") or 0
        items.append(
            {
                "title": item.get("title", ""),
                "quantity": quantity,
                "unit_price": unit_price,
                "line_total": float(unit_price) * float(quantity),
            }
        )
    return {
        "payment_id": payment.get("id"),
        "reference": payment.get("external_reference") or "N/A",
        "items": items,
        "total": payment.get("transaction_amount") or 0,
        "payer": payment.get("payer") or {},
        "shipping": (payment.get("shipments") or {}).get("receiver_address") or {},
    }


def send_payment_approved_email(payment: dict) -> bool:
    """Notify the order-prep inbox that a payment was approved.

    Failures are logged and never propagate: the sale is already marked paid.
    """
    recipient = settings.ORDER_PREP_EMAIL
    if not recipient:
        logger.info("ORDER_PREP_EMAIL sin configurar, no se envía aviso del pago %s", payment.get("id"))
        return False
    reference = str(payment.get("external_reference") or "")
    subject = f"Nuevo Pedido Aprobado - Orden #{reference[:8] or 'N/A'}"
    html = render_to_string(EMAIL_TEMPLATE, payment_email_context(payment))
    try:
        send_mail(
            subject,
            strip_tags(html),
            settings.DEFAULT_FROM_EMAIL,
            [recipient],
            html_message=html,
        )
    except (SMTPException, OSError) as exc:
        logger.error("No se pudo enviar el aviso del pago %s: %s", payment.get("id"), exc)
        return False
    logger.info("Aviso de pago %s enviado a %s", payment.get("id"), recipient)
    return True
