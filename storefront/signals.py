import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import F
from django.db.models.signals import post_save
from django.dispatch import receiver

from .errors import AllocationIntegrityError, InsufficientStock
from .models import Lot, Profile, SaleItem

logger = logging.getLogger(__name__)

STOCK_TOLERANCE = Decimal("0.0001")


@receiver(post_save, sender=SaleItem)
def deduct_lot_stock(sender, instance: SaleItem, created: bool, raw: bool = False, **kwargs):
    """Decrement the item's lot when a sale item is inserted."""
    if not created or raw:
        return
    lot = Lot.objects.select_for_update().select_related("product").filter(pk=instance.lot_id).first()
    if lot is None:
        raise AllocationIntegrityError(f"Lote no encontrado: {instance.lot_id}")
    if lot.current_quantity + STOCK_TOLERANCE < instance.quantity:
        raise InsufficientStock(lot.product.name, instance.quantity, lot.current_quantity)
    Lot.objects.filter(pk=lot.pk).update(current_quantity=F("current_quantity") - instance.quantity)
    logger.debug("Lote %s descontado en %s (venta %s)", lot.pk, instance.quantity, instance.sale_id)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created: bool, raw: bool = False, **kwargs):
    if created and not raw:
        Profile.objects.get_or_create(user=instance)
