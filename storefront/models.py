from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone


class Warehouse(models.Model):
    name = models.CharField(max_length=100)
    address = models.CharField(max_length=255, blank=True, default="")
    is_default = models.BooleanField(default=False)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["is_default"],
                condition=Q(is_default=True),
                name="single_default_warehouse",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} (predeterminado)" if self.is_default else self.name


class Product(models.Model):
    barcode = models.CharField(max_length=64, unique=True, blank=True, null=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    line = models.CharField(max_length=100, blank=True, default="", help_text="Línea de producto")
    image_url = models.URLField(blank=True, default="")
    price_public = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    price_retail = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), help_text="Precio comercio"
    )
    price_wholesale = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), help_text="Precio mayorista"
    )
    min_qty_retail = models.PositiveIntegerField(null=True, blank=True, help_text="Cantidad mínima comercio")
    min_qty_wholesale = models.PositiveIntegerField(null=True, blank=True, help_text="Cantidad mínima mayorista")
    box_length_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    box_width_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    box_height_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    unit_weight_kg = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)
    units_per_box = models.PositiveIntegerField(null=True, blank=True)
    supplies = models.ManyToManyField("Supply", through="ProductSupply", related_name="products", blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def stock_total(self) -> Decimal:
        total = self.lots.aggregate(total=Sum("current_quantity")).get("total")
        return total if total is not None else Decimal("0.00")

    @property
    def has_logistics_data(self) -> bool:
        return all(
            [
                self.box_length_cm,
                self.box_width_cm,
                self.box_height_cm,
                self.unit_weight_kg,
                self.units_per_box,
            ]
        )


class Supply(models.Model):
    class Unit(models.TextChoices):
        UNITS = "unidades", "Unidades"
        GRAMS = "gramos", "Gramos"
        ML = "ml", "Mililitros"

    class Category(models.TextChoices):
        VALVE = "VALVULA", "Válvula"
        LABEL = "ETIQUETA", "Etiqueta"
        BOX = "CAJA", "Caja"
        SPECIAL = "MATERIAL ESPECIAL", "Material especial"
        CONTAINER = "ENVASE", "Envase"
        OTHER = "OTRO", "Otro"

    name = models.CharField(max_length=255)
    stock = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.UNITS)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    supplier = models.CharField(max_length=255, blank=True, default="")
    category = models.CharField(max_length=30, choices=Category.choices, blank=True, default="")
    last_purchase_at = models.DateField(null=True, blank=True)
    last_lot_ordered = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.unit})"


class ProductSupply(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="product_supplies")
    supply = models.ForeignKey(Supply, on_delete=models.CASCADE, related_name="product_supplies")
    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("1.000"))

    class Meta:
        unique_together = ("product", "supply")
        ordering = ["product__name", "supply__name"]

    def __str__(self) -> str:
        return f"{self.product} <- {self.supply} x {self.quantity}"


class Lot(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="lots")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="lots")
    lot_number = models.CharField(max_length=100)
    initial_quantity = models.DecimalField(max_digits=12, decimal_places=2)
    current_quantity = models.DecimalField(max_digits=12, decimal_places=2)
    expiration_date = models.DateField(null=True, blank=True)
    lab_cost = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), help_text="Costo de laboratorio por unidad"
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["product__name", "expiration_date", "created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "lot_number", "warehouse"], name="unique_lot_per_warehouse"
            ),
            models.CheckConstraint(condition=Q(current_quantity__gte=0), name="lot_current_not_negative"),
            models.CheckConstraint(
                condition=Q(current_quantity__lte=models.F("initial_quantity")),
                name="lot_current_within_initial",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product.name} lote {self.lot_number} @ {self.warehouse.name}: {self.current_quantity}"


class PriceList(models.Model):
    name = models.CharField(max_length=150, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class PriceListItem(models.Model):
    price_list = models.ForeignKey(PriceList, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="price_list_items")
    price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        unique_together = ("price_list", "product")
        ordering = ["price_list__name", "product__name"]

    def __str__(self) -> str:
        return f"{self.price_list} - {self.product}: {self.price}"


class Customer(models.Model):
    name = models.CharField(max_length=255, help_text="Nombre del comercio")
    representative = models.CharField(max_length=255, blank=True, default="")
    province = models.CharField(max_length=100, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    business_type = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    social_network = models.CharField(max_length=255, blank=True, default="")
    cuit = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(blank=True)
    description = models.TextField(blank=True, default="")
    price_list = models.ForeignKey(
        PriceList, on_delete=models.SET_NULL, null=True, blank=True, related_name="customers"
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer",
    )
    list_sent = models.BooleanField(default=False)
    list_sent_at = models.DateField(null=True, blank=True)
    has_stock = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Sale(models.Model):
    class Status(models.TextChoices):
        PENDING = "Pendiente", "Pendiente"
        PAID = "Pagada", "Pagada"
        SHIPPED = "Enviada", "Enviada"
        CANCELLED = "Cancelada", "Cancelada"
        ABANDONED = "Carrito Abandonado", "Carrito Abandonado"

    class SaleType(models.TextChoices):
        SALE = "Venta", "Venta"
        CONSIGNMENT = "Consignacion", "Consignación"

    class Channel(models.TextChoices):
        MERCADOLIBRE = "Mercado Libre", "Mercado Libre"
        STORE = "Tienda física", "Tienda física"
        SOCIAL = "Redes Sociales", "Redes Sociales"

    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="sales")
    date = models.DateField(default=timezone.localdate)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    sale_type = models.CharField(max_length=20, choices=SaleType.choices, default=SaleType.SALE)
    status = models.CharField(max_length=30, choices=Status.choices, default=Status.PENDING)
    channel = models.CharField(max_length=30, choices=Channel.choices, blank=True, default="")
    store = models.CharField(max_length=50, blank=True, default="")
    cost_total = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    first_payment = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_id = models.CharField(max_length=50, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="sales"
    )

    class Meta:
        ordering = ["-date", "-id"]

    def __str__(self) -> str:
        return f"Venta #{self.pk}"

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else "Consumidor Final"


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="sale_items")
    lot = models.ForeignKey(Lot, on_delete=models.PROTECT, related_name="sale_items")
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["sale__id", "id"]

    def __str__(self) -> str:
        return f"{self.product.name} x {self.quantity} (lote {self.lot.lot_number})"

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


class StockTransfer(models.Model):
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="transfers")
    source_lot = models.ForeignKey(Lot, on_delete=models.PROTECT, related_name="outgoing_transfers")
    destination_lot = models.ForeignKey(Lot, on_delete=models.PROTECT, related_name="incoming_transfers")
    from_warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="outgoing_transfers")
    to_warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="incoming_transfers")
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="stock_transfers"
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.product.name}: {self.from_warehouse.name} -> {self.to_warehouse.name} ({self.quantity})"


class SystemSetting(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


class KnowledgeItem(models.Model):
    class Category(models.TextChoices):
        GENERAL = "General", "General"
        SHIPPING = "Envíos", "Envíos"
        PAYMENTS = "Pagos", "Pagos"
        PRODUCTS = "Productos", "Productos"
        PRICES = "Precios", "Precios"
        POLICIES = "Políticas", "Políticas"
        CONTACT = "Contacto", "Contacto"

    question = models.TextField()
    answer = models.TextField()
    category = models.CharField(max_length=30, choices=Category.choices, default=Category.GENERAL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"[{self.category}] {self.question[:60]}"


class Profile(models.Model):
    class Role(models.TextChoices):
        SUPERADMIN = "superadmin", "Superadmin"
        SELLER = "vendedor", "Vendedor"
        BACKOFFICE = "administrativo", "Administrativo"
        ANALYST = "analitico", "Analítico"
        CLIENT = "cliente", "Cliente"
        COMEX = "comex", "COMEX"
        COMEX_PENDING = "comex_pending", "COMEX pendiente"

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    roles = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["user__email"]

    def __str__(self) -> str:
        return f"{self.user} [{', '.join(self.roles)}]"


class AccessRequest(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pendiente"
        APPROVED = "approved", "Aprobada"
        REJECTED = "rejected", "Rechazada"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="access_requests"
    )
    company_name = models.CharField(max_length=255)
    contact_person = models.CharField(max_length=255)
    email = models.EmailField()
    country = models.CharField(max_length=100)
    message = models.TextField(blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.company_name} ({self.status})"


class PaymentNotification(models.Model):
    topic = models.CharField(max_length=100, blank=True, default="")
    action = models.CharField(max_length=100, blank=True, default="")
    payment_id = models.CharField(max_length=50, blank=True, default="")
    outcome = models.CharField(max_length=50, blank=True, default="")
    raw_payload = models.TextField(blank=True, default="")
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-received_at"]

    def __str__(self) -> str:
        return f"{self.topic or self.action or 'notification'} @ {self.received_at:%Y-%m-%d %H:%M:%S}"
