from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                ("is_default", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_default", True)),
                        fields=("is_default",),
                        name="single_default_warehouse",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Supply",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("stock", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("unit", models.CharField(choices=[("unidades", "Unidades"), ("gramos", "Gramos"), ("ml", "Mililitros")], default="unidades", max_length=20)),
                ("unit_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("supplier", models.CharField(blank=True, default="", max_length=255)),
                ("category", models.CharField(blank=True, choices=[("VALVULA", "Válvula"), ("ETIQUETA", "Etiqueta"), ("CAJA", "Caja"), ("MATERIAL ESPECIAL", "Material especial"), ("ENVASE", "Envase"), ("OTRO", "Otro")], default="", max_length=30)),
                ("last_purchase_at", models.DateField(blank=True, null=True)),
                ("last_lot_ordered", models.CharField(blank=True, default="", max_length=100)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("barcode", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("line", models.CharField(blank=True, default="", help_text="Línea de producto", max_length=100)),
                ("image_url", models.URLField(blank=True, default="")),
                ("price_public", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("price_retail", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Precio comercio", max_digits=12)),
                ("price_wholesale", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Precio mayorista", max_digits=12)),
                ("min_qty_retail", models.PositiveIntegerField(blank=True, help_text="Cantidad mínima comercio", null=True)),
                ("min_qty_wholesale", models.PositiveIntegerField(blank=True, help_text="Cantidad mínima mayorista", null=True)),
                ("box_length_cm", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("box_width_cm", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("box_height_cm", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("unit_weight_kg", models.DecimalField(blank=True, decimal_places=3, max_digits=8, null=True)),
                ("units_per_box", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="ProductSupply",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.DecimalField(decimal_places=3, default=Decimal("1.000"), max_digits=12)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="product_supplies", to="storefront.product")),
                ("supply", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="product_supplies", to="storefront.supply")),
            ],
            options={
                "ordering": ["product__name", "supply__name"],
                "unique_together": {("product", "supply")},
            },
        ),
        migrations.AddField(
            model_name="product",
            name="supplies",
            field=models.ManyToManyField(blank=True, related_name="products", through="storefront.ProductSupply", to="storefront.supply"),
        ),
        migrations.CreateModel(
            name="Lot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("lot_number", models.CharField(max_length=100)),
                ("initial_quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("current_quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("expiration_date", models.DateField(blank=True, null=True)),
                ("lab_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Costo de laboratorio por unidad", max_digits=12)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lots", to="storefront.product")),
                ("warehouse", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="storefront.warehouse")),
            ],
            options={
                "ordering": ["product__name", "expiration_date", "created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "lot_number", "warehouse"), name="unique_lot_per_warehouse"),
                    models.CheckConstraint(condition=models.Q(("current_quantity__gte", 0)), name="lot_current_not_negative"),
                    models.CheckConstraint(
                        condition=models.Q(("current_quantity__lte", models.F("initial_quantity"))),
                        name="lot_current_within_initial",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PriceList",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="PriceListItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("price_list", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="storefront.pricelist")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="price_list_items", to="storefront.product")),
            ],
            options={
                "ordering": ["price_list__name", "product__name"],
                "unique_together": {("price_list", "product")},
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Nombre del comercio", max_length=255)),
                ("representative", models.CharField(blank=True, default="", max_length=255)),
                ("province", models.CharField(blank=True, default="", max_length=100)),
                ("city", models.CharField(blank=True, default="", max_length=100)),
                ("postal_code", models.CharField(blank=True, default="", max_length=20)),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                ("business_type", models.CharField(blank=True, default="", max_length=100)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("social_network", models.CharField(blank=True, default="", max_length=255)),
                ("cuit", models.CharField(blank=True, default="", max_length=20)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("description", models.TextField(blank=True, default="")),
                ("list_sent", models.BooleanField(default=False)),
                ("list_sent_at", models.DateField(blank=True, null=True)),
                ("has_stock", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("price_list", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="customers", to="storefront.pricelist")),
                ("user", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="customer", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField(default=django.utils.timezone.localdate)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("sale_type", models.CharField(choices=[("Venta", "Venta"), ("Consignacion", "Consignación")], default="Venta", max_length=20)),
                ("status", models.CharField(choices=[("Pendiente", "Pendiente"), ("Pagada", "Pagada"), ("Enviada", "Enviada"), ("Cancelada", "Cancelada"), ("Carrito Abandonado", "Carrito Abandonado")], default="Pendiente", max_length=30)),
                ("channel", models.CharField(blank=True, choices=[("Mercado Libre", "Mercado Libre"), ("Tienda física", "Tienda física"), ("Redes Sociales", "Redes Sociales")], default="", max_length=30)),
                ("store", models.CharField(blank=True, default="", max_length=50)),
                ("cost_total", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("exchange_rate", models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ("first_payment", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("payment_id", models.CharField(blank=True, default="", max_length=50)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to="storefront.customer")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-date", "-id"]},
        ),
        migrations.CreateModel(
            name="SaleItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("lot", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sale_items", to="storefront.lot")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sale_items", to="storefront.product")),
                ("sale", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="storefront.sale")),
            ],
            options={"ordering": ["sale__id", "id"]},
        ),
        migrations.CreateModel(
            name="StockTransfer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("destination_lot", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="incoming_transfers", to="storefront.lot")),
                ("from_warehouse", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="outgoing_transfers", to="storefront.warehouse")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transfers", to="storefront.product")),
                ("source_lot", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="outgoing_transfers", to="storefront.lot")),
                ("to_warehouse", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="incoming_transfers", to="storefront.warehouse")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="stock_transfers", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="SystemSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100, unique=True)),
                ("value", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={"ordering": ["key"]},
        ),
        migrations.CreateModel(
            name="KnowledgeItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("question", models.TextField()),
                ("answer", models.TextField()),
                ("category", models.CharField(choices=[("General", "General"), ("Envíos", "Envíos"), ("Pagos", "Pagos"), ("Productos", "Productos"), ("Precios", "Precios"), ("Políticas", "Políticas"), ("Contacto", "Contacto")], default="General", max_length=30)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("roles", models.JSONField(blank=True, default=list)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["user__email"]},
        ),
        migrations.CreateModel(
            name="AccessRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("company_name", models.CharField(max_length=255)),
                ("contact_person", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254)),
                ("country", models.CharField(max_length=100)),
                ("message", models.TextField(blank=True, default="")),
                ("status", models.CharField(choices=[("pending", "Pendiente"), ("approved", "Aprobada"), ("rejected", "Rechazada")], default="pending", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="access_requests", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.CreateModel(
            name="PaymentNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("topic", models.CharField(blank=True, default="", max_length=100)),
                ("action", models.CharField(blank=True, default="", max_length=100)),
                ("payment_id", models.CharField(blank=True, default="", max_length=50)),
                ("outcome", models.CharField(blank=True, default="", max_length=50)),
                ("raw_payload", models.TextField(blank=True, default="")),
                ("received_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["-received_at"]},
        ),
    ]
