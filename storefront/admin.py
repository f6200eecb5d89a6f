from django.contrib import admin

from .models import (
    AccessRequest,
    Customer,
    KnowledgeItem,
    Lot,
    PaymentNotification,
    PriceList,
    PriceListItem,
    Product,
    ProductSupply,
    Profile,
    Sale,
    SaleItem,
    StockTransfer,
    Supply,
    SystemSetting,
    Warehouse,
)


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("name", "address", "is_default")
    search_fields = ("name", "address")


class ProductSupplyInline(admin.TabularInline):
    model = ProductSupply
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("barcode", "name", "line", "price_public", "price_retail", "price_wholesale")
    list_filter = ("line",)
    search_fields = ("barcode", "name")
    inlines = [ProductSupplyInline]


@admin.register(Supply)
class SupplyAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "stock", "unit", "unit_cost", "supplier", "last_purchase_at")
    list_filter = ("category", "unit")
    search_fields = ("name", "supplier")


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = ("product", "lot_number", "warehouse", "initial_quantity", "current_quantity", "expiration_date")
    list_filter = ("warehouse",)
    search_fields = ("product__name", "lot_number")
    readonly_fields = ("created_at",)


class PriceListItemInline(admin.TabularInline):
    model = PriceListItem
    extra = 0


@admin.register(PriceList)
class PriceListAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)
    inlines = [PriceListItemInline]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "representative", "city", "province", "phone", "price_list")
    list_filter = ("province", "price_list")
    search_fields = ("name", "representative", "cuit", "email")


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ("product", "lot", "quantity", "unit_price")
    can_delete = False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("id", "date", "customer", "status", "sale_type", "channel", "total", "payment_id")
    list_filter = ("status", "sale_type", "channel")
    search_fields = ("customer__name", "notes", "payment_id")
    readonly_fields = ("created_at",)
    inlines = [SaleItemInline]


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = ("product", "from_warehouse", "to_warehouse", "quantity", "user", "created_at")
    list_filter = ("from_warehouse", "to_warehouse", "user")
    search_fields = ("product__name", "notes")
    readonly_fields = ("created_at",)


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "value")
    search_fields = ("key",)


@admin.register(KnowledgeItem)
class KnowledgeItemAdmin(admin.ModelAdmin):
    list_display = ("question", "category", "created_at")
    list_filter = ("category",)
    search_fields = ("question", "answer")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "roles")
    search_fields = ("user__email", "user__username")


@admin.register(AccessRequest)
class AccessRequestAdmin(admin.ModelAdmin):
    list_display = ("company_name", "contact_person", "email", "country", "status", "created_at")
    list_filter = ("status", "country")
    search_fields = ("company_name", "email")


@admin.register(PaymentNotification)
class PaymentNotificationAdmin(admin.ModelAdmin):
    list_display = ("received_at", "topic", "action", "payment_id", "outcome")
    list_filter = ("outcome", "topic")
    search_fields = ("payment_id",)
    readonly_fields = ("received_at",)
