from django.apps import AppConfig


class StorefrontConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "storefront"
    verbose_name = "Tienda y stock"

    def ready(self):
        from . import accounts, pricing, procedures, reporting, signals  # noqa: F401
