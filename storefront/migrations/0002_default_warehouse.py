from django.db import migrations


def create_default_warehouse(apps, schema_editor):
    Warehouse = apps.get_model("storefront", "Warehouse")
    if not Warehouse.objects.filter(is_default=True).exists():
        Warehouse.objects.create(name="Depósito Central", is_default=True)


def remove_default_warehouse(apps, schema_editor):
    Warehouse = apps.get_model("storefront", "Warehouse")
    Warehouse.objects.filter(name="Depósito Central", is_default=True, lots__isnull=True).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("storefront", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_default_warehouse, remove_default_warehouse),
    ]
