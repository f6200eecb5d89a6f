from decimal import Decimal

from django.test import TestCase

from storefront import comex
from storefront.models import Product


class ComexSheetTests(TestCase):
    def setUp(self):
        self.boxed = Product.objects.create(
            name="Bronceador FPS 15",
            line="BODYTAN CARIBEAN",
            price_wholesale=Decimal("10000.00"),
            box_length_cm=Decimal("20"),
            box_width_cm=Decimal("25"),
            box_height_cm=Decimal("30"),
            unit_weight_kg=Decimal("0.5"),
            units_per_box=12,
        )
        self.loose = Product.objects.create(name="Muestra", price_wholesale=Decimal("900.00"), units_per_box=24)

    def test_row_with_logistics_data(self):
        row = comex.comex_row(self.boxed, Decimal("1000"), Decimal("180"))
        self.assertEqual(row.price_usd, Decimal("10.00"))
        self.assertEqual(row.price_brl, Decimal("55.56"))
        self.assertEqual(row.box_volume_m3, Decimal("0.0150"))
        self.assertEqual(row.weight_per_box_kg, Decimal("6.000"))
        self.assertEqual(row.boxes_per_pallet, 20)

    def test_incomplete_logistics_data_yields_zeros(self):
        row = comex.comex_row(self.loose, Decimal("1000"), Decimal("180"))
        self.assertEqual(row.price_usd, Decimal("0.90"))
        self.assertEqual(row.box_volume_m3, Decimal("0"))
        self.assertEqual(row.weight_per_box_kg, Decimal("0"))
        self.assertEqual(row.boxes_per_pallet, 0)
        self.assertEqual(row.units_per_box, 24)

    def test_sheet_uses_stored_rates_unless_overridden(self):
        self.assertEqual(comex.exchange_rates(), {"usd": Decimal("1000"), "brl": Decimal("180")})
        comex.save_exchange_rates("1250", "200")
        sheet = comex.comex_price_sheet()
        self.assertEqual(list(sheet), ["BODYTAN CARIBEAN", "General"])
        self.assertEqual(sheet["BODYTAN CARIBEAN"][0].price_usd, Decimal("8.00"))
        self.assertEqual(sheet["BODYTAN CARIBEAN"][0].price_brl, Decimal("50.00"))

        sheet = comex.comex_price_sheet(usd_rate="500")
        self.assertEqual(sheet["BODYTAN CARIBEAN"][0].price_usd, Decimal("20.00"))
        self.assertEqual(sheet["BODYTAN CARIBEAN"][0].price_brl, Decimal("50.00"))
