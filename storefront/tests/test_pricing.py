from decimal import Decimal

from django.test import TestCase

from storefront import pricing
from storefront.errors import DuplicateConstraint, InvalidOperation
from storefront.models import Customer, PriceList, PriceListItem, Product, SystemSetting


class CheckoutPricingTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Autobronceante",
            price_public=Decimal("1000.00"),
            price_retail=Decimal("800.00"),
            price_wholesale=Decimal("600.00"),
            min_qty_retail=6,
            min_qty_wholesale=24,
        )

    def test_dynamic_price_picks_best_tier(self):
        self.assertEqual(pricing.dynamic_price(self.product, 1), Decimal("1000.00"))
        self.assertEqual(pricing.dynamic_price(self.product, 6), Decimal("800.00"))
        self.assertEqual(pricing.dynamic_price(self.product, 24), Decimal("600.00"))

    def test_dynamic_price_ignores_unpriced_tiers(self):
        self.product.price_wholesale = Decimal("0.00")
        self.assertEqual(pricing.dynamic_price(self.product, 30), Decimal("800.00"))
        self.product.min_qty_retail = None
        self.assertEqual(pricing.dynamic_price(self.product, 30), Decimal("1000.00"))

    def test_shipping_is_free_from_threshold(self):
        self.assertEqual(pricing.shipping_cost(Decimal("0")), Decimal("0.00"))
        self.assertEqual(pricing.shipping_cost(Decimal("29999.99")), Decimal("9800.00"))
        self.assertEqual(pricing.shipping_cost(Decimal("30000")), Decimal("0.00"))

    def test_transfer_discount_only_for_bank_transfer(self):
        totals = pricing.checkout_totals("40000", pricing.PAYMENT_TRANSFER)
        self.assertEqual(totals.discount, Decimal("2000.00"))
        self.assertEqual(totals.shipping, Decimal("0.00"))
        self.assertEqual(totals.total, Decimal("38000.00"))
        totals = pricing.checkout_totals("40000", pricing.PAYMENT_MERCADOPAGO)
        self.assertEqual(totals.discount, Decimal("0.00"))
        self.assertEqual(totals.total, Decimal("40000.00"))

    def test_vat(self):
        self.assertEqual(pricing.vat_for("1000"), Decimal("210.00"))
        self.assertEqual(pricing.vat_for("1000", apply_vat=False), Decimal("0.00"))


class SettingsTests(TestCase):
    def test_non_positive_or_invalid_settings_fall_back(self):
        SystemSetting.objects.create(key="COTIZACION_USD", value="0")
        SystemSetting.objects.create(key="COTIZACION_BRL", value="abc")
        self.assertEqual(pricing.get_setting_decimal("COTIZACION_USD", Decimal("1000")), Decimal("1000"))
        self.assertEqual(pricing.get_setting_decimal("COTIZACION_BRL", Decimal("180")), Decimal("180"))
        self.assertEqual(pricing.get_setting_decimal("NO_EXISTE", Decimal("5")), Decimal("5"))

    def test_thresholds_round_trip(self):
        pricing.save_thresholds("150000", "500000")
        self.assertEqual(
            pricing.get_thresholds(), {"retail": Decimal("150000.00"), "wholesale": Decimal("500000.00")}
        )


class PriceListTests(TestCase):
    def setUp(self):
        self.crema = Product.objects.create(name="Crema", line="SECRET", price_public=Decimal("500.00"))
        self.gel = Product.objects.create(name="Gel", line="ULTRAHISNE", price_public=Decimal("300.00"))
        self.jabon = Product.objects.create(name="Jabón", price_public=Decimal("100.00"))

    def test_create_price_list_with_products(self):
        price_list = pricing.create_price_list_with_products(
            " Distribuidores ", [(self.crema.pk, "450"), (self.gel.pk, Decimal("250.5"))]
        )
        self.assertEqual(price_list.name, "Distribuidores")
        self.assertEqual(
            dict(price_list.items.values_list("product_id", "price")),
            {self.crema.pk: Decimal("450.00"), self.gel.pk: Decimal("250.50")},
        )

    def test_duplicate_name_is_rejected(self):
        pricing.create_price_list_with_products("Mayoristas", [])
        with self.assertRaises(DuplicateConstraint) as ctx:
            pricing.create_price_list_with_products("Mayoristas", [(self.crema.pk, "1")])
        self.assertEqual(ctx.exception.message, 'Ya existe una lista de precios con el nombre "Mayoristas".')
        with self.assertRaises(DuplicateConstraint):
            pricing.create_price_list("Mayoristas")
        self.assertEqual(PriceList.objects.count(), 1)

    def test_name_is_required(self):
        with self.assertRaises(InvalidOperation):
            pricing.create_price_list_with_products("", [])

    def test_upsert_items(self):
        price_list = pricing.create_price_list("Revendedores")
        pricing.upsert_price_list_items(price_list, [(self.crema.pk, "400")])
        pricing.upsert_price_list_items(price_list, [(self.crema.pk, "420"), (self.gel.pk, "200")])
        self.assertEqual(price_list.items.get(product=self.crema).price, Decimal("420.00"))
        self.assertEqual(price_list.items.count(), 2)
        rows = pricing.price_list_items(price_list)
        self.assertEqual([row["product_name"] for row in rows], ["Crema", "Gel"])

    def test_public_list_groups_by_line_in_catalog_order(self):
        grouped = pricing.public_price_list()
        self.assertEqual(list(grouped), ["ULTRAHISNE", "SECRET", "General"])
        self.assertEqual(grouped["General"][0]["product_name"], "Jabón")

    def test_customer_list_falls_back_to_public_price(self):
        price_list = PriceList.objects.create(name="Especial")
        PriceListItem.objects.create(price_list=price_list, product=self.crema, price=Decimal("350.00"))
        customer = Customer.objects.create(name="Perfumería Sol", price_list=price_list)
        grouped = pricing.customer_price_list(customer)
        prices = {row["product_name"]: row["price"] for rows in grouped.values() for row in rows}
        self.assertEqual(prices, {"Crema": Decimal("350.00"), "Gel": Decimal("300.00"), "Jabón": Decimal("100.00")})

    def test_customer_without_list_sees_public_prices(self):
        customer = Customer.objects.create(name="Kiosco")
        grouped = pricing.customer_price_list(customer)
        self.assertEqual(grouped["SECRET"][0]["price"], Decimal("500.00"))
