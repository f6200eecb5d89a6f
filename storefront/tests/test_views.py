import json
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from storefront.errors import PaymentVerificationFailed
from storefront.models import Lot, PaymentNotification, Product, Sale, StockTransfer, Warehouse


class StorefrontViewTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.seller = User.objects.create_user(username="vendedor", email="vendedor@example.com", password="secret")
        self.seller.profile.roles = ["vendedor"]
        self.seller.profile.save()
        self.client_user = User.objects.create_user(username="cliente", password="secret")
        self.warehouse = Warehouse.objects.get(is_default=True)
        self.product = Product.objects.create(name="Crema", line="SECRET", price_public=Decimal("1000.00"))
        self.lot = Lot.objects.create(
            product=self.product,
            warehouse=self.warehouse,
            lot_number="C1",
            initial_quantity=Decimal("5"),
            current_quantity=Decimal("5"),
            expiration_date=date(2026, 1, 1),
        )

    def _post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type="application/json")

    def _payer(self):
        return {
            "name": "Ana",
            "surname": "Pérez",
            "email": "ana@example.com",
            "phone": "1155555555",
            "dni": "30111222",
            "street_name": "Corrientes",
            "street_number": "1234",
            "zip_code": "1043",
            "city": "CABA",
            "province": "Buenos Aires",
        }

    def test_stock_requires_login_and_role(self):
        url = reverse("storefront:products_stock")
        self.assertEqual(self.client.get(url).status_code, 401)
        self.client.force_login(self.client_user)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "permission_denied")
        self.client.force_login(self.seller)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        product = response.json()["products"][0]
        self.assertEqual(Decimal(product["stock"]), Decimal("5"))
        self.assertEqual(product["lots"][0]["lot_number"], "C1")

    def test_public_price_list(self):
        response = self.client.get(reverse("storefront:public_price_list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["lines"]["SECRET"][0]["product_name"], "Crema")

    def test_checkout_by_transfer(self):
        response = self._post_json(
            reverse("storefront:checkout"),
            {"items": {str(self.product.pk): 2}, "payer": self._payer(), "payment_method": "transferencia"},
        )
        self.assertEqual(response.status_code, 201)
        sale = Sale.objects.get(pk=response.json()["sale_id"])
        self.assertEqual(sale.status, Sale.Status.PENDING)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.current_quantity, Decimal("3.00"))

    def test_checkout_without_stock(self):
        response = self._post_json(
            reverse("storefront:checkout"),
            {"items": {str(self.product.pk): 9}, "payer": self._payer(), "payment_method": "transferencia"},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "insufficient_stock")
        self.assertFalse(Sale.objects.exists())

    def test_checkout_with_incomplete_payer(self):
        response = self._post_json(
            reverse("storefront:checkout"), {"items": {str(self.product.pk): 1}, "payer": {"name": "Ana"}}
        )
        self.assertEqual(response.status_code, 400)

    def test_invalid_json_body(self):
        response = self.client.post(reverse("storefront:checkout"), data="{no", content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_operation")

    def test_same_warehouse_transfer(self):
        self.client.force_login(self.seller)
        response = self._post_json(
            reverse("storefront:stock_transfers"),
            {"lot_id": self.lot.pk, "destination_warehouse_id": self.warehouse.pk, "quantity": 1},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "same_warehouse")
        self.assertFalse(StockTransfer.objects.exists())

    def test_transfer_and_history(self):
        self.client.force_login(self.seller)
        branch = Warehouse.objects.create(name="Sucursal")
        response = self._post_json(
            reverse("storefront:stock_transfers"),
            {"lot_id": self.lot.pk, "destination_warehouse_id": branch.pk, "quantity": "2"},
        )
        self.assertEqual(response.status_code, 201)
        history = self.client.get(reverse("storefront:stock_transfers")).json()["transfers"]
        self.assertEqual(history[0]["user_email"], "vendedor@example.com")

    def test_new_default_warehouse_via_view(self):
        self.client.force_login(self.seller)
        response = self._post_json(reverse("storefront:warehouses"), {"name": "Nuevo", "is_default": True})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(list(Warehouse.objects.filter(is_default=True).values_list("name", flat=True)), ["Nuevo"])

    def test_backoffice_sale_and_delete(self):
        self.client.force_login(self.seller)
        response = self._post_json(
            reverse("storefront:sale_create"),
            {"items": [{"product_id": self.product.pk, "quantity": 2}], "apply_vat": False},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["total"], "2000.00")
        sale_id = response.json()["id"]
        response = self.client.post(reverse("storefront:sale_delete", args=[sale_id]))
        self.assertEqual(response.status_code, 200)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.current_quantity, Decimal("5.00"))

    def test_sale_create_rejects_malformed_items(self):
        self.client.force_login(self.seller)
        url = reverse("storefront:sale_create")
        bad_items = [
            [{"quantity": 1}],
            [{"product_id": self.product.pk, "quantity": "abc"}],
            [{"product_id": self.product.pk, "quantity": 0}],
            [{"product_id": self.product.pk, "quantity": "1.005"}],
            [{"product_id": self.product.pk, "quantity": 1, "unit_price": "caro"}],
            ["producto"],
            {"product_id": self.product.pk},
        ]
        for items in bad_items:
            response = self._post_json(url, {"items": items})
            self.assertEqual(response.status_code, 400, items)
            self.assertEqual(response.json()["error"], "invalid_operation")
        self.assertFalse(Sale.objects.exists())
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.current_quantity, Decimal("5.00"))

    def test_sale_create_with_repeated_product_and_fractional_quantity(self):
        self.client.force_login(self.seller)
        response = self._post_json(
            reverse("storefront:sale_create"),
            {
                "items": [
                    {"product_id": self.product.pk, "quantity": 2},
                    {"product_id": self.product.pk, "quantity": "2.5"},
                ],
                "apply_vat": False,
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["total"], "4500.00")
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.current_quantity, Decimal("0.50"))

    def test_sale_create_reads_apply_vat_from_form_text(self):
        self.client.force_login(self.seller)
        url = reverse("storefront:sale_create")
        items = [{"product_id": self.product.pk, "quantity": 1}]
        response = self._post_json(url, {"items": items, "apply_vat": "false"})
        self.assertEqual(response.json()["tax"], "0.00")
        response = self._post_json(url, {"items": items, "apply_vat": "true"})
        self.assertEqual(response.json()["tax"], "210.00")

    def test_sale_status_update_rejects_unknown_status(self):
        self.client.force_login(self.seller)
        sale = Sale.objects.create()
        response = self.client.post(reverse("storefront:sale_status_update", args=[sale.pk]), {"status": "Perdida"})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(reverse("storefront:sale_status_update", args=[sale.pk]), {"status": "Enviada"})
        self.assertEqual(response.json()["status"], "Enviada")


class MercadoPagoWebhookViewTests(TestCase):
    def setUp(self):
        self.url = reverse("storefront:mercadopago_webhook")

    def test_invalid_json_is_acknowledged(self):
        response = self.client.post(self.url, data="not-json", content_type="application/json")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(PaymentNotification.objects.exists())

    def test_unknown_event(self):
        response = self.client.post(
            self.url, data=json.dumps({"type": "merchant_order", "data": {"id": "1"}}), content_type="application/json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"OK:ignored")

    def test_query_string_notification(self):
        sale = Sale.objects.create(status=Sale.Status.PENDING)
        payment = {"id": 88, "status": "approved", "external_reference": str(sale.pk)}
        with patch("storefront.mercadopago.get_payment", return_value=payment) as get_payment:
            response = self.client.post(f"{self.url}?topic=payment&id=88")
        get_payment.assert_called_once_with("88")
        self.assertEqual(response.content, b"OK:approved")
        sale.refresh_from_db()
        self.assertEqual(sale.status, Sale.Status.PAID)

    def test_verification_failure_still_returns_ok(self):
        with patch("storefront.mercadopago.get_payment", side_effect=PaymentVerificationFailed("caído")):
            response = self.client.post(
                self.url, data=json.dumps({"type": "payment", "data": {"id": "5"}}), content_type="application/json"
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"OK:verification_failed")
