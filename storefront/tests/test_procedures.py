from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError, IntegrityError
from django.test import SimpleTestCase, TestCase

from storefront import procedures, services
from storefront.errors import (
    DuplicateConstraint,
    InsufficientStock,
    PermissionDenied,
    ProcedureNotFound,
    StorefrontError,
    classify_database_error,
)
from storefront.models import Lot, Product, Warehouse


class ProcedureRegistryTests(TestCase):
    def test_every_contract_has_an_implementation(self):
        self.assertEqual(set(procedures.CONTRACTS) - set(procedures.REGISTRY), set())

    def test_missing_procedure_raises_with_contract(self):
        central = Warehouse.objects.get(is_default=True)
        branch = Warehouse.objects.create(name="Sucursal")
        product = Product.objects.create(name="Gel")
        lot = Lot.objects.create(
            product=product,
            warehouse=central,
            lot_number="G1",
            initial_quantity=Decimal("3"),
            current_quantity=Decimal("3"),
        )
        with patch.dict(procedures.REGISTRY):
            del procedures.REGISTRY["transfer_stock"]
            with self.assertRaises(ProcedureNotFound) as ctx:
                services.transfer_stock(lot, branch, 1)
        self.assertEqual(ctx.exception.remediation, procedures.CONTRACTS["transfer_stock"])
        self.assertEqual(ctx.exception.http_status, 501)
        self.assertIn("transfer_stock", procedures.REGISTRY)
        lot.refresh_from_db()
        self.assertEqual(lot.current_quantity, Decimal("3.00"))

    def test_wrong_arguments_raise_type_error(self):
        with self.assertRaises(TypeError):
            procedures.call("restore_stock_and_delete_sale", sale=1)

    def test_registration_checks_contract_parameters(self):
        with patch.dict(procedures.REGISTRY):
            with self.assertRaises(ValueError):
                procedures.procedure("restore_stock_and_delete_sale")(lambda sale: None)

    def test_database_errors_are_classified(self):
        def failing(name, items):
            raise IntegrityError("duplicate key value violates unique constraint")

        with patch.dict(procedures.REGISTRY, {"create_price_list_with_products": failing}):
            with self.assertRaises(DuplicateConstraint):
                procedures.call("create_price_list_with_products", name="Mayoristas", items=[])


class ClassifyDatabaseErrorTests(SimpleTestCase):
    def test_missing_function(self):
        error = classify_database_error(DatabaseError("function public.foo() does not exist"), "foo")
        self.assertIsInstance(error, ProcedureNotFound)

    def test_permission(self):
        error = classify_database_error(DatabaseError("permission denied for table sales"))
        self.assertIsInstance(error, PermissionDenied)
        error = classify_database_error(DatabaseError("new row violates row-level security policy"))
        self.assertIsInstance(error, PermissionDenied)

    def test_duplicate(self):
        error = classify_database_error(IntegrityError("UNIQUE constraint failed: storefront_pricelist.name"))
        self.assertIsInstance(error, DuplicateConstraint)
        self.assertEqual(error.http_status, 409)

    def test_raised_stock_message(self):
        error = classify_database_error(DatabaseError("Stock insuficiente en lote 4"))
        self.assertEqual(error.code, "insufficient_stock")

    def test_unknown_database_error_keeps_details(self):
        error = classify_database_error(DatabaseError("disk I/O error"), "transfer_stock")
        self.assertEqual(error.code, "database_error")
        self.assertEqual(error.details, "disk I/O error")
        self.assertTrue(error.message.startswith("transfer_stock: "))

    def test_classified_errors_pass_through(self):
        original = InsufficientStock("Gel", 3, 1)
        self.assertIs(classify_database_error(original), original)

    def test_as_dict(self):
        data = StorefrontError("Algo falló", code="x", hint="Reintentar").as_dict()
        self.assertEqual(data, {"error": "x", "message": "Algo falló", "hint": "Reintentar"})
