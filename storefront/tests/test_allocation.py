from datetime import date, datetime
from decimal import Decimal

from django.test import SimpleTestCase

from storefront.allocation import (
    Allocation,
    CartLine,
    LotSnapshot,
    allocate_cart,
    allocate_line,
    available_quantity,
    order_lots,
)
from storefront.errors import InsufficientStock


def lot(lot_id, remaining, expiration=None, created=None):
    return LotSnapshot(lot_id=lot_id, remaining=Decimal(str(remaining)), expiration_date=expiration, created_at=created)


class AllocationTests(SimpleTestCase):
    def test_earliest_expiration_is_consumed_first(self):
        lots = [lot(2, 3, date(2024, 3, 1)), lot(1, 5, date(2024, 1, 1))]
        result = allocate_line(CartLine(10, 6, Decimal("100.00")), lots)
        self.assertEqual(
            result,
            [
                Allocation(10, 1, 5, Decimal("100.00")),
                Allocation(10, 2, 1, Decimal("100.00")),
            ],
        )

    def test_allocated_quantity_matches_request(self):
        lots = [lot(1, 4, date(2024, 1, 1)), lot(2, 4, date(2024, 2, 1)), lot(3, 4)]
        for requested in range(1, 13):
            result = allocate_line(CartLine(1, requested, Decimal("1.00")), lots)
            self.assertEqual(sum(a.quantity for a in result), requested)
            self.assertTrue(all(a.quantity >= 1 for a in result))

    def test_undated_lots_go_last(self):
        lots = [lot(1, 5), lot(2, 5, date(2030, 1, 1))]
        result = allocate_line(CartLine(1, 2, Decimal("1.00")), lots)
        self.assertEqual([a.lot_id for a in result], [2])

    def test_ties_break_on_creation_then_id(self):
        lots = [
            lot(3, 1, date(2024, 1, 1), datetime(2023, 6, 1)),
            lot(2, 1, date(2024, 1, 1), datetime(2023, 5, 1)),
            lot(1, 1, date(2024, 1, 1), datetime(2023, 6, 1)),
        ]
        self.assertEqual([item.lot_id for item in order_lots(lots)], [2, 1, 3])

    def test_fractional_remainders_are_floored_and_sub_unit_lots_skipped(self):
        lots = [lot(1, "0.50", date(2024, 1, 1)), lot(2, "2.90", date(2024, 2, 1))]
        self.assertEqual(available_quantity(lots), 2)
        result = allocate_line(CartLine(1, 2, Decimal("1.00")), lots)
        self.assertEqual([(a.lot_id, a.quantity) for a in result], [(2, 2)])

    def test_insufficient_stock_reports_available(self):
        lots = [lot(1, 2, date(2024, 1, 1)), lot(2, "0.9")]
        with self.assertRaises(InsufficientStock) as ctx:
            allocate_line(CartLine(1, 3, Decimal("1.00"), "Crema"), lots)
        self.assertEqual(ctx.exception.requested, 3)
        self.assertEqual(ctx.exception.available, 2)
        self.assertIn("Crema", ctx.exception.message)

    def test_cart_fails_as_a_whole(self):
        lines = [CartLine(1, 1, Decimal("1.00")), CartLine(2, 5, Decimal("1.00"))]
        lots_by_product = {1: [lot(1, 10)], 2: [lot(2, 1)]}
        with self.assertRaises(InsufficientStock):
            allocate_cart(lines, lots_by_product)

    def test_lines_of_the_same_product_do_not_overdraw_a_lot(self):
        lines = [CartLine(1, 3, Decimal("1.00")), CartLine(1, 3, Decimal("1.00"))]
        result = allocate_cart(lines, {1: [lot(1, 5, date(2024, 1, 1)), lot(2, 5, date(2024, 2, 1))]})
        self.assertEqual([(a.lot_id, a.quantity) for a in result], [(1, 3), (1, 2), (2, 1)])
        self.assertEqual(sum(a.quantity for a in result if a.lot_id == 1), 5)

    def test_repeated_lines_beyond_stock_fail(self):
        lines = [CartLine(1, 4, Decimal("1.00")), CartLine(1, 4, Decimal("1.00"))]
        with self.assertRaises(InsufficientStock) as ctx:
            allocate_cart(lines, {1: [lot(1, 5), lot(2, 2)]})
        self.assertEqual(ctx.exception.available, 3)

    def test_fractional_request_is_allocated_exactly(self):
        result = allocate_line(CartLine(1, Decimal("2.5"), Decimal("1.00")), [lot(1, 4, date(2024, 1, 1))])
        self.assertEqual([(a.lot_id, a.quantity) for a in result], [(1, Decimal("2.5"))])

    def test_fractional_request_spans_lots(self):
        lots = [lot(1, "2.40", date(2024, 1, 1)), lot(2, 3, date(2024, 2, 1))]
        result = allocate_line(CartLine(1, Decimal("3.5"), Decimal("1.00")), lots)
        self.assertEqual([(a.lot_id, a.quantity) for a in result], [(1, 2), (2, Decimal("1.5"))])

    def test_sub_unit_lot_is_not_used_for_a_smaller_fractional_request(self):
        with self.assertRaises(InsufficientStock) as ctx:
            allocate_line(CartLine(1, Decimal("0.5"), Decimal("1.00"), "Crema"), [lot(1, "0.8")])
        self.assertEqual(ctx.exception.requested, Decimal("0.5"))
        self.assertEqual(ctx.exception.available, 0)

    def test_cart_without_lots_for_product(self):
        with self.assertRaises(InsufficientStock):
            allocate_cart([CartLine(7, 1, Decimal("1.00"))], {})

    def test_zero_quantity_line_allocates_nothing(self):
        self.assertEqual(allocate_line(CartLine(1, 0, Decimal("1.00")), [lot(1, 3)]), [])
