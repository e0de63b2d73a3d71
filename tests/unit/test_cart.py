"""
Unit tests for cart parsing and the pure stock/spend planning helpers.
"""

import pytest
from decimal import Decimal

from barpos.exceptions import (
    BeverageNotFoundError, EmptyCartError, InsufficientStockError, InvalidQuantityError, InvalidRecordError
)
from barpos.models.beverage import MAX_STOCK
from barpos.services.audit_service import coerce_count
from barpos.services.event_service import BudgetSnapshot, plan_spend_increase
from barpos.services.inventory_service import StockSnapshot, plan_decrement, positive_quantity
from barpos.services.order_service import CartLine, parse_cart, requested_by_beverage


class TestParseCart:
    """Tests for parse_cart."""

    def test_accepts_both_key_styles(self):
        lines = parse_cart([
            {'beverage_id': 1, 'quantity': 2},
            {'beverageId': '2', 'quantity': '3', 'pricePerUnit': '4.5'},
        ])
        assert lines == [CartLine(1, 2, None), CartLine(2, 3, Decimal('4.50'))]

    def test_empty_cart(self):
        with pytest.raises(EmptyCartError):
            parse_cart([])

    @pytest.mark.parametrize('quantity', [0, -1, 'x', None, 1.5, True])
    def test_rejects_bad_quantity(self, quantity):
        with pytest.raises(InvalidQuantityError):
            parse_cart([{'beverage_id': 1, 'quantity': quantity}])

    def test_rejects_missing_beverage_id(self):
        with pytest.raises(BeverageNotFoundError):
            parse_cart([{'quantity': 1}])

    @pytest.mark.parametrize('beverage_id', [0, -3, 2 ** 63, 10 ** 20])
    def test_rejects_id_outside_key_range(self, beverage_id):
        with pytest.raises(BeverageNotFoundError):
            parse_cart([{'beverage_id': beverage_id, 'quantity': 1}])

    def test_rejects_non_positive_price(self):
        with pytest.raises(InvalidQuantityError):
            parse_cart([{'beverage_id': 1, 'quantity': 1, 'price_per_unit': 0}])

    @pytest.mark.parametrize('price', ['NaN', 'Infinity', '-Infinity', 'sNaN', '100000000'])
    def test_rejects_non_finite_or_huge_price(self, price):
        with pytest.raises(InvalidRecordError):
            parse_cart([{'beverage_id': 1, 'quantity': 1, 'price_per_unit': price}])

    def test_requested_by_beverage_aggregates(self):
        totals = requested_by_beverage([CartLine(3, 1), CartLine(1, 2), CartLine(3, 4)])
        assert list(totals.items()) == [(3, 5), (1, 2)]


class TestQuantities:
    """Tests for positive_quantity and coerce_count."""

    def test_positive_quantity(self):
        assert positive_quantity('7') == 7
        assert positive_quantity(4.0) == 4
        assert positive_quantity(MAX_STOCK) == MAX_STOCK

    @pytest.mark.parametrize('value', [MAX_STOCK + 1, 10 ** 20, float('inf'), float('nan'), 'Infinity'])
    def test_positive_quantity_rejects_out_of_range(self, value):
        with pytest.raises(InvalidQuantityError):
            positive_quantity(value)

    @pytest.mark.parametrize('value, expected', [
        (5, 5), ('12', 12), ('3.9', 3), (-4, 0), ('abc', 0), (None, 0), ('', 0),
        ('12abc', 12), (' 7 ', 7), ('-2', 0), (4.8, 4),
        ('Infinity', 0), ('-inf', 0), ('NaN', 0), (float('inf'), 0), (float('-inf'), 0), (float('nan'), 0),
        (Decimal('Infinity'), 0), (Decimal('sNaN'), 0), (10 ** 20, 0), (str(10 ** 20), 0),
    ])
    def test_coerce_count(self, value, expected):
        assert coerce_count(value) == expected


class TestPlanning:
    """Tests for the read-then-write planning helpers."""

    def test_plan_decrement_to_zero(self):
        assert plan_decrement(StockSnapshot(1, 'Lager', 5, 10), 5) == 0

    def test_plan_decrement_insufficient(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            plan_decrement(StockSnapshot(1, 'Lager', 0, 10), 1)
        assert exc_info.value.message == 'Insufficient stock for Lager: available 0, requested 1'
        assert exc_info.value.payload == {'beverage_id': 1, 'requested': 1, 'available': 0}

    def test_over_budget_is_reported_not_refused(self):
        snapshot = BudgetSnapshot(1, Decimal('1000.00'), Decimal('900.00'))
        new_spend, over_budget = plan_spend_increase(snapshot, Decimal('150.00'))
        assert new_spend == Decimal('1050.00')
        assert over_budget is True

    def test_exactly_at_budget_is_not_over(self):
        snapshot = BudgetSnapshot(1, Decimal('100.00'), Decimal('40.00'))
        assert plan_spend_increase(snapshot, Decimal('60.00')) == (Decimal('100.00'), False)
