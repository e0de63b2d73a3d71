"""
Integration tests for table tabs: drafts, charge-and-close, deletion.
"""

import pytest
from decimal import Decimal

from barpos.exceptions import (
    DuplicateTableError, EmptyCartError, InsufficientStockError, InvalidQuantityError,
    InvalidRecordError, TableClosedError, TableHasHistoryError, TableNotFoundError
)
from barpos.models import BarTable, Beverage, Order, TabLine
from barpos.models.beverage import MAX_STOCK
from barpos.services import tab_service


class TestTableLifecycle:
    """Open -> draft edits -> closed."""

    def test_draft_then_charge_then_delete_fails(self, session, event, beer, juice):
        manager_id = event.manager_id
        table = tab_service.create_table(session, event.id, 'A1', manager_id)
        table_id = table.id
        assert table.is_open is True

        tab_service.save_draft(session, table_id, [
            {'beverage_id': beer.id, 'quantity': 2},
            {'beverage_id': juice.id, 'quantity': 1},
        ], manager_id)

        # Drafts touch neither stock nor spend
        assert session.get(Beverage, beer.id).current_stock == 10
        assert session.get(Beverage, juice.id).current_stock == 4
        assert session.get(BarTable, table_id).total_amount == Decimal('13.00')

        result = tab_service.charge_and_close(session, table_id, manager_id)

        assert result.table_id == table_id
        assert result.total_amount == Decimal('13.00')
        assert session.get(Beverage, beer.id).current_stock == 8
        assert session.get(Beverage, juice.id).current_stock == 3
        order = session.get(Order, result.order_id)
        assert order.table_id == table_id
        assert len(order.items) == 2
        assert session.get(BarTable, table_id).is_open is False

        with pytest.raises(TableHasHistoryError):
            tab_service.delete_table(session, table_id, manager_id)

    def test_draft_merges_lines_and_snapshots_price(self, session, event, beer, table):
        tab_service.save_draft(session, table.id, [
            {'beverage_id': beer.id, 'quantity': 1},
            {'beverage_id': beer.id, 'quantity': 2},
        ], event.manager_id)

        lines = session.query(TabLine).filter_by(table_id=table.id).all()
        assert len(lines) == 1
        assert lines[0].quantity == 3
        assert lines[0].price_per_unit == Decimal('5.00')
        assert lines[0].name == 'Lager'

    def test_merged_quantity_beyond_stock_range_is_rejected(self, session, event, beer, table):
        table_id = table.id
        with pytest.raises(InvalidQuantityError):
            tab_service.save_draft(session, table_id, [
                {'beverage_id': beer.id, 'quantity': MAX_STOCK},
                {'beverage_id': beer.id, 'quantity': 1},
            ], event.manager_id)
        assert session.query(TabLine).filter_by(table_id=table_id).count() == 0

    def test_draft_total_beyond_money_range_is_rejected(self, session, event, beer, table):
        table_id = table.id
        with pytest.raises(InvalidRecordError):
            tab_service.save_draft(session, table_id, [
                {'beverage_id': beer.id, 'quantity': 1000, 'price_per_unit': '99999999.99'},
            ], event.manager_id)
        refreshed = session.get(BarTable, table_id)
        assert refreshed.lines == []
        assert refreshed.total_amount == Decimal('0.00')

    def test_empty_draft_clears_tab(self, session, event, beer, table):
        tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 1}], event.manager_id)
        tab_service.save_draft(session, table.id, [], event.manager_id)

        refreshed = session.get(BarTable, table.id)
        assert refreshed.lines == []
        assert refreshed.total_amount == Decimal('0.00')

        tab_service.delete_table(session, table.id, event.manager_id)
        assert session.get(BarTable, table.id) is None

    def test_closed_table_cannot_be_charged_again(self, session, event, beer, table):
        tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 1}], event.manager_id)
        tab_service.charge_and_close(session, table.id, event.manager_id)

        with pytest.raises(TableClosedError):
            tab_service.charge_and_close(session, table.id, event.manager_id)
        with pytest.raises(TableClosedError):
            tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 1}], event.manager_id)
        assert session.get(Beverage, beer.id).current_stock == 9
        assert session.query(Order).count() == 1

    def test_failed_charge_keeps_table_open_with_draft(self, session, event, beer, juice, table):
        tab_service.save_draft(session, table.id, [
            {'beverage_id': beer.id, 'quantity': 1},
            {'beverage_id': juice.id, 'quantity': 9},
        ], event.manager_id)

        with pytest.raises(InsufficientStockError):
            tab_service.charge_and_close(session, table.id, event.manager_id)

        refreshed = session.get(BarTable, table.id)
        assert refreshed.is_open is True
        assert [(l.beverage_id, l.quantity) for l in refreshed.lines] == [(beer.id, 1), (juice.id, 9)]
        assert session.get(Beverage, beer.id).current_stock == 10
        assert session.query(Order).count() == 0

    def test_empty_tab_cannot_be_charged(self, session, event, table):
        with pytest.raises(EmptyCartError):
            tab_service.charge_and_close(session, table.id, event.manager_id)

    def test_charge_replay_with_same_key(self, session, event, beer, table):
        tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 2}], event.manager_id)
        first = tab_service.charge_and_close(session, table.id, event.manager_id, idempotency_key='tab-1')
        second = tab_service.charge_and_close(session, table.id, event.manager_id, idempotency_key='tab-1')

        assert second.replayed is True
        assert second.order_id == first.order_id
        assert session.get(Beverage, beer.id).current_stock == 8


class TestTableRules:
    """Creation and lookup rules."""

    def test_duplicate_number_rejected_even_when_closed(self, session, event, beer, table):
        tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 1}], event.manager_id)
        tab_service.charge_and_close(session, table.id, event.manager_id)

        with pytest.raises(DuplicateTableError):
            tab_service.create_table(session, event.id, ' T1 ', event.manager_id)

    def test_same_number_in_other_event(self, session, table, other_event):
        other = tab_service.create_table(session, other_event.id, 'T1', other_event.manager_id)
        assert other.id != table.id

    def test_unknown_table(self, session, manager_id):
        with pytest.raises(TableNotFoundError):
            tab_service.save_draft(session, 31337, [], manager_id)

    def test_list_open_tables(self, session, event, beer, table):
        tab_service.create_table(session, event.id, 'T2', event.manager_id)
        tab_service.save_draft(session, table.id, [{'beverage_id': beer.id, 'quantity': 1}], event.manager_id)
        tab_service.charge_and_close(session, table.id, event.manager_id)

        open_tables = tab_service.list_tables(session, event.id, event.manager_id, open_only=True)
        assert [t.table_number for t in open_tables] == ['T2']
        assert len(tab_service.list_tables(session, event.id, event.manager_id)) == 2
