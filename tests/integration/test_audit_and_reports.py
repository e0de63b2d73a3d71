"""
Integration tests for stock audits, event reports and the dashboard.
"""

import pytest
from decimal import Decimal

from barpos.exceptions import BeverageNotFoundError
from barpos.models import Beverage
from barpos.services import audit_service, dashboard_service, event_service, report_service
from barpos.services.order_service import charge_order


class TestAudit:
    """Tests for audit reconciliation."""

    def test_audit_never_touches_current_stock(self, session, event, beer):
        audit_service.record_audit(session, beer.id, '7', event.manager_id)

        refreshed = session.get(Beverage, beer.id)
        assert refreshed.audited_stock == 7
        assert refreshed.current_stock == 10
        assert refreshed.last_audited_at is not None

    @pytest.mark.parametrize('counted', [
        '-3', 'lots', None, 'Infinity', '-inf', float('inf'), 'NaN', 10 ** 20
    ])
    def test_invalid_counts_clamp_to_zero(self, session, event, beer, counted):
        audit_service.record_audit(session, beer.id, counted, event.manager_id)
        assert session.get(Beverage, beer.id).audited_stock == 0

    def test_audit_unknown_beverage(self, session, manager_id):
        with pytest.raises(BeverageNotFoundError):
            audit_service.record_audit(session, 555, 1, manager_id)

    def test_batch_skips_bad_ids(self, session, event, beer, juice):
        result = audit_service.record_audits(session, {
            str(beer.id): 9,
            'not-an-id': 3,
            '9999': 1,
            str(10 ** 20): 2,
            juice.id: 'x',
        }, event.manager_id)

        assert sorted(u['beverage_id'] for u in result['updated']) == sorted([beer.id, juice.id])
        assert sorted(str(s['beverage_id']) for s in result['skipped']) == [str(10 ** 20), '9999', 'not-an-id']
        assert session.get(Beverage, beer.id).audited_stock == 9
        assert session.get(Beverage, juice.id).audited_stock == 0

    def test_count_keeps_leading_digits(self, session, event, beer):
        audit_service.record_audit(session, beer.id, '12abc', event.manager_id)
        assert session.get(Beverage, beer.id).audited_stock == 12

    def test_batch_with_non_finite_count_saves_the_rest(self, session, event, beer, juice):
        result = audit_service.record_audits(session, {
            beer.id: 'Infinity',
            juice.id: 3,
        }, event.manager_id)

        assert sorted(u['audited_stock'] for u in result['updated']) == [0, 3]
        assert result['skipped'] == []
        assert session.get(Beverage, beer.id).audited_stock == 0
        assert session.get(Beverage, juice.id).audited_stock == 3


class TestEventReport:
    """Tests for the per-beverage event report."""

    def test_report_rows(self, session, event, beer, juice):
        charge_order(session, event.id, [{'beverage_id': beer.id, 'quantity': 3}], event.manager_id)
        charge_order(session, event.id, [
            {'beverage_id': beer.id, 'quantity': 1, 'price_per_unit': '4.00'},
            {'beverage_id': juice.id, 'quantity': 2},
        ], event.manager_id)
        audit_service.record_audit(session, beer.id, 5, event.manager_id)

        report = report_service.build_event_report(session, event.id, event.manager_id)

        rows = {r['name']: r for r in report['beverages']}
        assert rows['Lager']['sold_quantity'] == 4
        assert rows['Lager']['ordered_quantity'] == 4
        assert rows['Lager']['revenue'] == Decimal('19.00')
        assert rows['Lager']['closing_stock'] == 6
        assert rows['Lager']['variance'] == -1
        assert rows['Orange Juice']['revenue'] == Decimal('6.00')
        assert rows['Orange Juice']['variance'] is None
        assert report['totals']['revenue'] == Decimal('25.00')
        assert report['totals']['sold_quantity'] == 6


class TestSalesByCategory:
    """Tests for category sales over past events."""

    def test_only_inactive_events_count(self, session, event, beer, juice):
        charge_order(session, event.id, [
            {'beverage_id': beer.id, 'quantity': 2},
            {'beverage_id': juice.id, 'quantity': 3},
        ], event.manager_id)
        assert report_service.sales_by_category(session, event.manager_id) == []

        event_service.set_event_active(session, event.id, False, event.manager_id)

        rows = report_service.sales_by_category(session, event.manager_id)
        assert rows == [{'category': 'Juice', 'total_sold': 3}, {'category': 'Beers', 'total_sold': 2}]
        assert report_service.sales_by_category(session, event.manager_id, beverage_type='alcoholic') == [
            {'category': 'Beers', 'total_sold': 2}
        ]
        assert report_service.sales_by_category(session, event.manager_id, name_filter='nothing') == []


class TestDashboard:
    """Tests for the dashboard read model over the database."""

    def test_dashboard_reflects_committed_charges(self, session, event, beer):
        before = dashboard_service.get_dashboard(session, event.manager_id)
        assert before[str(event.id)]['order_count'] == 0

        charge_order(session, event.id, [{'beverage_id': beer.id, 'quantity': 8}], event.manager_id)

        after = dashboard_service.get_dashboard(session, event.manager_id)
        entry = after[str(event.id)]
        assert entry['order_count'] == 1
        assert entry['revenue'] == Decimal('40.00')
        assert entry['beverages'][0]['stock_status'] == 'CRITICALLY_LOW'

    def test_inactive_events_are_hidden(self, session, event):
        event_service.set_event_active(session, event.id, False, event.manager_id)
        assert dashboard_service.get_dashboard(session, event.manager_id) == {}
