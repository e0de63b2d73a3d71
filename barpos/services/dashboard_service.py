"""
Dashboard read model.

The live view of active events is derived, never hand-maintained: ``project``
is a pure function of the current events, beverages and orders, and the
cached copy is dropped after every committed write.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable

from flask import current_app

from barpos.models import Event, Beverage, Order

logger = logging.getLogger(__name__)

NO_INITIAL_STOCK = 'NO_INITIAL_STOCK'
OUT_OF_STOCK = 'OUT_OF_STOCK'
CRITICALLY_LOW = 'CRITICALLY_LOW'
GETTING_LOW = 'GETTING_LOW'
IN_STOCK = 'IN_STOCK'


def stock_status(current_stock: int, initial_stock: int, critical_pct: int = 30, warning_pct: int = 60) -> str:
    """Classify remaining stock as a share of initial stock."""
    if not initial_stock:
        return NO_INITIAL_STOCK
    remaining_pct = Decimal(current_stock) * 100 / Decimal(initial_stock)
    if remaining_pct <= 0:
        return OUT_OF_STOCK
    if remaining_pct <= critical_pct:
        return CRITICALLY_LOW
    if remaining_pct <= warning_pct:
        return GETTING_LOW
    return IN_STOCK


def project(
    events: Iterable[Event],
    beverages: Iterable[Beverage],
    orders: Iterable[Order],
    critical_pct: int = 30,
    warning_pct: int = 60
) -> Dict[str, Any]:
    """
    View state keyed by event id (as string).

    Beverages and orders belonging to events not in ``events`` are ignored.
    """
    view = {}
    for event in events:
        budget = event.budget or Decimal('0')
        spend = event.current_spend or Decimal('0')
        view[str(event.id)] = {
            'event': {
                'id': event.id,
                'name': event.name,
                'date': event.date.isoformat() if event.date else None,
                'location': event.location,
                'budget': budget,
                'current_spend': spend,
            },
            'budget_used_pct': (spend * 100 / budget).quantize(Decimal('0.01')) if budget else Decimal('0.00'),
            'over_budget': spend > budget,
            'beverages': [],
            'order_count': 0,
            'revenue': Decimal('0.00'),
        }

    for beverage in sorted(beverages, key=lambda b: (b.name or '').lower()):
        entry = view.get(str(beverage.event_id))
        if entry is None:
            continue
        entry['beverages'].append({
            'id': beverage.id,
            'name': beverage.name,
            'category': beverage.category,
            'type': beverage.beverage_type,
            'price': beverage.price,
            'initial_stock': beverage.initial_stock,
            'current_stock': beverage.current_stock,
            'stock_status': stock_status(beverage.current_stock, beverage.initial_stock,
                                         critical_pct, warning_pct),
        })

    for order in orders:
        entry = view.get(str(order.event_id))
        if entry is None:
            continue
        entry['order_count'] += 1
        entry['revenue'] += order.total_amount

    return view


def _load_dashboard(session, manager_id: str) -> Dict[str, Any]:
    events = session.query(Event).filter(
        Event.manager_id == manager_id,
        Event.is_active == True  # noqa: E712
    ).all()
    event_ids = [e.id for e in events]
    beverages, orders = [], []
    if event_ids:
        beverages = session.query(Beverage).filter(Beverage.event_id.in_(event_ids)).all()
        orders = session.query(Order).filter(Order.event_id.in_(event_ids)).all()
    return project(
        events, beverages, orders,
        current_app.config.get('LOW_STOCK_CRITICAL_PCT', 30),
        current_app.config.get('LOW_STOCK_WARNING_PCT', 60),
    )


def get_dashboard(session, manager_id: str) -> Dict[str, Any]:
    """Projection over the manager's active events (cached per manager)."""
    from barpos.services.cache_service import get_cache
    cache = get_cache()
    return cache.memoize(
        manager_id, 'dashboard', 'active',
        lambda: _load_dashboard(session, manager_id),
        ttl=current_app.config.get('CACHE_DASHBOARD_TTL', 30)
    )
