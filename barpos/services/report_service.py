"""Post-event reports: per-beverage reconciliation and category sales."""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from barpos.models import Event, Beverage, Order, OrderItem
from barpos.services.event_service import get_event


def build_event_report(session, event_id: int, manager_id: str) -> Dict[str, Any]:
    """
    Per-beverage breakdown for one event.

    ``sold_quantity`` comes from the stock ledger (initial - current);
    ``ordered_quantity`` and ``revenue`` are summed from the order snapshots.
    """
    event = get_event(session, event_id, manager_id)
    beverages = session.query(Beverage).filter(
        Beverage.event_id == event.id
    ).order_by(Beverage.name).all()
    items = session.query(OrderItem).join(Order).filter(
        Order.event_id == event.id
    ).all()

    ordered = {}
    revenue = {}
    for item in items:
        ordered[item.beverage_id] = ordered.get(item.beverage_id, 0) + item.quantity
        revenue[item.beverage_id] = revenue.get(item.beverage_id, Decimal('0.00')) + item.line_total

    rows = []
    for beverage in beverages:
        variance = None
        if beverage.audited_stock is not None:
            variance = beverage.audited_stock - beverage.current_stock
        rows.append({
            'beverage_id': beverage.id,
            'name': beverage.name,
            'category': beverage.category,
            'type': beverage.beverage_type,
            'price': beverage.price,
            'initial_stock': beverage.initial_stock,
            'closing_stock': beverage.current_stock,
            'sold_quantity': beverage.sold_quantity,
            'ordered_quantity': ordered.get(beverage.id, 0),
            'revenue': revenue.get(beverage.id, Decimal('0.00')),
            'audited_stock': beverage.audited_stock,
            'last_audited_at': beverage.last_audited_at.isoformat() if beverage.last_audited_at else None,
            'variance': variance,
        })

    return {
        'event': event.to_dict(),
        'beverages': rows,
        'totals': {
            'sold_quantity': sum(r['sold_quantity'] for r in rows),
            'revenue': sum((r['revenue'] for r in rows), Decimal('0.00')),
            'order_revenue': sum(revenue.values(), Decimal('0.00')),
        },
    }


def sales_by_category(
    session,
    manager_id: str,
    beverage_type: Optional[str] = None,
    name_filter: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Quantity sold per beverage category across past (inactive) events.

    Sorted by quantity, highest first.
    """
    query = session.query(Event).filter(
        Event.manager_id == manager_id,
        Event.is_active == False  # noqa: E712
    )
    if name_filter:
        query = query.filter(Event.name.ilike(f'%{name_filter.strip()}%'))
    event_ids = [e.id for e in query.all()]
    if not event_ids:
        return []

    beverages = {
        b.id: b for b in session.query(Beverage).filter(Beverage.event_id.in_(event_ids)).all()
    }
    items = session.query(OrderItem).join(Order).filter(Order.event_id.in_(event_ids)).all()

    totals = {}
    for item in items:
        beverage = beverages.get(item.beverage_id)
        if beverage is None:
            continue
        if beverage_type and beverage.beverage_type != beverage_type:
            continue
        totals[beverage.category] = totals.get(beverage.category, 0) + item.quantity

    return [
        {'category': category, 'total_sold': total}
        for category, total in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
