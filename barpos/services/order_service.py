"""
Order Processor - settles a cart against one event and its beverages.

A charge reads the event budget/spend and every beverage in the cart under
row locks, validates the whole cart, then writes the decremented stock, the
new spend and one immutable Order as a single transaction. Any failure
leaves nothing behind.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from barpos.database import MAX_ID
from barpos.models import Order, OrderItem, TabLine, ActivityAction, order_total
from barpos.models.event import PRICE_LIMIT, to_money
from barpos.exceptions import (
    BarPosError, BeverageNotFoundError, EmptyCartError, InvalidQuantityError,
    DuplicateRequestError, ConcurrencyConflictError
)
from barpos.services.activity_service import log_action
from barpos.services.event_service import BudgetSnapshot, get_event, plan_spend_increase
from barpos.services.inventory_service import (
    StockSnapshot, apply_decrement, lock_beverages, plan_decrement, positive_quantity
)
from barpos.services.transaction import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    beverage_id: int
    quantity: int
    price_per_unit: Optional[Decimal] = None


@dataclass
class ChargeResult:
    order_id: int
    event_id: int
    total_amount: Decimal
    current_spend: Decimal
    over_budget: bool
    table_id: Optional[int] = None
    replayed: bool = False
    items: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'order_id': self.order_id,
            'event_id': self.event_id,
            'table_id': self.table_id,
            'total_amount': self.total_amount,
            'current_spend': self.current_spend,
            'over_budget': self.over_budget,
            'replayed': self.replayed,
            'items': self.items,
        }


def parse_cart(raw_lines) -> List[CartLine]:
    """
    Build cart lines from request data.

    Accepts dicts with ``beverage_id``/``beverageId``, ``quantity`` and an
    optional ``price_per_unit``/``pricePerUnit``.
    """
    if not raw_lines:
        raise EmptyCartError()
    if not isinstance(raw_lines, (list, tuple)):
        raise InvalidQuantityError('Cart must be a list of lines')

    lines = []
    for raw in raw_lines:
        if isinstance(raw, CartLine):
            lines.append(raw)
            continue
        if not isinstance(raw, dict):
            raise InvalidQuantityError(f'Invalid cart line: {raw!r}')

        beverage_id = raw.get('beverage_id', raw.get('beverageId'))
        try:
            beverage_id = int(beverage_id)
        except (TypeError, ValueError):
            raise BeverageNotFoundError(beverage_id)
        if not 0 < beverage_id <= MAX_ID:
            raise BeverageNotFoundError(beverage_id)

        price = raw.get('price_per_unit', raw.get('pricePerUnit'))
        if price is not None:
            price = to_money(price, 'price_per_unit', PRICE_LIMIT)
            if price <= 0:
                raise InvalidQuantityError(
                    f'Price per unit must be greater than 0 for beverage {beverage_id}',
                    {'beverage_id': beverage_id}
                )

        lines.append(CartLine(beverage_id, positive_quantity(raw.get('quantity')), price))
    return lines


def requested_by_beverage(lines: List[CartLine]) -> Dict[int, int]:
    """Total requested quantity per distinct beverage, in first-seen order."""
    totals = OrderedDict()
    for line in lines:
        totals[line.beverage_id] = totals.get(line.beverage_id, 0) + line.quantity
    return totals


def find_replay(session, idempotency_key: Optional[str], manager_id: str) -> Optional[ChargeResult]:
    """Return the recorded result of an already-processed request, if any."""
    if not idempotency_key:
        return None
    existing = session.query(Order).filter_by(idempotency_key=idempotency_key).first()
    if not existing:
        return None
    if existing.manager_id != manager_id:
        raise DuplicateRequestError(idempotency_key)

    event = get_event(session, existing.event_id, manager_id)
    logger.info(f"[CHARGE] replaying order #{existing.id} for key {idempotency_key}")
    return ChargeResult(
        order_id=existing.id,
        event_id=existing.event_id,
        table_id=existing.table_id,
        total_amount=existing.total_amount,
        current_spend=event.current_spend,
        over_budget=event.is_over_budget,
        replayed=True,
        items=[item.to_dict() for item in existing.items],
    )


def settle_cart(
    session,
    event_id: int,
    lines: List[CartLine],
    manager_id: str,
    table=None,
    idempotency_key: Optional[str] = None
) -> ChargeResult:
    """
    Read, validate and write one charge inside the caller's transaction.

    Does not commit. ``table`` (already locked by the caller) is closed and
    given the final cart when present.
    """
    if not lines:
        raise EmptyCartError()

    # 1. Read phase: event then beverages, all under row locks
    event = get_event(session, event_id, manager_id, lock=True)
    budget = BudgetSnapshot.of(event)
    requested = requested_by_beverage(lines)
    beverages = lock_beverages(session, requested.keys(), event.id, manager_id)
    snapshots = {bid: StockSnapshot.of(b) for bid, b in beverages.items()}

    # 2. Validate phase: every line, before any write
    for line in lines:
        if line.beverage_id not in beverages:
            raise BeverageNotFoundError(line.beverage_id)
    for beverage_id, quantity in requested.items():
        plan_decrement(snapshots[beverage_id], quantity)

    priced = [
        (line, beverages[line.beverage_id].name,
         line.price_per_unit if line.price_per_unit is not None else beverages[line.beverage_id].price)
        for line in lines
    ]
    total = order_total((line.quantity, price) for line, _, price in priced)
    new_spend, over_budget = plan_spend_increase(budget, total)
    if over_budget:
        logger.warning(
            f"[CHARGE] event #{event.id} over budget: spend {new_spend} > budget {budget.budget}"
        )

    # 3. Write phase
    for beverage_id, quantity in requested.items():
        apply_decrement(beverages[beverage_id], quantity, snapshots[beverage_id])
    event.current_spend = new_spend

    order = Order(
        event_id=event.id,
        table_id=table.id if table is not None else None,
        manager_id=manager_id,
        total_amount=total,
        idempotency_key=idempotency_key,
        items=[
            OrderItem(
                beverage_id=line.beverage_id,
                name=name,
                quantity=line.quantity,
                price_per_unit=price,
                line_total=order_total([(line.quantity, price)]),
            )
            for line, name, price in priced
        ],
    )
    session.add(order)

    if table is not None:
        table.is_open = False
        table.total_amount = total
        table.lines = [
            TabLine(beverage_id=line.beverage_id, name=name, quantity=line.quantity, price_per_unit=price)
            for line, name, price in priced
        ]

    try:
        session.flush()
    except IntegrityError as e:
        # Lost a race on the idempotency key; the retry will replay the winner
        if idempotency_key:
            raise ConcurrencyConflictError() from e
        raise

    log_action(session, manager_id, ActivityAction.ORDER_CHARGED, 'order', order.id, {
        'event_id': event.id,
        'table_id': order.table_id,
        'total_amount': total,
        'over_budget': over_budget,
    })

    return ChargeResult(
        order_id=order.id,
        event_id=event.id,
        table_id=order.table_id,
        total_amount=total,
        current_spend=new_spend,
        over_budget=over_budget,
        items=[item.to_dict() for item in order.items],
    )


def charge_order(
    session,
    event_id: int,
    lines,
    manager_id: str,
    idempotency_key: Optional[str] = None
) -> ChargeResult:
    """Charge a POS cart (no table) as one atomic unit."""
    try:
        with atomic(session, 'charge', manager_id, changed=('beverages', 'events', 'orders')):
            replay = find_replay(session, idempotency_key, manager_id)
            if replay is not None:
                return replay
            result = settle_cart(session, event_id, parse_cart(lines), manager_id,
                                 idempotency_key=idempotency_key)
    except BarPosError as e:
        record_charge_rejected(e.kind)
        raise

    record_charge_committed(result)
    logger.info(
        f"[CHARGE] order #{result.order_id} event #{event_id} total={result.total_amount} "
        f"spend={result.current_spend}"
    )
    return result


def list_orders(session, event_id: int, manager_id: str) -> List[Order]:
    get_event(session, event_id, manager_id)
    return session.query(Order).filter(
        Order.event_id == event_id,
        Order.manager_id == manager_id
    ).order_by(Order.timestamp.desc(), Order.id.desc()).all()


def record_charge_committed(result: ChargeResult) -> None:
    from barpos.blueprints.metrics import charges_total, over_budget_charges_total
    charges_total.labels(channel='table' if result.table_id else 'pos').inc()
    if result.over_budget:
        over_budget_charges_total.inc()


def record_charge_rejected(kind: str) -> None:
    from barpos.blueprints.metrics import charges_rejected_total
    charges_rejected_total.labels(kind=kind).inc()
