"""
Inventory Ledger - beverage stock records per event (manager-scoped).
Sales never call ``apply_decrement`` outside the order transaction.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Any

from flask import current_app

from barpos.models import Beverage, ActivityAction
from barpos.models.beverage import MAX_STOCK
from barpos.exceptions import (
    BarPosError, BeverageNotFoundError, InsufficientStockError,
    InvalidQuantityError, AuthorizationDeniedError
)
from barpos.services.activity_service import log_action
from barpos.services.event_service import get_event
from barpos.services.transaction import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockSnapshot:
    beverage_id: int
    name: str
    current_stock: int
    initial_stock: int

    @classmethod
    def of(cls, beverage: Beverage) -> 'StockSnapshot':
        return cls(beverage.id, beverage.name, beverage.current_stock, beverage.initial_stock)


def positive_quantity(value) -> int:
    """Parse a strictly positive whole quantity or raise InvalidQuantityError."""
    if isinstance(value, bool):
        raise InvalidQuantityError(f'Invalid quantity: {value!r}')
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        qty = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidQuantityError(f'Invalid quantity: {value!r}')
    if qty <= 0:
        raise InvalidQuantityError(f'Quantity must be greater than 0 (got {qty})', {'quantity': qty})
    if qty > MAX_STOCK:
        raise InvalidQuantityError(f'Quantity cannot exceed {MAX_STOCK} (got {qty})', {'quantity': qty})
    return qty


def get_beverage(session, beverage_id: int, manager_id: str, lock: bool = False) -> Beverage:
    """Fetch a beverage owned by the manager or raise BeverageNotFoundError."""
    query = session.query(Beverage).filter(
        Beverage.id == beverage_id,
        Beverage.manager_id == manager_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    beverage = query.first()
    if not beverage:
        raise BeverageNotFoundError(beverage_id)
    return beverage


def get_stock(session, beverage_id: int, manager_id: str) -> StockSnapshot:
    return StockSnapshot.of(get_beverage(session, beverage_id, manager_id))


def list_beverages(session, event_id: int, manager_id: str) -> List[Beverage]:
    get_event(session, event_id, manager_id)
    return session.query(Beverage).filter(
        Beverage.event_id == event_id,
        Beverage.manager_id == manager_id
    ).order_by(Beverage.name).all()


def lock_beverages(session, beverage_ids: Iterable[int], event_id: int, manager_id: str) -> Dict[int, Beverage]:
    """Lock beverage rows FOR UPDATE (in id order) and return them keyed by id."""
    ids = sorted(set(beverage_ids))
    if not ids:
        return {}
    rows = session.query(Beverage).filter(
        Beverage.id.in_(ids),
        Beverage.event_id == event_id,
        Beverage.manager_id == manager_id
    ).order_by(Beverage.id).with_for_update().populate_existing().all()
    return {b.id: b for b in rows}


def plan_decrement(snapshot: StockSnapshot, quantity: int) -> int:
    """New stock level after selling ``quantity``, or InsufficientStockError."""
    new_stock = snapshot.current_stock - quantity
    if new_stock < 0:
        raise InsufficientStockError(snapshot.beverage_id, snapshot.name, quantity, snapshot.current_stock)
    return new_stock


def apply_decrement(beverage: Beverage, quantity: int, expected: StockSnapshot) -> int:
    """Write the decrement planned against ``expected`` onto a locked beverage row."""
    new_stock = plan_decrement(expected, quantity)
    beverage.current_stock = new_stock
    return new_stock


def authorize_restock(role: Optional[str], capability_token: Optional[str] = None) -> None:
    """Server-side restock gate: role check plus optional capability token."""
    allowed = current_app.config.get('RESTOCK_ROLES', {'OWNER', 'MANAGER'})
    if not role or role.upper() not in allowed:
        raise AuthorizationDeniedError(f'Role {role or "anonymous"} is not allowed to restock')

    expected = current_app.config.get('RESTOCK_CAPABILITY_TOKEN')
    if expected and not hmac.compare_digest(str(capability_token or ''), expected):
        raise AuthorizationDeniedError('Invalid restock capability token')


def restock(
    session,
    beverage_id: int,
    quantity,
    manager_id: str,
    role: Optional[str],
    capability_token: Optional[str] = None
) -> Beverage:
    """Add ``quantity`` to both initial and current stock."""
    with atomic(session, 'restock', manager_id, changed=('beverages',)):
        authorize_restock(role, capability_token)
        qty = positive_quantity(quantity)

        beverage = get_beverage(session, beverage_id, manager_id, lock=True)
        beverage.initial_stock = beverage.initial_stock + qty
        beverage.current_stock = beverage.current_stock + qty
        log_action(session, manager_id, ActivityAction.BEVERAGE_RESTOCKED, 'beverage', beverage.id,
                   {'quantity': qty, 'initial_stock': beverage.initial_stock,
                    'current_stock': beverage.current_stock})

    _record_restock_metric()
    logger.info(f"[RESTOCK] beverage #{beverage_id} +{qty} by {manager_id}")
    return beverage


def _new_beverage(event_id: int, manager_id: str, data: Dict[str, Any]) -> Beverage:
    initial = data.get('initial_stock', 0)
    return Beverage(
        event_id=event_id,
        manager_id=manager_id,
        name=data.get('name'),
        beverage_type=data.get('type'),
        category=data.get('category'),
        price=data.get('price'),
        initial_stock=initial,
        current_stock=initial,
        image_url=data.get('image_url') or None,
    )


def create_beverage(session, event_id: int, data: Dict[str, Any], manager_id: str) -> Beverage:
    """Add one beverage to an event. current_stock starts equal to initial_stock."""
    with atomic(session, 'inventory', manager_id, changed=('beverages',)):
        get_event(session, event_id, manager_id)
        beverage = _new_beverage(event_id, manager_id, data)
        session.add(beverage)
        session.flush()
        log_action(session, manager_id, ActivityAction.BEVERAGE_CREATED, 'beverage', beverage.id,
                   {'name': beverage.name, 'initial_stock': beverage.initial_stock})
    return beverage


def create_beverages_batch(session, event_id: int, entries: List[Dict[str, Any]], manager_id: str) -> Dict[str, list]:
    """
    Add several beverages at once.

    Each entry is validated on its own; invalid ones are skipped and reported
    while the valid ones are committed together.
    """
    created = []
    skipped = []
    with atomic(session, 'inventory', manager_id, changed=('beverages',)):
        get_event(session, event_id, manager_id)
        for index, data in enumerate(entries):
            try:
                beverage = _new_beverage(event_id, manager_id, data or {})
            except BarPosError as e:
                logger.info(f"[INVENTORY] batch entry {index} skipped: {e.message}")
                skipped.append({'index': index, 'name': (data or {}).get('name'), 'reason': e.message})
                continue
            session.add(beverage)
            created.append(beverage)

        session.flush()
        for beverage in created:
            log_action(session, manager_id, ActivityAction.BEVERAGE_CREATED, 'beverage', beverage.id,
                       {'name': beverage.name, 'initial_stock': beverage.initial_stock, 'batch': True})

    return {'created': created, 'skipped': skipped}


def delete_beverage(session, beverage_id: int, manager_id: str) -> None:
    """Delete a beverage. Orders keep their own name/price snapshots."""
    with atomic(session, 'inventory', manager_id, changed=('beverages',)):
        beverage = get_beverage(session, beverage_id, manager_id, lock=True)
        if beverage.image_url:
            # The file itself belongs to the storage collaborator
            logger.info(f"[INVENTORY] releasing image reference {beverage.image_url}")
        log_action(session, manager_id, ActivityAction.BEVERAGE_DELETED, 'beverage', beverage.id,
                   {'name': beverage.name, 'image_url': beverage.image_url})
        session.delete(beverage)


def _record_restock_metric():
    from barpos.blueprints.metrics import restocks_total
    restocks_total.inc()
