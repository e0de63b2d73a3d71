"""Tab Manager - per-table draft carts that are charged once and closed."""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from barpos.models import BarTable, TabLine, Beverage, ActivityAction, order_total
from barpos.models.event import to_money
from barpos.exceptions import (
    BarPosError, BeverageNotFoundError, DuplicateTableError, EmptyCartError,
    TableClosedError, TableHasHistoryError, TableNotFoundError
)
from barpos.services.activity_service import log_action
from barpos.services.event_service import get_event
from barpos.services.inventory_service import positive_quantity
from barpos.services.order_service import (
    CartLine, ChargeResult, find_replay, parse_cart, settle_cart,
    record_charge_committed, record_charge_rejected
)
from barpos.services.transaction import atomic

logger = logging.getLogger(__name__)


def get_table(session, table_id: int, manager_id: str, lock: bool = False) -> BarTable:
    """Fetch a table owned by the manager or raise TableNotFoundError."""
    query = session.query(BarTable).filter(
        BarTable.id == table_id,
        BarTable.manager_id == manager_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    table = query.first()
    if not table:
        raise TableNotFoundError(table_id)
    return table


def list_tables(session, event_id: int, manager_id: str, open_only: bool = False) -> List[BarTable]:
    get_event(session, event_id, manager_id)
    query = session.query(BarTable).filter(
        BarTable.event_id == event_id,
        BarTable.manager_id == manager_id
    )
    if open_only:
        query = query.filter(BarTable.is_open == True)  # noqa: E712
    return query.order_by(BarTable.table_number).all()


def create_table(session, event_id: int, table_number: str, manager_id: str) -> BarTable:
    """Open a new, empty tab. Table numbers are unique per event, open or closed."""
    with atomic(session, 'table', manager_id, changed=('tables',)):
        get_event(session, event_id, manager_id)
        table = BarTable(
            event_id=event_id,
            manager_id=manager_id,
            table_number=table_number,
            is_open=True,
            total_amount=Decimal('0.00'),
        )
        exists = session.query(BarTable.id).filter(
            BarTable.event_id == event_id,
            BarTable.table_number == table.table_number
        ).first()
        if exists:
            raise DuplicateTableError(event_id, table.table_number)

        session.add(table)
        try:
            session.flush()
        except IntegrityError as e:
            raise DuplicateTableError(event_id, table.table_number) from e
        log_action(session, manager_id, ActivityAction.TABLE_CREATED, 'table', table.id,
                   {'event_id': event_id, 'table_number': table.table_number})

    logger.info(f"[TABLE] opened {table.table_number} for event #{event_id}")
    return table


def save_draft(session, table_id: int, raw_lines, manager_id: str) -> BarTable:
    """
    Persist the table's draft cart and its total.

    No stock or spend is touched. An empty cart clears the tab. Lines for the
    same beverage are merged; name and unit price are snapshotted now.
    """
    with atomic(session, 'table', manager_id, changed=('tables',)):
        table = get_table(session, table_id, manager_id, lock=True)
        if not table.is_open:
            raise TableClosedError(table.table_number)

        lines = parse_cart(raw_lines) if raw_lines else []
        merged = OrderedDict()
        for line in lines:
            if line.beverage_id in merged:
                prev = merged[line.beverage_id]
                quantity = positive_quantity(prev.quantity + line.quantity)
                merged[line.beverage_id] = CartLine(prev.beverage_id, quantity, prev.price_per_unit)
            else:
                merged[line.beverage_id] = line

        beverages = {}
        if merged:
            rows = session.query(Beverage).filter(
                Beverage.id.in_(list(merged.keys())),
                Beverage.event_id == table.event_id,
                Beverage.manager_id == manager_id
            ).all()
            beverages = {b.id: b for b in rows}

        new_lines = []
        for beverage_id, line in merged.items():
            beverage = beverages.get(beverage_id)
            if beverage is None:
                raise BeverageNotFoundError(beverage_id)
            price = line.price_per_unit if line.price_per_unit is not None else beverage.price
            new_lines.append(TabLine(
                beverage_id=beverage_id,
                name=beverage.name,
                quantity=line.quantity,
                price_per_unit=price,
            ))

        total = to_money(order_total((l.quantity, l.price_per_unit) for l in new_lines), 'total_amount')
        table.lines = new_lines
        table.total_amount = total

    logger.info(f"[TABLE] draft saved for {table.table_number}: {len(new_lines)} lines")
    return table


def charge_and_close(session, table_id: int, manager_id: str, idempotency_key: Optional[str] = None) -> ChargeResult:
    """
    Charge the table's draft through the order processor and close the tab.

    On failure the table stays open with its draft untouched.
    """
    try:
        with atomic(session, 'charge', manager_id, changed=('beverages', 'events', 'orders', 'tables')):
            replay = find_replay(session, idempotency_key, manager_id)
            if replay is not None:
                return replay

            table = get_table(session, table_id, manager_id, lock=True)
            if not table.is_open:
                raise TableClosedError(table.table_number)
            if not table.lines:
                raise EmptyCartError(f'Table {table.table_number} has no items to charge')

            lines = [CartLine(l.beverage_id, l.quantity, l.price_per_unit) for l in table.lines]
            result = settle_cart(session, table.event_id, lines, manager_id,
                                 table=table, idempotency_key=idempotency_key)
            log_action(session, manager_id, ActivityAction.TABLE_CLOSED, 'table', table.id,
                       {'order_id': result.order_id, 'total_amount': result.total_amount})
    except BarPosError as e:
        record_charge_rejected(e.kind)
        raise

    record_charge_committed(result)
    logger.info(f"[CHARGE] table #{table_id} closed with order #{result.order_id} total={result.total_amount}")
    return result


def delete_table(session, table_id: int, manager_id: str) -> None:
    """Remove an empty tab. Tabs with any recorded items or total are kept."""
    with atomic(session, 'table', manager_id, changed=('tables',)):
        table = get_table(session, table_id, manager_id, lock=True)
        if table.has_history:
            raise TableHasHistoryError(table.table_number)
        log_action(session, manager_id, ActivityAction.TABLE_DELETED, 'table', table.id,
                   {'table_number': table.table_number})
        session.delete(table)
