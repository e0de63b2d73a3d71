"""
Event Budget Tracker - events, budgets and cumulative spend (manager-scoped).
"""
import logging
from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from typing import List, Optional, Tuple

from barpos.models import Event, ActivityAction
from barpos.models.event import to_money
from barpos.exceptions import EventNotFoundError, BudgetBelowSpendError, InvalidBudgetError
from barpos.services.activity_service import log_action
from barpos.services.transaction import atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetSnapshot:
    event_id: int
    budget: Decimal
    current_spend: Decimal

    @classmethod
    def of(cls, event: Event) -> 'BudgetSnapshot':
        return cls(event.id, event.budget, event.current_spend)


def get_event(session, event_id: int, manager_id: str, lock: bool = False) -> Event:
    """Fetch an event owned by the manager or raise EventNotFoundError."""
    query = session.query(Event).filter(
        Event.id == event_id,
        Event.manager_id == manager_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    event = query.first()
    if not event:
        raise EventNotFoundError(event_id)
    return event


def list_events(session, manager_id: str, active: Optional[bool] = None) -> List[Event]:
    query = session.query(Event).filter(Event.manager_id == manager_id)
    if active is not None:
        query = query.filter(Event.is_active == active)
    return query.order_by(Event.date.desc(), Event.id.desc()).all()


def create_event(
    session,
    manager_id: str,
    name: str,
    budget,
    date: Optional[date_type] = None,
    location: Optional[str] = None
) -> Event:
    """Create a new active event."""
    with atomic(session, 'event', manager_id, changed=('events',)):
        event = Event(
            manager_id=manager_id,
            name=name,
            date=date,
            location=location,
            budget=budget,
            current_spend=Decimal('0.00'),
            is_active=True
        )
        session.add(event)
        session.flush()
        log_action(session, manager_id, ActivityAction.EVENT_CREATED, 'event', event.id,
                   {'name': event.name, 'budget': event.budget})

    logger.info(f"[EVENT] created #{event.id} '{event.name}' budget={event.budget} for {manager_id}")
    return event


def set_event_active(session, event_id: int, active: bool, manager_id: str) -> Event:
    """Activate or deactivate an event. Several events may be active at once."""
    with atomic(session, 'event', manager_id, changed=('events',)):
        event = get_event(session, event_id, manager_id, lock=True)
        if event.is_active != active:
            event.is_active = active
            action = ActivityAction.EVENT_ACTIVATED if active else ActivityAction.EVENT_DEACTIVATED
            log_action(session, manager_id, action, 'event', event.id)
    return event


def get_budget_status(session, event_id: int, manager_id: str) -> BudgetSnapshot:
    return BudgetSnapshot.of(get_event(session, event_id, manager_id))


def plan_spend_increase(snapshot: BudgetSnapshot, amount: Decimal) -> Tuple[Decimal, bool]:
    """
    New spend after a charge and whether it overruns the budget.

    Budget is advisory: an overrun is reported, never refused.
    """
    new_spend = to_money(snapshot.current_spend + to_money(amount), 'current_spend')
    return new_spend, new_spend > snapshot.budget


def set_budget(session, event_id: int, new_budget, manager_id: str) -> Event:
    """Replace an event's budget; it may never drop below what was already spent."""
    with atomic(session, 'budget', manager_id, changed=('events',)):
        budget = to_money(new_budget, 'budget')
        if budget <= 0:
            raise InvalidBudgetError(budget)

        event = get_event(session, event_id, manager_id, lock=True)
        if budget < event.current_spend:
            raise BudgetBelowSpendError(budget, event.current_spend)

        previous = event.budget
        event.budget = budget
        log_action(session, manager_id, ActivityAction.BUDGET_CHANGED, 'event', event.id,
                   {'from': previous, 'to': budget})

    logger.info(f"[BUDGET] event #{event_id}: {previous} -> {budget}")
    return event
