"""Events blueprint - event lifecycle and budget (manager-scoped)."""
from flask import Blueprint, g, jsonify, request

from barpos.database import get_session
from barpos.exceptions import InvalidBudgetError, InvalidRecordError
from barpos.forms import EventForm, BudgetForm, form_errors
from barpos.middleware import require_manager
from barpos.services import event_service

events_bp = Blueprint('events', __name__, url_prefix='/api/events')


def _parse_active_filter(value):
    if value is None or value == '':
        return None
    return value.strip().lower() in ('1', 'true', 'yes')


@events_bp.route('', methods=['GET'])
@require_manager
def list_events():
    """List the manager's events, optionally only active or only past ones."""
    db_session = get_session()
    active = _parse_active_filter(request.args.get('active'))
    events = event_service.list_events(db_session, g.manager_id, active=active)
    return jsonify({'events': [e.to_dict() for e in events]})


@events_bp.route('', methods=['POST'])
@require_manager
def create_event():
    form = EventForm()
    if not form.validate():
        errors = form_errors(form)
        if 'budget' in errors:
            raise InvalidBudgetError((request.get_json(silent=True) or {}).get('budget'))
        raise InvalidRecordError('Invalid event data', {'errors': errors})

    event = event_service.create_event(
        get_session(),
        g.manager_id,
        name=form.name.data,
        budget=form.budget.data,
        date=form.date.data,
        location=form.location.data or None,
    )
    return jsonify({'status': 'success', 'event': event.to_dict()}), 201


@events_bp.route('/<int:event_id>', methods=['GET'])
@require_manager
def get_event(event_id):
    event = event_service.get_event(get_session(), event_id, g.manager_id)
    return jsonify({'event': event.to_dict()})


@events_bp.route('/<int:event_id>/activate', methods=['POST'])
@require_manager
def activate_event(event_id):
    event = event_service.set_event_active(get_session(), event_id, True, g.manager_id)
    return jsonify({'status': 'success', 'event': event.to_dict()})


@events_bp.route('/<int:event_id>/deactivate', methods=['POST'])
@require_manager
def deactivate_event(event_id):
    event = event_service.set_event_active(get_session(), event_id, False, g.manager_id)
    return jsonify({'status': 'success', 'event': event.to_dict()})


@events_bp.route('/<int:event_id>/budget', methods=['GET'])
@require_manager
def budget_status(event_id):
    snapshot = event_service.get_budget_status(get_session(), event_id, g.manager_id)
    return jsonify({
        'event_id': snapshot.event_id,
        'budget': snapshot.budget,
        'current_spend': snapshot.current_spend,
        'over_budget': snapshot.current_spend > snapshot.budget,
    })


@events_bp.route('/<int:event_id>/budget', methods=['PUT'])
@require_manager
def set_budget(event_id):
    """Replace the budget. Rejected when it would fall below current spend."""
    form = BudgetForm()
    if not form.validate():
        raise InvalidBudgetError((request.get_json(silent=True) or {}).get('budget'))

    event = event_service.set_budget(get_session(), event_id, form.budget.data, g.manager_id)
    return jsonify({'status': 'success', 'event': event.to_dict()})
