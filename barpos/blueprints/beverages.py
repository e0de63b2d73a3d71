"""Beverages blueprint - inventory ledger and stock audits (manager-scoped)."""
from flask import Blueprint, g, jsonify, request

from barpos.database import get_session
from barpos.exceptions import InvalidQuantityError, InvalidRecordError
from barpos.forms import RestockForm, AuditForm, form_errors
from barpos.middleware import require_manager
from barpos.services import inventory_service, audit_service

beverages_bp = Blueprint('beverages', __name__, url_prefix='/api')


def _json_body():
    return request.get_json(silent=True) or {}


@beverages_bp.route('/events/<int:event_id>/beverages', methods=['GET'])
@require_manager
def list_beverages(event_id):
    beverages = inventory_service.list_beverages(get_session(), event_id, g.manager_id)
    return jsonify({'beverages': [b.to_dict() for b in beverages]})


@beverages_bp.route('/events/<int:event_id>/beverages', methods=['POST'])
@require_manager
def create_beverage(event_id):
    """Add one beverage (name, type, category, price, initial_stock, image_url)."""
    beverage = inventory_service.create_beverage(get_session(), event_id, _json_body(), g.manager_id)
    return jsonify({'status': 'success', 'beverage': beverage.to_dict()}), 201


@beverages_bp.route('/events/<int:event_id>/beverages/batch', methods=['POST'])
@require_manager
def create_beverages_batch(event_id):
    """
    Add several beverages in one request.

    Body: {"beverages": [{...}, ...]}. Invalid entries come back under
    ``skipped``; the rest are created.
    """
    entries = _json_body().get('beverages')
    if not isinstance(entries, list) or not entries:
        raise InvalidRecordError('A non-empty "beverages" list is required')

    result = inventory_service.create_beverages_batch(get_session(), event_id, entries, g.manager_id)
    return jsonify({
        'status': 'success',
        'created': [b.to_dict() for b in result['created']],
        'skipped': result['skipped'],
    }), 201


@beverages_bp.route('/beverages/<int:beverage_id>', methods=['GET'])
@require_manager
def get_beverage(beverage_id):
    beverage = inventory_service.get_beverage(get_session(), beverage_id, g.manager_id)
    return jsonify({'beverage': beverage.to_dict()})


@beverages_bp.route('/beverages/<int:beverage_id>/stock', methods=['GET'])
@require_manager
def get_stock(beverage_id):
    snapshot = inventory_service.get_stock(get_session(), beverage_id, g.manager_id)
    return jsonify({
        'beverage_id': snapshot.beverage_id,
        'name': snapshot.name,
        'current_stock': snapshot.current_stock,
        'initial_stock': snapshot.initial_stock,
    })


@beverages_bp.route('/beverages/<int:beverage_id>/restock', methods=['POST'])
@require_manager
def restock(beverage_id):
    """
    Add units to a beverage.

    The caller's role comes from the authentication context, never from the
    body. A capability token may be sent in the body or the
    ``X-Restock-Token`` header.
    """
    form = RestockForm()
    if not form.validate():
        errors = form_errors(form)
        raise InvalidQuantityError(errors.get('quantity', 'Invalid restock request'), {'errors': errors})

    token = form.capability_token.data or request.headers.get('X-Restock-Token')
    beverage = inventory_service.restock(
        get_session(),
        beverage_id,
        form.quantity.data,
        g.manager_id,
        role=g.get('manager_role'),
        capability_token=token,
    )
    return jsonify({'status': 'success', 'beverage': beverage.to_dict()})


@beverages_bp.route('/beverages/<int:beverage_id>', methods=['DELETE'])
@require_manager
def delete_beverage(beverage_id):
    inventory_service.delete_beverage(get_session(), beverage_id, g.manager_id)
    return jsonify({'status': 'success', 'beverage_id': beverage_id})


@beverages_bp.route('/beverages/<int:beverage_id>/audit', methods=['POST'])
@require_manager
def audit_beverage(beverage_id):
    form = AuditForm()
    form.validate()
    beverage = audit_service.record_audit(get_session(), beverage_id, form.counted.data, g.manager_id)
    return jsonify({'status': 'success', 'beverage': beverage.to_dict()})


@beverages_bp.route('/events/<int:event_id>/audit', methods=['POST'])
@require_manager
def audit_event(event_id):
    """Save several counts at once. Body: {"counts": {"<beverage_id>": <count>, ...}}."""
    counts = _json_body().get('counts')
    if not isinstance(counts, dict):
        raise InvalidRecordError('A "counts" object keyed by beverage id is required')

    # Only the event's own beverages are audited here
    own_ids = {str(b.id) for b in inventory_service.list_beverages(get_session(), event_id, g.manager_id)}
    scoped = {k: v for k, v in counts.items() if str(k).strip() in own_ids}
    result = audit_service.record_audits(get_session(), scoped, g.manager_id)
    result['skipped'].extend(
        {'beverage_id': k, 'reason': f'Beverage {k} not found in event {event_id}'}
        for k in counts if str(k).strip() not in own_ids
    )
    return jsonify({'status': 'success', **result})
