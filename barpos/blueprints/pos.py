"""POS blueprint - charge a cart against an event."""
from flask import Blueprint, g, jsonify, request

from barpos.database import get_session
from barpos.middleware import require_manager
from barpos.services import order_service

pos_bp = Blueprint('pos', __name__, url_prefix='/api/events')


@pos_bp.route('/<int:event_id>/orders', methods=['POST'])
@require_manager
def charge(event_id):
    """
    Charge a cart in one atomic step.

    Body: {"items": [{"beverage_id": 1, "quantity": 2, "price_per_unit": "5.00"}]}.
    An ``Idempotency-Key`` header makes the request safe to resend; a replay
    answers 200 with the original order.
    """
    payload = request.get_json(silent=True) or {}
    idempotency_key = (request.headers.get('Idempotency-Key') or payload.get('idempotency_key') or '').strip() or None

    result = order_service.charge_order(
        get_session(),
        event_id,
        payload.get('items'),
        g.manager_id,
        idempotency_key=idempotency_key,
    )
    return jsonify({'status': 'success', **result.to_dict()}), 200 if result.replayed else 201


@pos_bp.route('/<int:event_id>/orders', methods=['GET'])
@require_manager
def list_orders(event_id):
    orders = order_service.list_orders(get_session(), event_id, g.manager_id)
    return jsonify({'orders': [o.to_dict() for o in orders]})
