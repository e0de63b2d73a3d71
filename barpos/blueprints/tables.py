"""Tables blueprint - per-table tabs for an event."""
from flask import Blueprint, g, jsonify, request

from barpos.database import get_session
from barpos.exceptions import InvalidRecordError
from barpos.forms import TableForm, form_errors
from barpos.middleware import require_manager
from barpos.services import tab_service

tables_bp = Blueprint('tables', __name__, url_prefix='/api')


@tables_bp.route('/events/<int:event_id>/tables', methods=['GET'])
@require_manager
def list_tables(event_id):
    open_only = request.args.get('open', '').strip().lower() in ('1', 'true', 'yes')
    tables = tab_service.list_tables(get_session(), event_id, g.manager_id, open_only=open_only)
    return jsonify({'tables': [t.to_dict() for t in tables]})


@tables_bp.route('/events/<int:event_id>/tables', methods=['POST'])
@require_manager
def create_table(event_id):
    form = TableForm()
    if not form.validate():
        raise InvalidRecordError('Invalid table data', {'errors': form_errors(form)})

    table = tab_service.create_table(get_session(), event_id, form.table_number.data, g.manager_id)
    return jsonify({'status': 'success', 'table': table.to_dict()}), 201


@tables_bp.route('/tables/<int:table_id>', methods=['GET'])
@require_manager
def get_table(table_id):
    table = tab_service.get_table(get_session(), table_id, g.manager_id)
    return jsonify({'table': table.to_dict()})


@tables_bp.route('/tables/<int:table_id>/draft', methods=['PUT'])
@require_manager
def save_draft(table_id):
    """Replace the table's draft cart. Body: {"items": [...]}; an empty list clears it."""
    payload = request.get_json(silent=True) or {}
    table = tab_service.save_draft(get_session(), table_id, payload.get('items') or [], g.manager_id)
    return jsonify({'status': 'success', 'table': table.to_dict()})


@tables_bp.route('/tables/<int:table_id>/charge', methods=['POST'])
@require_manager
def charge_table(table_id):
    idempotency_key = (request.headers.get('Idempotency-Key') or '').strip() or None
    result = tab_service.charge_and_close(get_session(), table_id, g.manager_id, idempotency_key=idempotency_key)
    return jsonify({'status': 'success', **result.to_dict()}), 200 if result.replayed else 201


@tables_bp.route('/tables/<int:table_id>', methods=['DELETE'])
@require_manager
def delete_table(table_id):
    tab_service.delete_table(get_session(), table_id, g.manager_id)
    return jsonify({'status': 'success', 'table_id': table_id})
