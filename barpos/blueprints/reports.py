"""Dashboard, post-event reports and the activity trail."""
from flask import Blueprint, g, jsonify, request

from barpos.database import get_session
from barpos.exceptions import InvalidRecordError
from barpos.middleware import require_manager
from barpos.models import ActivityAction, BeverageType
from barpos.services import dashboard_service, report_service, activity_service

reports_bp = Blueprint('reports', __name__, url_prefix='/api')


@reports_bp.route('/dashboard', methods=['GET'])
@require_manager
def dashboard():
    """Live view of the manager's active events."""
    return jsonify({'events': dashboard_service.get_dashboard(get_session(), g.manager_id)})


@reports_bp.route('/events/<int:event_id>/report', methods=['GET'])
@require_manager
def event_report(event_id):
    return jsonify(report_service.build_event_report(get_session(), event_id, g.manager_id))


@reports_bp.route('/reports/sales-by-category', methods=['GET'])
@require_manager
def sales_by_category():
    beverage_type = request.args.get('type') or None
    if beverage_type and beverage_type not in {t.value for t in BeverageType}:
        raise InvalidRecordError(f'Unknown beverage type {beverage_type}')

    rows = report_service.sales_by_category(
        get_session(),
        g.manager_id,
        beverage_type=beverage_type,
        name_filter=request.args.get('q') or None,
    )
    return jsonify({'categories': rows})


@reports_bp.route('/activity', methods=['GET'])
@require_manager
def activity():
    limit = request.args.get('limit', 100, type=int)
    offset = request.args.get('offset', 0, type=int)
    action = request.args.get('action')
    try:
        action_filter = ActivityAction(action) if action else None
    except ValueError:
        raise InvalidRecordError(f'Unknown activity action {action}')

    rows = activity_service.get_activity(
        get_session(),
        g.manager_id,
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
        action_filter=action_filter,
        resource_type_filter=request.args.get('resource_type') or None,
    )
    return jsonify({'activity': [r.to_dict() for r in rows]})
