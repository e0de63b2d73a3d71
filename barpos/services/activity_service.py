"""
Activity logging service for tracking committed mutations.
"""
from barpos.models.activity_log import ActivityLog, ActivityAction
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    manager_id: str,
    action: ActivityAction,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Add an activity row to the current transaction.

    Args:
        session: Database session
        manager_id: Owning event manager
        action: ActivityAction enum value
        resource_type: Type of resource affected (e.g., 'beverage', 'order')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    if not manager_id:
        logger.warning(f"Cannot log action {action}: missing manager_id")
        return

    details_json = None
    if details:
        try:
            details_json = json.dumps(details, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to serialize activity details: {e}")
            details_json = str(details)

    session.add(ActivityLog(
        manager_id=manager_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details_json,
        created_at=datetime.utcnow()
    ))
    # Note: Caller is responsible for committing the session

    logger.debug(f"Activity log queued: {action.value} by {manager_id} on {resource_type} {resource_id}")


def get_activity(
    session,
    manager_id: str,
    limit: int = 100,
    offset: int = 0,
    action_filter: ActivityAction = None,
    resource_type_filter: str = None
):
    """
    Retrieve activity rows for a manager with optional filters.

    Returns:
        List of ActivityLog objects, newest first
    """
    query = session.query(ActivityLog).filter(
        ActivityLog.manager_id == manager_id
    )

    if action_filter:
        query = query.filter(ActivityLog.action == action_filter)

    if resource_type_filter:
        query = query.filter(ActivityLog.resource_type == resource_type_filter)

    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    return query.limit(limit).offset(offset).all()
