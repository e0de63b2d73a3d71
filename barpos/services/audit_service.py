"""
Stock audit reconciliation.

Records a manually counted stock figure beside the system stock. Never
touches ``current_stock``.
"""
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from barpos.database import MAX_ID
from barpos.models import Beverage, ActivityAction
from barpos.models.beverage import MAX_STOCK
from barpos.exceptions import BeverageNotFoundError
from barpos.services.activity_service import log_action
from barpos.services.inventory_service import get_beverage
from barpos.services.transaction import atomic

logger = logging.getLogger(__name__)


# Optional sign and digits at the start of a string
_LEADING_INT = re.compile(r'\s*([+-]?\d+)')


def coerce_count(value) -> int:
    """
    Counted quantity as a non-negative integer; anything invalid counts as 0.

    Strings keep their leading digits ("12abc" counts 12, "3.9" counts 3).
    Non-finite numbers and counts beyond the stock column range count as 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        if isinstance(value, (int, float, Decimal)):
            count = int(value)
        else:
            match = _LEADING_INT.match(str(value))
            if not match:
                return 0
            count = int(match.group(1))
    except (ValueError, OverflowError, InvalidOperation):
        return 0
    if count < 0 or count > MAX_STOCK:
        return 0
    return count


def _apply_count(session, beverage: Beverage, counted, manager_id: str, audited_at: datetime) -> int:
    count = coerce_count(counted)
    beverage.audited_stock = count
    beverage.last_audited_at = audited_at
    log_action(session, manager_id, ActivityAction.STOCK_AUDITED, 'beverage', beverage.id, {
        'audited_stock': count,
        'current_stock': beverage.current_stock,
    })
    return count


def record_audit(session, beverage_id: int, counted, manager_id: str) -> Beverage:
    """Store the counted stock and audit time for one beverage."""
    with atomic(session, 'audit', manager_id, changed=('beverages',)):
        beverage = get_beverage(session, beverage_id, manager_id, lock=True)
        _apply_count(session, beverage, counted, manager_id, datetime.now(timezone.utc))
    return beverage


def record_audits(session, counts: Dict[Any, Any], manager_id: str) -> Dict[str, list]:
    """
    Store several counts at once, keyed by beverage id.

    Malformed or unknown ids are skipped and reported; they do not stop the
    rest of the batch.
    """
    updated = []
    skipped = []
    audited_at = datetime.now(timezone.utc)

    with atomic(session, 'audit', manager_id, changed=('beverages',)):
        for raw_id, counted in (counts or {}).items():
            try:
                beverage_id = int(str(raw_id).strip())
            except (TypeError, ValueError):
                beverage_id = None
            if beverage_id is None or not 0 < beverage_id <= MAX_ID:
                logger.warning(f"[AUDIT] skipping invalid beverage id {raw_id!r}")
                skipped.append({'beverage_id': raw_id, 'reason': 'invalid beverage id'})
                continue
            try:
                beverage = get_beverage(session, beverage_id, manager_id, lock=True)
            except BeverageNotFoundError as e:
                logger.warning(f"[AUDIT] skipping beverage {beverage_id}: not found")
                skipped.append({'beverage_id': raw_id, 'reason': e.message})
                continue
            count = _apply_count(session, beverage, counted, manager_id, audited_at)
            updated.append({'beverage_id': beverage.id, 'audited_stock': count})

    logger.info(f"[AUDIT] {len(updated)} counts saved, {len(skipped)} skipped for {manager_id}")
    return {'updated': updated, 'skipped': skipped}
