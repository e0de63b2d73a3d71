"""
Transaction helpers shared by the write services.

Every mutating operation runs inside ``atomic()``: the session is committed
once at the end, rolled back on any failure, and only after a successful
commit are the manager's cached read models invalidated and the change
published to live-feed subscribers.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from barpos.exceptions import BarPosError, ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# PostgreSQL: serialization_failure, deadlock_detected, lock_not_available
CONTENTION_SQLSTATES = {'40001', '40P01', '55P03'}


def _is_contention(error: DBAPIError) -> bool:
    code = getattr(error.orig, 'pgcode', None) or getattr(error.orig, 'sqlstate', None)
    return code in CONTENTION_SQLSTATES


@contextmanager
def atomic(session, operation: str, manager_id: str = None, changed: Iterable[str] = ()):
    """Run a block as one all-or-nothing unit of work."""
    try:
        yield
        session.commit()
    except BarPosError as e:
        session.rollback()
        logger.info(f"[{operation.upper()}] rejected: {e.kind}: {e.message}")
        raise
    except StaleDataError as e:
        session.rollback()
        logger.info(f"[{operation.upper()}] stale read detected: {e}")
        raise ConcurrencyConflictError() from e
    except DBAPIError as e:
        session.rollback()
        if _is_contention(e):
            logger.info(f"[{operation.upper()}] contention: {e.orig}")
            raise ConcurrencyConflictError() from e
        logger.error(f"[{operation.upper()}] database error: {e}", exc_info=True)
        raise
    except Exception:
        session.rollback()
        logger.error(f"[{operation.upper()}] unexpected error", exc_info=True)
        raise

    if manager_id:
        _after_commit(manager_id, changed)


def _after_commit(manager_id: str, changed: Iterable[str]) -> None:
    """Invalidate the manager's read models and notify subscribers."""
    from barpos.services.cache_service import get_cache
    try:
        cache = get_cache()
    except RuntimeError:
        logger.debug("[CACHE] not initialized, skipping post-commit notifications")
        return
    cache.invalidate_module(manager_id, 'dashboard')
    cache.publish_change(manager_id, changed)


def with_retry(fn: Callable[[], T], attempts: int = 3) -> T:
    """
    Call ``fn`` again when it fails with a contention signal.

    The services never retry on their own; this is a caller policy.
    ``fn`` must re-read everything it validates.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except ConcurrencyConflictError:
            if attempt == attempts:
                raise
            logger.info(f"[RETRY] contention, attempt {attempt}/{attempts} failed; retrying")
