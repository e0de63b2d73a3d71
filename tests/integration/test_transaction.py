"""
Integration tests for the unit-of-work helpers and contention handling.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from barpos.exceptions import ConcurrencyConflictError, InvalidQuantityError
from barpos.models import Beverage, Event
from barpos.services.transaction import atomic, with_retry


class TestAtomic:
    """Tests for atomic()."""

    def test_commits_on_success(self, session, event):
        with atomic(session, 'test'):
            event.name = 'Renamed'
        session.expire_all()
        assert session.get(Event, event.id).name == 'Renamed'

    def test_rolls_back_on_domain_error(self, session, event, beer):
        beer_id = beer.id
        with pytest.raises(InvalidQuantityError):
            with atomic(session, 'test'):
                beer.current_stock = 1
                session.flush()
                raise InvalidQuantityError()
        assert session.get(Beverage, beer_id).current_stock == 10

    def test_stale_data_becomes_conflict(self, session, event):
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            with atomic(session, 'test'):
                raise StaleDataError('row changed')
        assert exc_info.value.payload == {'retryable': True}
        assert exc_info.value.status_code == 409

    def test_concurrent_version_bump_is_detected(self, session, event, beer):
        """A write based on a stale read loses against a committed concurrent write."""
        beer_id = beer.id
        assert beer.current_stock == 10

        # Another writer changes the row behind the ORM's back
        session.execute(
            text('UPDATE beverage SET current_stock = 4, version_id = version_id + 1 WHERE id = :id'),
            {'id': beer_id}
        )

        with pytest.raises(ConcurrencyConflictError):
            with atomic(session, 'test'):
                beer.current_stock = 9

        assert session.get(Beverage, beer_id).current_stock == 10

    def test_unexpected_errors_propagate(self, session):
        with pytest.raises(RuntimeError):
            with atomic(session, 'test'):
                raise RuntimeError('boom')


class TestWithRetry:
    """Tests for with_retry()."""

    def test_retries_contention_then_succeeds(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConcurrencyConflictError()
            return 'done'

        assert with_retry(flaky, attempts=3) == 'done'
        assert len(calls) == 3

    def test_gives_up_after_attempts(self):
        def always_conflicts():
            raise ConcurrencyConflictError()

        with pytest.raises(ConcurrencyConflictError):
            with_retry(always_conflicts, attempts=2)

    def test_business_errors_are_not_retried(self):
        calls = []

        def invalid():
            calls.append(1)
            raise InvalidQuantityError()

        with pytest.raises(InvalidQuantityError):
            with_retry(invalid)
        assert len(calls) == 1
