"""
Tests for the Flask CLI commands.
"""

from decimal import Decimal

from barpos.models import Event


class TestCreateEventCommand:
    """Tests for flask create-event."""

    def test_creates_event(self, app, session, manager_id):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-event', '--manager', manager_id, '--name', 'Jazz Night',
            '--budget', '400', '--date', '2024-09-14'
        ])

        assert result.exit_code == 0, result.output
        assert 'created' in result.output
        event = session.query(Event).filter_by(manager_id=manager_id).one()
        assert event.budget == Decimal('400.00')
        assert event.date.isoformat() == '2024-09-14'

    def test_rejects_bad_budget(self, app, session, manager_id):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['create-event', '--manager', manager_id, '--name', 'X', '--budget', '0'])

        assert result.exit_code != 0
        assert 'Budget must be greater than 0' in result.output
        assert session.query(Event).count() == 0

    def test_rejects_bad_date(self, app, manager_id):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-event', '--manager', manager_id, '--name', 'X', '--budget', '10', '--date', '14/09/2024'
        ])
        assert result.exit_code != 0
