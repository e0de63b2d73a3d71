"""
Flask CLI commands.

Commands:
- flask init-db: Create the database schema
- flask create-event: Create an event for a manager
"""

import click
from datetime import datetime

from barpos.database import create_schema, get_session
from barpos.exceptions import BarPosError
from barpos.services.event_service import create_event


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_schema()
        click.echo(click.style('Database schema created.', fg='green'))

    @app.cli.command('create-event')
    @click.option('--manager', 'manager_id', required=True, help='Owning manager id')
    @click.option('--name', required=True, help='Event name')
    @click.option('--budget', required=True, help='Budget, greater than 0')
    @click.option('--date', 'event_date', default=None, help='Event date (YYYY-MM-DD)')
    @click.option('--location', default=None, help='Venue')
    def create_event_command(manager_id, name, budget, event_date, location):
        """Create a new active event."""
        parsed_date = None
        if event_date:
            try:
                parsed_date = datetime.strptime(event_date, '%Y-%m-%d').date()
            except ValueError:
                raise click.BadParameter('Use the YYYY-MM-DD format', param_hint='--date')

        try:
            event = create_event(get_session(), manager_id, name, budget, date=parsed_date, location=location)
        except BarPosError as e:
            raise click.ClickException(e.message)

        click.echo(click.style(f'Event #{event.id} created', fg='green', bold=True))
        click.echo(f'   Name: {event.name}')
        click.echo(f'   Budget: {event.budget}')
