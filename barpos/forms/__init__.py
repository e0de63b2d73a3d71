"""
Input forms for the JSON API.

Flask-WTF reads JSON request bodies into form data, so the same field
validation applies to API payloads. Domain rules (budget > 0, budget not
below spend, quantity > 0) stay in the services.
"""
from flask_wtf import FlaskForm
from wtforms import DateField, DecimalField, IntegerField, StringField
from wtforms.validators import InputRequired, Length, Optional


class ApiForm(FlaskForm):
    """Base form for token/header-authenticated API calls (no CSRF token)."""

    class Meta:
        csrf = False


class EventForm(ApiForm):
    """Form for creating an event."""

    name = StringField('Name', validators=[InputRequired(message='Event name is required'), Length(max=200)])
    date = DateField('Date', validators=[Optional()], format='%Y-%m-%d')
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    budget = DecimalField('Budget', validators=[InputRequired(message='Budget is required')], places=2)


class BudgetForm(ApiForm):
    budget = DecimalField('Budget', validators=[InputRequired(message='Budget is required')], places=2)


class RestockForm(ApiForm):
    """Form for restocking a beverage."""

    quantity = IntegerField('Quantity', validators=[InputRequired(message='Quantity is required')])
    capability_token = StringField('Capability token', validators=[Optional(), Length(max=255)])


class TableForm(ApiForm):
    table_number = StringField('Table number', validators=[InputRequired(message='Table number is required'),
                                                           Length(max=50)])


class AuditForm(ApiForm):
    # Any value is accepted; invalid counts are coerced to 0 by the service
    counted = StringField('Counted quantity', validators=[Optional()])


def form_errors(form) -> dict:
    """Flatten WTForms errors into {'field': 'first message'}."""
    return {field: messages[0] for field, messages in form.errors.items() if messages}
