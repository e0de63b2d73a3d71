"""Event model - a bar-service engagement with its own budget."""
from decimal import Decimal, InvalidOperation
from sqlalchemy import Column, String, Boolean, Numeric, Date, DateTime, Integer, CheckConstraint
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from barpos.database import Base, BigIntPK
from barpos.exceptions import InvalidBudgetError, InvalidRecordError


# Largest values the Numeric(12, 2) and Numeric(10, 2) columns hold
MONEY_LIMIT = Decimal('9999999999.99')
PRICE_LIMIT = Decimal('99999999.99')


def to_money(value, field='amount', limit=MONEY_LIMIT) -> Decimal:
    """
    Coerce a numeric input to a 2-place Decimal or raise InvalidRecordError.

    NaN, infinities and anything whose magnitude exceeds ``limit`` are
    rejected.
    """
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise InvalidRecordError(f'Invalid {field}: {value!r}', {'field': field})
        amount = amount.quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRecordError(f'Invalid {field}: {value!r}', {'field': field})
    if abs(amount) > limit:
        raise InvalidRecordError(f'{field} cannot exceed {limit}', {'field': field})
    return amount


class Event(Base):
    """
    Event owned by one manager.

    ``current_spend`` only grows through charges; ``budget`` is advisory and
    can be lowered by the manager but never below ``current_spend``.
    """

    __tablename__ = 'event'
    __table_args__ = (
        CheckConstraint('budget > 0', name='ck_event_budget_positive'),
        CheckConstraint('current_spend >= 0', name='ck_event_spend_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    manager_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    date = Column(Date, nullable=True)
    location = Column(String(200), nullable=True)
    budget = Column(Numeric(12, 2), nullable=False)
    current_spend = Column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    is_active = Column(Boolean, nullable=False, default=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    beverages = relationship('Beverage', back_populates='event', order_by='Beverage.name')
    tables = relationship('BarTable', back_populates='event')

    __mapper_args__ = {'version_id_col': version_id}

    @validates('name')
    def validate_name(self, key, value):
        if not value or not str(value).strip():
            raise InvalidRecordError('Event name is required', {'field': 'name'})
        return str(value).strip()

    @validates('manager_id')
    def validate_manager_id(self, key, value):
        if not value:
            raise InvalidRecordError('Event manager is required', {'field': 'manager_id'})
        return str(value)

    @validates('budget')
    def validate_budget(self, key, value):
        budget = to_money(value, 'budget')
        if budget <= 0:
            raise InvalidBudgetError(budget)
        return budget

    @validates('current_spend')
    def validate_current_spend(self, key, value):
        spend = to_money(value, 'current_spend')
        if spend < 0:
            raise InvalidRecordError('Current spend cannot be negative', {'field': 'current_spend'})
        return spend

    @property
    def remaining_budget(self):
        return (self.budget or Decimal('0')) - (self.current_spend or Decimal('0'))

    @property
    def is_over_budget(self):
        return (self.current_spend or Decimal('0')) > (self.budget or Decimal('0'))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'date': self.date.isoformat() if self.date else None,
            'location': self.location,
            'budget': self.budget,
            'current_spend': self.current_spend,
            'remaining_budget': self.remaining_budget,
            'is_over_budget': self.is_over_budget,
            'is_active': self.is_active,
            'manager_id': self.manager_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', active={self.is_active})>"
