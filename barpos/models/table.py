"""Bar table (tab) models - a deferred, editable draft cart."""
from decimal import Decimal
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from barpos.database import Base, BigIntPK
from barpos.exceptions import InvalidRecordError


class BarTable(Base):
    """
    Tab for a physical table.

    Open tabs hold a draft cart that can be saved any number of times with no
    stock or spend effect. Charging closes the tab for good.
    """

    __tablename__ = 'bar_table'
    __table_args__ = (
        UniqueConstraint('event_id', 'table_number', name='uq_bar_table_event_number'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    event_id = Column(BigIntPK, ForeignKey('event.id'), nullable=False, index=True)
    manager_id = Column(String(128), nullable=False, index=True)
    table_number = Column(String(50), nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    event = relationship('Event', back_populates='tables')
    lines = relationship('TabLine', back_populates='table', cascade='all, delete-orphan', order_by='TabLine.id')

    @validates('table_number')
    def validate_table_number(self, key, value):
        if value is None or not str(value).strip():
            raise InvalidRecordError('Table number is required', {'field': 'table_number'})
        return str(value).strip()

    @property
    def has_history(self):
        return bool(self.lines) or (self.total_amount or Decimal('0')) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'table_number': self.table_number,
            'is_open': self.is_open,
            'total_amount': self.total_amount,
            'order_items': [line.to_dict() for line in self.lines],
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<BarTable(id={self.id}, table_number='{self.table_number}', is_open={self.is_open})>"


class TabLine(Base):
    """Tab Line - one beverage in a table's draft cart."""

    __tablename__ = 'tab_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    table_id = Column(BigIntPK, ForeignKey('bar_table.id', ondelete='CASCADE'), nullable=False, index=True)
    # Joined by id only: the draft keeps its snapshot if the beverage goes away
    beverage_id = Column(BigIntPK, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_unit = Column(Numeric(10, 2), nullable=False)

    table = relationship('BarTable', back_populates='lines')

    @property
    def line_total(self):
        return (Decimal(self.quantity) * self.price_per_unit).quantize(Decimal('0.01'))

    def to_dict(self):
        return {
            'beverage_id': self.beverage_id,
            'name': self.name,
            'quantity': self.quantity,
            'price_per_unit': self.price_per_unit,
        }

    def __repr__(self):
        return f"<TabLine(id={self.id}, beverage_id={self.beverage_id}, quantity={self.quantity})>"
