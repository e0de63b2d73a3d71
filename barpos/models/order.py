"""Order model - immutable receipt of one charge."""
from decimal import Decimal
from sqlalchemy import Column, String, Numeric, DateTime, Integer, ForeignKey, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from barpos.database import Base, BigIntPK
from barpos.exceptions import InvalidRecordError


class Order(Base):
    """
    Order (charged cart).

    Lines snapshot beverage name and unit price at charge time so historical
    reports stay stable when a beverage is later renamed or repriced.
    """

    __tablename__ = 'bar_order'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    event_id = Column(BigIntPK, ForeignKey('event.id'), nullable=False, index=True)
    table_id = Column(BigIntPK, ForeignKey('bar_table.id'), nullable=True, index=True)
    manager_id = Column(String(128), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    total_amount = Column(Numeric(12, 2), nullable=False)

    # Client-generated request id; a retried charge with the same key is replayed, not re-applied
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan', order_by='OrderItem.id')
    table = relationship('BarTable')

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'table_id': self.table_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'total_amount': self.total_amount,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<Order(id={self.id}, event_id={self.event_id}, total_amount={self.total_amount})>"


class OrderItem(Base):
    """Order Item (line snapshot)."""

    __tablename__ = 'order_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigIntPK, ForeignKey('bar_order.id'), nullable=False, index=True)
    beverage_id = Column(BigIntPK, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_unit = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship('Order', back_populates='items')

    def to_dict(self):
        return {
            'beverage_id': self.beverage_id,
            'name': self.name,
            'quantity': self.quantity,
            'price_per_unit': self.price_per_unit,
            'line_total': self.line_total,
        }

    def __repr__(self):
        return f"<OrderItem(id={self.id}, beverage_id={self.beverage_id}, quantity={self.quantity})>"


@event.listens_for(Order, 'before_update')
@event.listens_for(OrderItem, 'before_update')
def _reject_receipt_update(mapper, connection, target):
    raise InvalidRecordError(f'{type(target).__name__} records are immutable')


@event.listens_for(Order, 'before_delete')
@event.listens_for(OrderItem, 'before_delete')
def _reject_receipt_delete(mapper, connection, target):
    raise InvalidRecordError(f'{type(target).__name__} records cannot be deleted')


def order_total(lines) -> Decimal:
    """Sum of quantity * price_per_unit over (quantity, price) pairs."""
    total = Decimal('0.00')
    for quantity, price in lines:
        total += (Decimal(quantity) * Decimal(str(price))).quantize(Decimal('0.01'))
    return total.quantize(Decimal('0.01'))
