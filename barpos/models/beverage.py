"""Beverage model - a sellable stock item scoped to one event."""
import enum
from sqlalchemy import Column, String, Numeric, DateTime, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from barpos.database import Base, BigIntPK
from barpos.exceptions import InvalidQuantityError, InvalidRecordError
from barpos.models.event import PRICE_LIMIT, to_money

# INTEGER column ceiling
MAX_STOCK = 2 ** 31 - 1


class BeverageType(str, enum.Enum):
    """Beverage type."""
    ALCOHOLIC = 'alcoholic'
    NON_ALCOHOLIC = 'non-alcoholic'


CATEGORIES_BY_TYPE = {
    BeverageType.NON_ALCOHOLIC.value: ('Juice', 'Fizzy', 'Coffee', 'Water', 'Other Non-Alcoholic'),
    BeverageType.ALCOHOLIC.value: ('Red Wine', 'White Wine', 'Beers', 'Ciders', 'Strong Drink', 'Other Alcoholic'),
}


def _to_stock(value, field):
    try:
        qty = int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidQuantityError(f'{field} must be a whole number', {'field': field})
    if qty != value and str(qty) != str(value).strip():
        raise InvalidQuantityError(f'{field} must be a whole number', {'field': field})
    if qty < 0:
        raise InvalidQuantityError(f'{field} cannot be negative', {'field': field})
    if qty > MAX_STOCK:
        raise InvalidQuantityError(f'{field} cannot exceed {MAX_STOCK}', {'field': field})
    return qty


class Beverage(Base):
    """
    Beverage stock record.

    Restock raises ``initial_stock`` and ``current_stock`` together; sales only
    lower ``current_stock``. ``audited_stock`` is a manual post-event count kept
    beside (never instead of) the system stock.
    """

    __tablename__ = 'beverage'
    __table_args__ = (
        CheckConstraint('current_stock >= 0', name='ck_beverage_stock_non_negative'),
        CheckConstraint('initial_stock >= 0', name='ck_beverage_initial_non_negative'),
        CheckConstraint('price > 0', name='ck_beverage_price_positive'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    event_id = Column(BigIntPK, ForeignKey('event.id'), nullable=False, index=True)
    manager_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(50), nullable=False)
    beverage_type = Column('type', String(20), nullable=False)
    image_url = Column(String(512), nullable=True)
    initial_stock = Column(Integer, nullable=False, default=0)
    current_stock = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False)
    audited_stock = Column(Integer, nullable=True)
    last_audited_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    event = relationship('Event', back_populates='beverages')

    __mapper_args__ = {'version_id_col': version_id}

    @validates('name')
    def validate_name(self, key, value):
        if not value or not str(value).strip():
            raise InvalidRecordError('Beverage name is required', {'field': 'name'})
        return str(value).strip()

    @validates('beverage_type')
    def validate_type(self, key, value):
        value = getattr(value, 'value', value)
        if value not in CATEGORIES_BY_TYPE:
            raise InvalidRecordError(f'Unknown beverage type: {value!r}', {'field': 'type'})
        if self.category is not None and self.category not in CATEGORIES_BY_TYPE[value]:
            raise InvalidRecordError(
                f'Category "{self.category}" is not valid for {value} beverages',
                {'field': 'category'}
            )
        return value

    @validates('category')
    def validate_category(self, key, value):
        allowed = CATEGORIES_BY_TYPE.get(self.beverage_type)
        if allowed is None:
            allowed = tuple(c for cats in CATEGORIES_BY_TYPE.values() for c in cats)
        if value not in allowed:
            raise InvalidRecordError(f'Unknown beverage category: {value!r}', {'field': 'category'})
        return value

    @validates('initial_stock', 'current_stock')
    def validate_stock(self, key, value):
        return _to_stock(value, key)

    @validates('price')
    def validate_price(self, key, value):
        price = to_money(value, 'price', PRICE_LIMIT)
        if price <= 0:
            raise InvalidRecordError('Price must be greater than 0', {'field': 'price'})
        return price

    @property
    def sold_quantity(self):
        return (self.initial_stock or 0) - (self.current_stock or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'name': self.name,
            'category': self.category,
            'type': self.beverage_type,
            'image_url': self.image_url,
            'initial_stock': self.initial_stock,
            'current_stock': self.current_stock,
            'price': self.price,
            'audited_stock': self.audited_stock,
            'last_audited_at': self.last_audited_at.isoformat() if self.last_audited_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Beverage(id={self.id}, name='{self.name}', current_stock={self.current_stock})>"
