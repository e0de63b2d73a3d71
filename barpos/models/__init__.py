"""Models package - exports all SQLAlchemy models."""
from barpos.models.event import Event
from barpos.models.beverage import Beverage, BeverageType, CATEGORIES_BY_TYPE
from barpos.models.table import BarTable, TabLine
from barpos.models.order import Order, OrderItem, order_total
from barpos.models.activity_log import ActivityLog, ActivityAction

__all__ = [
    'Event',
    'Beverage', 'BeverageType', 'CATEGORIES_BY_TYPE',
    'BarTable', 'TabLine',
    'Order', 'OrderItem', 'order_total',
    'ActivityLog', 'ActivityAction',
]
