"""
Activity Log model for tracking committed mutations.
Scoped by manager_id.
"""
from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum
from datetime import datetime
import enum
import json

from barpos.database import Base, BigIntPK


class ActivityAction(enum.Enum):
    """Enumeration of logged actions."""
    # Events
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_ACTIVATED = "EVENT_ACTIVATED"
    EVENT_DEACTIVATED = "EVENT_DEACTIVATED"
    BUDGET_CHANGED = "BUDGET_CHANGED"

    # Inventory
    BEVERAGE_CREATED = "BEVERAGE_CREATED"
    BEVERAGE_DELETED = "BEVERAGE_DELETED"
    BEVERAGE_RESTOCKED = "BEVERAGE_RESTOCKED"
    STOCK_AUDITED = "STOCK_AUDITED"

    # Sales
    ORDER_CHARGED = "ORDER_CHARGED"

    # Tables
    TABLE_CREATED = "TABLE_CREATED"
    TABLE_CLOSED = "TABLE_CLOSED"
    TABLE_DELETED = "TABLE_DELETED"


class ActivityLog(Base):
    """Activity log row, written in the same transaction as the change it describes."""
    __tablename__ = 'activity_log'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    manager_id = Column(String(128), nullable=False, index=True)
    action = Column(SQLEnum(ActivityAction, name='activity_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'event', 'beverage', 'order'
    resource_id = Column(BigIntPK)
    details = Column(Text)  # JSON with additional details
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        details = None
        if self.details:
            try:
                details = json.loads(self.details)
            except ValueError:
                details = self.details
        return {
            'id': self.id,
            'action': self.action.value,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'details': details,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.action.value} by {self.manager_id} at {self.created_at}>"
