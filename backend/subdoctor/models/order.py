from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, func

from subdoctor.core.database import Base


class OrderRelation(str, Enum):
    PARENT = "parent"
    RENEWAL = "renewal"
    RESUBSCRIBE = "resubscribe"
    SWITCH = "switch"


PAID_ORDER_STATUSES = frozenset({"processing", "completed"})


class Order(Base):
    """A commerce order related to a subscription (parent, renewal, ...)."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, nullable=True, index=True)
    relation = Column(String(20), nullable=False, default=OrderRelation.RENEWAL.value)
    status = Column(String(20), nullable=False, default="pending", index=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    payment_method = Column(String(100), nullable=True)
    meta_data = Column(JSON, nullable=False, default=dict)
    date_created = Column(DateTime(timezone=True), server_default=func.now())
    date_modified = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    date_paid = Column(DateTime(timezone=True), nullable=True)
