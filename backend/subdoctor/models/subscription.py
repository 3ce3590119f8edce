from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship

from subdoctor.core.database import Base


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING_CANCEL = "pending-cancel"
    SWITCHED = "switched"
    SUSPENDED = "suspended"


class BillingPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Subscription(Base):
    """A recurring-billing agreement owned by the commerce platform."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.PENDING.value, index=True
    )
    customer_id = Column(Integer, nullable=True, index=True)
    billing_email = Column(String(255), nullable=True, index=True)
    billing_first_name = Column(String(255), nullable=True)
    billing_last_name = Column(String(255), nullable=True)
    billing_phone = Column(String(50), nullable=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    billing_period = Column(String(10), nullable=False, default=BillingPeriod.MONTH.value)
    billing_interval = Column(Integer, nullable=False, default=1)
    start_date = Column(DateTime(timezone=True), nullable=True)
    next_payment = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)
    last_payment = Column(DateTime(timezone=True), nullable=True)

    payment_method = Column(String(100), nullable=True)
    payment_method_title = Column(String(255), nullable=True)
    parent_order_id = Column(Integer, nullable=True)

    meta_data = Column(JSON, nullable=False, default=dict)

    date_created = Column(DateTime(timezone=True), server_default=func.now())
    date_modified = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    items = relationship(
        "SubscriptionItem", order_by="SubscriptionItem.id", lazy="selectin"
    )


class SubscriptionItem(Base):
    """A line item on a subscription."""

    __tablename__ = "subscription_items"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(
        Integer,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    name = Column(String(255), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)

    product = relationship("Product", lazy="joined")
