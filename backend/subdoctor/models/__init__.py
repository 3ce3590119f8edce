from subdoctor.models.api_key import ApiKey
from subdoctor.models.extension import Extension
from subdoctor.models.issue import Issue
from subdoctor.models.note import Note
from subdoctor.models.order import Order, OrderRelation
from subdoctor.models.payment_gateway import PaymentGateway
from subdoctor.models.platform_option import PlatformOption
from subdoctor.models.product import Product
from subdoctor.models.scheduled_job import JobStatus, ScheduledJob
from subdoctor.models.subscription import (
    BillingPeriod,
    Subscription,
    SubscriptionItem,
    SubscriptionStatus,
)

__all__ = [
    "ApiKey",
    "BillingPeriod",
    "Extension",
    "Issue",
    "JobStatus",
    "Note",
    "Order",
    "OrderRelation",
    "PaymentGateway",
    "PlatformOption",
    "Product",
    "ScheduledJob",
    "Subscription",
    "SubscriptionItem",
    "SubscriptionStatus",
]
