"""Immutable per-request views of a subscription and of the platform configuration.

A ``SubscriptionSnapshot`` is read once at the start of an analysis and every
analyzer works from it, so no check ever sees data fetched at a different
moment. ``PlatformConfig`` carries the platform-wide settings the analyzers
need, passed explicitly instead of looked up ambiently.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FROZEN = ConfigDict(frozen=True)


class CustomerInfo(BaseModel):
    model_config = FROZEN

    id: int = 0
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class BillingSchedule(BaseModel):
    model_config = FROZEN

    period: str
    interval: int = 1
    start_date: datetime | None = None
    next_payment: datetime | None = None
    end_date: datetime | None = None
    trial_end: datetime | None = None
    last_payment: datetime | None = None


class PaymentMethodInfo(BaseModel):
    model_config = FROZEN

    gateway_id: str | None = None
    title: str | None = None
    token_id: str | None = None
    last_4: str | None = None
    expiry: str | None = None

    @property
    def is_tokenized(self) -> bool:
        return bool(self.token_id)


class NoteSnapshot(BaseModel):
    model_config = FROZEN

    id: int
    content: str
    note_type: str = "internal"
    customer_note: bool = False
    date_created: datetime


class OrderSnapshot(BaseModel):
    model_config = FROZEN

    id: int
    relation: str
    status: str
    total: Decimal = Decimal("0")
    currency: str = "USD"
    payment_method: str | None = None
    date_created: datetime
    date_modified: datetime | None = None
    date_paid: datetime | None = None
    notes: tuple[NoteSnapshot, ...] = ()


class ScheduledJobSnapshot(BaseModel):
    model_config = FROZEN

    id: int
    hook: str
    status: str
    scheduled_date: datetime
    args: str = ""
    group_slug: str | None = None


class ProductSnapshot(BaseModel):
    model_config = FROZEN

    id: int
    name: str
    product_type: str
    price: Decimal = Decimal("0")
    subscription_period: str | None = None
    subscription_interval: int | None = None
    trial_length: int = 0
    trial_period: str | None = None
    sign_up_fee: Decimal = Decimal("0")


class LineItemSnapshot(BaseModel):
    model_config = FROZEN

    id: int
    name: str = ""
    quantity: int = 1
    product: ProductSnapshot | None = None


class SubscriptionSnapshot(BaseModel):
    """Everything known about one subscription at the start of a request."""

    model_config = FROZEN

    id: int
    status: str
    total: Decimal = Decimal("0")
    currency: str = "USD"
    date_created: datetime
    date_modified: datetime | None = None
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    schedule: BillingSchedule
    payment_method: PaymentMethodInfo = Field(default_factory=PaymentMethodInfo)
    parent_order_id: int | None = None
    orders: tuple[OrderSnapshot, ...] = ()
    notes: tuple[NoteSnapshot, ...] = ()
    # Keyed by job status: pending, completed, failed, cancelled
    scheduled_jobs: dict[str, tuple[ScheduledJobSnapshot, ...]] = Field(default_factory=dict)
    items: tuple[LineItemSnapshot, ...] = ()
    meta: dict[str, Any] = Field(default_factory=dict)

    def orders_of(self, relation: str) -> list[OrderSnapshot]:
        return [o for o in self.orders if o.relation == relation]

    def jobs_with_status(self, status: str) -> tuple[ScheduledJobSnapshot, ...]:
        return self.scheduled_jobs.get(status, ())

    def all_jobs(self) -> list[ScheduledJobSnapshot]:
        return [job for jobs in self.scheduled_jobs.values() for job in jobs]


class GatewayConfig(BaseModel):
    model_config = FROZEN

    id: str
    title: str = ""
    description: str | None = None
    enabled: bool = True
    supports: tuple[str, ...] = ()
    webhook_urls: tuple[str, ...] = ()

    def supports_feature(self, feature: str) -> bool:
        return feature in self.supports


class RetryRule(BaseModel):
    model_config = FROZEN

    retry_number: int
    retry_delay: int
    retry_delay_unit: str = "hours"


class EmailSettings(BaseModel):
    model_config = FROZEN

    renewal_reminder_enabled: bool = False
    renewal_reminder_days: int = 7
    payment_failed_enabled: bool = False
    subscription_cancelled_enabled: bool = False


class TroubleshooterSettings(BaseModel):
    model_config = FROZEN

    enable_logging: bool = True
    log_retention_days: int = 30
    auto_scan_enabled: bool = False
    scan_frequency: str = "daily"


class PlatformConfig(BaseModel):
    """Platform-wide state an analysis depends on, read once per request."""

    model_config = FROZEN

    email: EmailSettings = Field(default_factory=EmailSettings)
    retry_enabled: bool = False
    retry_rules: tuple[RetryRule, ...] = ()
    gateways: dict[str, GatewayConfig] = Field(default_factory=dict)
    active_extensions: tuple[str, ...] = ()
    troubleshooter: TroubleshooterSettings = Field(default_factory=TroubleshooterSettings)

    def gateway(self, gateway_id: str | None) -> GatewayConfig | None:
        if not gateway_id:
            return None
        return self.gateways.get(gateway_id)
