"""Reads one subscription and the platform configuration into immutable snapshots."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from subdoctor.core.config import settings
from subdoctor.core.errors import NotFoundError
from subdoctor.core.security import parse_numeric_id
from subdoctor.models.order import Order
from subdoctor.models.platform_option import (
    EMAIL_SETTINGS_OPTION,
    RETRY_SETTINGS_OPTION,
    TROUBLESHOOTER_SETTINGS_OPTION,
)
from subdoctor.models.shared import ensure_utc
from subdoctor.models.subscription import Subscription
from subdoctor.repositories.extension_repository import ExtensionRepository
from subdoctor.repositories.note_repository import NoteRepository
from subdoctor.repositories.order_repository import OrderRepository
from subdoctor.repositories.payment_gateway_repository import PaymentGatewayRepository
from subdoctor.repositories.platform_option_repository import PlatformOptionRepository
from subdoctor.repositories.scheduled_job_repository import ScheduledJobRepository
from subdoctor.repositories.subscription_repository import SubscriptionRepository
from subdoctor.schemas.analysis import SearchMatch
from subdoctor.schemas.snapshot import (
    BillingSchedule,
    CustomerInfo,
    EmailSettings,
    GatewayConfig,
    LineItemSnapshot,
    NoteSnapshot,
    OrderSnapshot,
    PaymentMethodInfo,
    PlatformConfig,
    ProductSnapshot,
    RetryRule,
    ScheduledJobSnapshot,
    SubscriptionSnapshot,
    TroubleshooterSettings,
)
from subdoctor.services.subscription_dates import KNOWN_PERIODS

logger = logging.getLogger(__name__)

JOB_STATUSES = ("pending", "completed", "failed", "cancelled")


def _note_snapshot(note: Any) -> NoteSnapshot:
    return NoteSnapshot(
        id=note.id,
        content=note.content or "",
        note_type=note.note_type or "internal",
        customer_note=bool(note.customer_note),
        date_created=ensure_utc(note.date_created),
    )


def _meta_value(meta: dict[str, Any], key: str) -> str | None:
    value = meta.get(key)
    return str(value) if value not in (None, "") else None


class SubscriptionDataCollector:
    """Single read path from the platform store into snapshot objects."""

    def __init__(self, db: Session):
        self.db = db
        self.subscriptions = SubscriptionRepository(db)
        self.orders = OrderRepository(db)
        self.notes = NoteRepository(db)
        self.jobs = ScheduledJobRepository(db)
        self.gateways = PaymentGatewayRepository(db)
        self.options = PlatformOptionRepository(db)
        self.extensions = ExtensionRepository(db)

    def collect(self, subscription_id: int) -> SubscriptionSnapshot:
        """Read everything known about one subscription.

        Raises:
            NotFoundError: if the id does not resolve to a subscription.
        """
        subscription = self.subscriptions.get_by_id(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found.")

        orders = self.orders.list_for_subscription(subscription_id)
        order_notes: dict[int, list[NoteSnapshot]] = {}
        for note in self.notes.list_for_orders([int(o.id) for o in orders]):
            order_notes.setdefault(int(note.order_id), []).append(_note_snapshot(note))

        parent = next((o for o in orders if o.id == subscription.parent_order_id), None)
        if parent is None and subscription.parent_order_id:
            parent = self.orders.get_by_id(int(subscription.parent_order_id))

        jobs: dict[str, list[ScheduledJobSnapshot]] = {status: [] for status in JOB_STATUSES}
        for job in self.jobs.list_referencing(subscription_id):
            jobs.setdefault(str(job.status), []).append(
                ScheduledJobSnapshot(
                    id=job.id,
                    hook=job.hook,
                    status=job.status,
                    scheduled_date=ensure_utc(job.scheduled_date),
                    args=job.args or "",
                    group_slug=job.group_slug,
                )
            )

        if subscription.billing_period not in KNOWN_PERIODS:
            logger.warning(
                "Subscription %s has unknown billing period %r; renewal projection skipped",
                subscription_id,
                subscription.billing_period,
            )

        snapshot = SubscriptionSnapshot(
            id=subscription.id,
            status=subscription.status,
            total=subscription.total or 0,
            currency=subscription.currency or "USD",
            date_created=ensure_utc(subscription.date_created),
            date_modified=ensure_utc(subscription.date_modified),
            customer=CustomerInfo(
                id=subscription.customer_id or 0,
                email=subscription.billing_email,
                first_name=subscription.billing_first_name,
                last_name=subscription.billing_last_name,
                phone=subscription.billing_phone,
            ),
            schedule=BillingSchedule(
                period=subscription.billing_period,
                interval=subscription.billing_interval or 1,
                start_date=ensure_utc(subscription.start_date),
                next_payment=ensure_utc(subscription.next_payment),
                end_date=ensure_utc(subscription.end_date),
                trial_end=ensure_utc(subscription.trial_end),
                last_payment=ensure_utc(subscription.last_payment),
            ),
            payment_method=self._payment_method(subscription, parent),
            parent_order_id=subscription.parent_order_id,
            orders=tuple(
                self._order_snapshot(o, subscription, order_notes.get(int(o.id), []))
                for o in orders
            ),
            notes=tuple(
                _note_snapshot(n) for n in self.notes.list_for_subscription(subscription_id)
            ),
            scheduled_jobs={status: tuple(items) for status, items in jobs.items()},
            items=tuple(self._line_item(item) for item in subscription.items),
            meta=dict(subscription.meta_data or {}),
        )
        logger.debug(
            "Collected subscription %s: %d orders, %d jobs",
            subscription_id,
            len(snapshot.orders),
            len(snapshot.all_jobs()),
        )
        return snapshot

    def _payment_method(
        self, subscription: Subscription, parent: Order | None
    ) -> PaymentMethodInfo:
        meta = dict(subscription.meta_data or {})
        parent_meta = dict(parent.meta_data or {}) if parent is not None else {}
        return PaymentMethodInfo(
            gateway_id=subscription.payment_method,
            title=subscription.payment_method_title,
            token_id=_meta_value(meta, "_payment_token_id"),
            last_4=_meta_value(meta, "_payment_token_last4")
            or _meta_value(parent_meta, "_payment_token_last4"),
            expiry=_meta_value(meta, "_payment_token_expiry")
            or _meta_value(parent_meta, "_payment_token_expiry"),
        )

    @staticmethod
    def _order_snapshot(
        order: Order, subscription: Subscription, notes: list[NoteSnapshot]
    ) -> OrderSnapshot:
        relation = "parent" if order.id == subscription.parent_order_id else order.relation
        return OrderSnapshot(
            id=order.id,
            relation=relation,
            status=order.status,
            total=order.total or 0,
            currency=order.currency or "USD",
            payment_method=order.payment_method,
            date_created=ensure_utc(order.date_created),
            date_modified=ensure_utc(order.date_modified),
            date_paid=ensure_utc(order.date_paid),
            notes=tuple(notes),
        )

    @staticmethod
    def _line_item(item: Any) -> LineItemSnapshot:
        product = item.product
        return LineItemSnapshot(
            id=item.id,
            name=item.name or "",
            quantity=item.quantity or 1,
            product=(
                ProductSnapshot(
                    id=product.id,
                    name=product.name,
                    product_type=product.product_type,
                    price=product.price or 0,
                    subscription_period=product.subscription_period,
                    subscription_interval=product.subscription_interval,
                    trial_length=product.trial_length or 0,
                    trial_period=product.trial_period,
                    sign_up_fee=product.sign_up_fee or 0,
                )
                if product is not None
                else None
            ),
        )

    def collect_platform_config(self) -> PlatformConfig:
        """Read the platform-wide settings every analyzer depends on."""
        email = self.options.get(EMAIL_SETTINGS_OPTION, {}) or {}
        retry = self.options.get(RETRY_SETTINGS_OPTION, {}) or {}
        troubleshooter = self.options.get(TROUBLESHOOTER_SETTINGS_OPTION, {}) or {}

        gateways = {
            str(g.id): GatewayConfig(
                id=g.id,
                title=g.title or "",
                description=g.description,
                enabled=bool(g.enabled),
                supports=tuple(g.supports or ()),
                webhook_urls=tuple(g.webhook_urls or ()),
            )
            for g in self.gateways.get_all()
        }

        return PlatformConfig(
            email=EmailSettings(**email),
            retry_enabled=bool(retry.get("enabled", False)),
            retry_rules=tuple(RetryRule(**rule) for rule in retry.get("rules", [])),
            gateways=gateways,
            active_extensions=tuple(self.extensions.list_active_slugs()),
            troubleshooter=TroubleshooterSettings(**troubleshooter),
        )

    def search(self, term: str, limit: int | None = None) -> list[SearchMatch]:
        """Find subscriptions by id (numeric term) or billing email substring."""
        limit = limit or settings.SEARCH_RESULT_LIMIT
        found: dict[int, Subscription] = {}

        subscription_id = parse_numeric_id(term)
        if subscription_id is not None:
            subscription = self.subscriptions.get_by_id(subscription_id)
            if subscription is not None:
                found[int(subscription.id)] = subscription

        for subscription in self.subscriptions.search_by_email(term, limit=limit):
            found.setdefault(int(subscription.id), subscription)

        return [
            SearchMatch(
                id=subscription.id,
                title=f"Subscription #{subscription.id}",
                status=subscription.status,
                customer=" ".join(
                    p
                    for p in (subscription.billing_first_name, subscription.billing_last_name)
                    if p
                ),
                email=subscription.billing_email,
            )
            for subscription in list(found.values())[:limit]
        ]
