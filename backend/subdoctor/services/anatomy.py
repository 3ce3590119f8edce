"""Human-readable projection of a subscription snapshot."""

import calendar
from collections import Counter
from datetime import datetime
from typing import Any

from subdoctor.models.order import OrderRelation
from subdoctor.models.shared import ensure_utc
from subdoctor.schemas.snapshot import PlatformConfig, SubscriptionSnapshot
from subdoctor.services.subscription_dates import days_until

STATUS_LABELS = {
    "active": "Active",
    "pending": "Pending",
    "on-hold": "On Hold",
    "cancelled": "Cancelled",
    "expired": "Expired",
    "pending-cancel": "Pending Cancel",
}
STATUS_CLASSES = {
    "active": "success",
    "pending": "warning",
    "on-hold": "warning",
    "cancelled": "error",
    "expired": "error",
    "pending-cancel": "warning",
}

DUE_SOON_DAYS = 7
EXPIRING_SOON_DAYS = 30
MONTH_EXPIRY_FORMATS = ("%Y-%m", "%m/%y", "%m/%Y")
HIGH_RETRY_COUNT = 3

IMPORTANT_META_KEYS = (
    "_schedule_start",
    "_schedule_next_payment",
    "_requires_manual_renewal",
    "_payment_retry_count",
    "_stripe_customer_id",
    "_paypal_subscription_id",
)


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status.capitalize())


def status_class(status: str) -> str:
    return STATUS_CLASSES.get(status, "default")


def parse_expiry(value: str | None) -> datetime | None:
    """Parse a stored card expiry: ISO date, ``YYYY-MM``, ``MM/YY`` or ``MM/YYYY``.

    Month-only expiries are valid through the last second of that month.
    """
    if not value:
        return None
    text = value.strip()
    for fmt in MONTH_EXPIRY_FORMATS:
        try:
            month = datetime.strptime(text, fmt)
        except ValueError:
            continue
        last_day = calendar.monthrange(month.year, month.month)[1]
        return ensure_utc(month.replace(day=last_day, hour=23, minute=59, second=59))
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def retry_count(meta: dict[str, Any]) -> int:
    try:
        return int(meta.get("_payment_retry_count") or 0)
    except (TypeError, ValueError):
        return 0


def _truthy_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class SubscriptionAnatomyAnalyzer:
    """Summaries of status, billing, payment method, orders, jobs, notes and metadata."""

    def analyze(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
    ) -> dict[str, Any]:
        return {
            "summary": self.summary(snapshot),
            "billing_info": self.billing_info(snapshot, now),
            "payment_method": self.payment_method(snapshot, config, now),
            "related_orders": self.related_orders(snapshot),
            "scheduled_jobs": self.scheduled_jobs(snapshot),
            "notes": self.notes(snapshot),
            "meta_analysis": self.meta_analysis(snapshot),
        }

    def summary(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        return {
            "subscription_id": snapshot.id,
            "status": {
                "value": snapshot.status,
                "label": status_label(snapshot.status),
                "class": status_class(snapshot.status),
            },
            "customer": {
                "id": snapshot.customer.id,
                "name": snapshot.customer.full_name,
                "email": snapshot.customer.email,
            },
            "billing_schedule": {
                "period": snapshot.schedule.period,
                "interval": snapshot.schedule.interval,
                "next_payment": snapshot.schedule.next_payment,
                "total": snapshot.total,
                "currency": snapshot.currency,
            },
            "created_date": snapshot.date_created,
            "last_modified": snapshot.date_modified,
        }

    def billing_info(self, snapshot: SubscriptionSnapshot, now: datetime) -> dict[str, Any]:
        schedule = snapshot.schedule
        days_to_next = days_until(schedule.next_payment, now) if schedule.next_payment else None
        return {
            "schedule": {
                "period": schedule.period,
                "interval": schedule.interval,
                "start_date": schedule.start_date,
                "next_payment": schedule.next_payment,
                "end_date": schedule.end_date,
                "trial_end": schedule.trial_end,
            },
            "timing": {
                "days_until_next_payment": days_to_next,
                "is_overdue": schedule.next_payment is not None and schedule.next_payment < now,
                "is_due_soon": days_to_next is not None and 0 <= days_to_next <= DUE_SOON_DAYS,
                "last_payment": schedule.last_payment,
            },
            "trial_info": {
                "has_trial": schedule.trial_end is not None,
                "trial_end": schedule.trial_end,
                "is_in_trial": schedule.trial_end is not None and now < schedule.trial_end,
            },
        }

    def payment_method(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
    ) -> dict[str, Any]:
        method = snapshot.payment_method
        gateway = config.gateway(method.gateway_id)
        expiry = parse_expiry(method.expiry)
        days_to_expiry = days_until(expiry, now) if expiry else None
        is_expired = expiry is not None and expiry < now
        expiring_soon = (
            not is_expired
            and days_to_expiry is not None
            and days_to_expiry <= EXPIRING_SOON_DAYS
        )

        warnings: list[str] = []
        if is_expired:
            warnings.append("Payment method has expired.")
        elif expiring_soon:
            warnings.append(f"Payment method expires in {days_to_expiry} days.")
        if not method.is_tokenized:
            warnings.append("Payment method is not tokenized.")

        return {
            "gateway": {
                "id": method.gateway_id,
                "title": method.title,
                "is_available": gateway is not None and gateway.enabled,
            },
            "token": {
                "id": method.token_id,
                "last_4": method.last_4,
                "is_tokenized": method.is_tokenized,
            },
            "expiry": {
                "date": method.expiry,
                "is_expired": is_expired,
                "days_until_expiry": days_to_expiry,
                "is_expiring_soon": expiring_soon,
            },
            "status": {
                "is_valid": not is_expired and method.is_tokenized,
                "warnings": warnings,
            },
        }

    def related_orders(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        orders = [
            {
                "id": o.id,
                "type": o.relation,
                "status": o.status,
                "total": o.total,
                "date": o.date_created,
            }
            for o in snapshot.orders
        ]
        latest = max(snapshot.orders, key=lambda o: (o.date_created, o.id), default=None)
        return {
            "orders": orders,
            "counts": {
                "total": len(orders),
                "parent": len(snapshot.orders_of(OrderRelation.PARENT.value)),
                "renewals": len(snapshot.orders_of(OrderRelation.RENEWAL.value)),
                "resubscribes": len(snapshot.orders_of(OrderRelation.RESUBSCRIBE.value)),
                "switches": len(snapshot.orders_of(OrderRelation.SWITCH.value)),
            },
            "status_summary": dict(Counter(o.status for o in snapshot.orders)),
            "latest_order": next((o for o in orders if latest and o["id"] == latest.id), None),
        }

    def scheduled_jobs(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        jobs = snapshot.all_jobs()
        pending = sorted(snapshot.jobs_with_status("pending"), key=lambda j: j.scheduled_date)
        failed = sorted(
            snapshot.jobs_with_status("failed"), key=lambda j: j.scheduled_date, reverse=True
        )
        return {
            "summary": {
                "total": len(jobs),
                "pending": len(pending),
                "completed": len(snapshot.jobs_with_status("completed")),
                "failed": len(failed),
                "cancelled": len(snapshot.jobs_with_status("cancelled")),
            },
            "job_types": dict(Counter(j.hook for j in jobs)),
            "next_job": pending[0].model_dump() if pending else None,
            "recent_failures": [j.model_dump() for j in failed[:5]],
        }

    def notes(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        notes = sorted(snapshot.notes, key=lambda n: n.date_created, reverse=True)
        return {
            "total_notes": len(notes),
            "note_types": dict(Counter(n.note_type for n in notes)),
            "recent_notes": [n.model_dump() for n in notes[:10]],
            "customer_notes": [n.model_dump() for n in notes if n.customer_note],
        }

    def meta_analysis(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        meta = snapshot.meta
        warnings: list[str] = []
        if retry_count(meta) > HIGH_RETRY_COUNT:
            warnings.append("High payment retry count detected.")
        if _truthy_flag(meta.get("_requires_manual_renewal")):
            warnings.append("Subscription requires manual renewal.")
        return {
            "important_fields": {k: meta[k] for k in IMPORTANT_META_KEYS if k in meta},
            "warnings": warnings,
            "total_meta_fields": len(meta),
        }
