"""What a correctly configured subscription should do, derived from configuration."""

from datetime import datetime
from typing import Any

from subdoctor.models.product import SUBSCRIPTION_PRODUCT_TYPES
from subdoctor.schemas.snapshot import PlatformConfig, SubscriptionSnapshot
from subdoctor.services.subscription_dates import project_renewal_dates

MANUAL_RENEWAL_GATEWAYS = frozenset({"cheque", "bacs", "cod"})

GATEWAY_FEATURES = (
    "subscriptions",
    "subscription_cancellation",
    "subscription_suspension",
    "subscription_reactivation",
    "subscription_amount_changes",
    "subscription_date_changes",
)

RENEWAL_PROJECTION_COUNT = 12

# (category, slug fragments, display name, impact); slug substring matches are heuristic
EXTENSION_RULES: tuple[tuple[str, tuple[str, ...], str, str], ...] = (
    (
        "membership_extensions",
        ("woocommerce-memberships",),
        "Memberships",
        "May affect subscription access and billing",
    ),
    (
        "payment_retry_extensions",
        ("woocommerce-subscription-payment-retry",),
        "Subscription Payment Retry",
        "Adds automatic payment retry functionality",
    ),
    (
        "email_extensions",
        ("woocommerce-email-customizer", "woocommerce-advanced-notifications"),
        "Email Customization Extension",
        "May affect subscription notification emails",
    ),
    (
        "automation_extensions",
        ("woocommerce-automation", "woocommerce-workflows"),
        "Automation Extension",
        "May add custom subscription workflows",
    ),
)

STATUS_TRANSITIONS: dict[str, tuple[tuple[str, str], ...]] = {
    "active": (
        ("on-hold", "payment_failed"),
        ("cancelled", "customer_cancellation"),
        ("expired", "subscription_end_date_reached"),
    ),
    "on-hold": (
        ("active", "payment_completed"),
        ("cancelled", "customer_cancellation"),
    ),
    "pending": (
        ("active", "payment_completed"),
        ("cancelled", "payment_failed"),
    ),
}


def requires_manual_renewal(gateway_id: str | None) -> bool:
    return gateway_id in MANUAL_RENEWAL_GATEWAYS


class ExpectedBehaviorAnalyzer:
    def analyze(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
    ) -> dict[str, Any]:
        return {
            "product_config": self.product_config(snapshot),
            "gateway_behavior": self.gateway_behavior(snapshot, config),
            "active_extensions_impact": self.extension_impact(config),
            "expected_events": {
                "renewal_dates": self.renewal_dates(snapshot, now),
                "payment_retry_schedule": self.retry_schedule(config),
                "email_notifications": self.email_notifications(config),
                "status_transitions": self.status_transitions(snapshot.status),
            },
        }

    def product_config(self, snapshot: SubscriptionSnapshot) -> dict[str, Any]:
        """Configuration of the first subscription-type product on the subscription."""
        for item in snapshot.items:
            product = item.product
            if product is None or product.product_type not in SUBSCRIPTION_PRODUCT_TYPES:
                continue
            return {
                "product_id": product.id,
                "product_name": product.name,
                "subscription_price": product.price,
                "billing_period": product.subscription_period,
                "billing_interval": product.subscription_interval,
                "trial_length": product.trial_length,
                "trial_period": product.trial_period,
                "sign_up_fee": product.sign_up_fee,
                "free_trial": product.trial_length > 0,
            }
        return {}

    def gateway_behavior(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig
    ) -> dict[str, Any]:
        behavior: dict[str, Any] = {f"supports_{feature}": False for feature in GATEWAY_FEATURES}
        behavior.update(
            {
                "requires_manual_renewal": False,
                "webhook_configured": False,
                "gateway_name": "",
                "gateway_description": "",
            }
        )
        gateway = config.gateway(snapshot.payment_method.gateway_id)
        if gateway is None:
            return behavior

        for feature in GATEWAY_FEATURES:
            behavior[f"supports_{feature}"] = gateway.supports_feature(feature)
        behavior["requires_manual_renewal"] = requires_manual_renewal(gateway.id)
        behavior["webhook_configured"] = bool(gateway.webhook_urls)
        behavior["gateway_name"] = gateway.title
        behavior["gateway_description"] = gateway.description or ""
        return behavior

    def extension_impact(self, config: PlatformConfig) -> dict[str, list[dict[str, str]]]:
        impact: dict[str, list[dict[str, str]]] = {rule[0]: [] for rule in EXTENSION_RULES}
        impact["conflicting_extensions"] = []

        for slug in config.active_extensions:
            for category, fragments, name, description in EXTENSION_RULES:
                if any(fragment in slug for fragment in fragments):
                    impact[category].append({"name": name, "impact": description})
            # Another subscriptions engine alongside the platform's own
            if "woocommerce-subscription" in slug and "woocommerce-subscriptions" not in slug:
                name = slug.rsplit("/", 1)[-1].removesuffix(".php")
                impact["conflicting_extensions"].append(
                    {"name": name, "impact": "Potential subscription extension conflict"}
                )
        return impact

    def renewal_dates(self, snapshot: SubscriptionSnapshot, now: datetime) -> list[dict[str, Any]]:
        schedule = snapshot.schedule
        if schedule.start_date is None:
            return []
        dates = project_renewal_dates(
            schedule.start_date,
            schedule.period,
            schedule.interval,
            end=schedule.end_date,
            count=RENEWAL_PROJECTION_COUNT,
        )
        return [
            {"number": number, "date": date, "is_past": date < now}
            for number, date in enumerate(dates, start=1)
        ]

    def retry_schedule(self, config: PlatformConfig) -> list[dict[str, Any]]:
        if not config.retry_enabled:
            return []
        return [
            {
                "attempt": rule.retry_number,
                "delay": rule.retry_delay,
                "delay_unit": rule.retry_delay_unit,
            }
            for rule in config.retry_rules
        ]

    def email_notifications(self, config: PlatformConfig) -> list[dict[str, Any]]:
        email = config.email
        notifications: list[dict[str, Any]] = []
        if email.renewal_reminder_enabled:
            notifications.append(
                {
                    "type": "renewal_reminder",
                    "timing": email.renewal_reminder_days,
                    "enabled": True,
                }
            )
        if email.payment_failed_enabled:
            notifications.append({"type": "payment_failed", "timing": "immediate", "enabled": True})
        if email.subscription_cancelled_enabled:
            notifications.append(
                {"type": "subscription_cancelled", "timing": "immediate", "enabled": True}
            )
        return notifications

    def status_transitions(self, status: str) -> list[dict[str, Any]]:
        return [
            {"from": status, "to": target, "trigger": trigger, "expected": True}
            for target, trigger in STATUS_TRANSITIONS.get(status, ())
        ]
