"""Rule checks comparing expected and observed subscription behavior."""

import logging
from collections.abc import Callable
from datetime import datetime

from subdoctor.models.product import SUBSCRIPTION_PRODUCT_TYPES
from subdoctor.models.shared import utc_now
from subdoctor.schemas.discrepancy import Finding, Severity, sort_by_severity
from subdoctor.schemas.snapshot import PlatformConfig, SubscriptionSnapshot
from subdoctor.services.anatomy import HIGH_RETRY_COUNT, parse_expiry, retry_count
from subdoctor.services.expected_behavior import requires_manual_renewal
from subdoctor.services.subscription_data import SubscriptionDataCollector
from subdoctor.services.subscription_dates import DAY, KNOWN_PERIODS, add_interval, days_until

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 3
EXPIRING_SOON_DAYS = 30
STUCK_AFTER_DAYS = 7
ATTENTION_STATUSES = ("pending", "on-hold")

Check = Callable[[SubscriptionSnapshot, PlatformConfig, datetime], list[Finding]]


def check_payment_timing(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    findings: list[Finding] = []
    schedule = snapshot.schedule
    next_payment = schedule.next_payment

    if next_payment is not None:
        if next_payment < now:
            days_overdue = days_until(now, next_payment)
            findings.append(
                Finding(
                    type="payment_overdue",
                    category="payment_timing",
                    severity=Severity.CRITICAL,
                    description=f"Payment is {days_overdue} days overdue",
                    details={
                        "expected_date": next_payment.isoformat(),
                        "days_overdue": days_overdue,
                        "subscription_status": snapshot.status,
                    },
                    recommendation="Check payment method and retry payment or contact customer.",
                )
            )
        else:
            days_to_due = days_until(next_payment, now)
            if days_to_due <= DUE_SOON_DAYS:
                findings.append(
                    Finding(
                        type="payment_due_soon",
                        category="payment_timing",
                        severity=Severity.WARNING,
                        description=f"Payment due in {days_to_due} days",
                        details={
                            "due_date": next_payment.isoformat(),
                            "days_until_due": days_to_due,
                        },
                        recommendation=(
                            "Monitor payment processing and ensure payment method is valid."
                        ),
                    )
                )

    if (
        next_payment is not None
        and schedule.last_payment is not None
        and schedule.period in KNOWN_PERIODS
    ):
        expected_next = add_interval(schedule.last_payment, schedule.period, schedule.interval)
        expected_interval = expected_next - schedule.last_payment
        actual_interval = next_payment - schedule.last_payment
        difference = abs(actual_interval - expected_interval)
        if difference > DAY:
            findings.append(
                Finding(
                    type="irregular_payment_interval",
                    category="payment_timing",
                    severity=Severity.MEDIUM,
                    description="Payment interval differs from expected schedule",
                    details={
                        "expected_interval": int(expected_interval.total_seconds()),
                        "actual_interval": int(actual_interval.total_seconds()),
                        "difference_days": round(difference / DAY),
                    },
                    recommendation="Review subscription schedule and payment processing.",
                )
            )
    return findings


def check_scheduled_jobs(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    findings: list[Finding] = []
    next_payment = snapshot.schedule.next_payment

    if next_payment is not None:
        renewal_jobs = [
            job
            for status in ("pending", "completed")
            for job in snapshot.jobs_with_status(status)
            if "renewal" in job.hook and job.scheduled_date >= next_payment
        ]
        if not renewal_jobs:
            findings.append(
                Finding(
                    type="missing_renewal_action",
                    category="scheduler_issue",
                    severity=Severity.CRITICAL,
                    description="No renewal action scheduled for next payment",
                    details={
                        "expected_renewal_date": next_payment.isoformat(),
                        "subscription_id": snapshot.id,
                    },
                    recommendation=(
                        "Manually schedule the renewal action or check the scheduler configuration."
                    ),
                )
            )

    failed = snapshot.jobs_with_status("failed")
    if failed:
        findings.append(
            Finding(
                type="failed_actions",
                category="scheduler_issue",
                severity=Severity.HIGH,
                description=f"{len(failed)} failed actions detected",
                details={
                    "failed_count": len(failed),
                    "subscription_id": snapshot.id,
                    "hooks": sorted({job.hook for job in failed}),
                },
                recommendation=(
                    "Review failed actions in the scheduler and resolve underlying issues."
                ),
            )
        )
    return findings


def check_status(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    if snapshot.status not in ATTENTION_STATUSES:
        return []

    findings = [
        Finding(
            type="unexpected_status",
            category="status_issue",
            severity=Severity.HIGH if snapshot.status == "on-hold" else Severity.MEDIUM,
            description=f"Subscription in unexpected status: {snapshot.status}",
            details={"current_status": snapshot.status, "subscription_id": snapshot.id},
            recommendation="Review subscription status and take appropriate action.",
        )
    ]

    if snapshot.date_modified is not None:
        days_unchanged = (now - snapshot.date_modified) / DAY
        if days_unchanged > STUCK_AFTER_DAYS:
            findings.append(
                Finding(
                    type="stuck_status",
                    category="status_issue",
                    severity=Severity.HIGH,
                    description=(
                        f"Subscription stuck in {snapshot.status} status "
                        f"for {round(days_unchanged)} days"
                    ),
                    details={
                        "status": snapshot.status,
                        "days_stuck": round(days_unchanged),
                        "last_modified": snapshot.date_modified.isoformat(),
                    },
                    recommendation=(
                        "Investigate why subscription is stuck and take corrective action."
                    ),
                )
            )
    return findings


def check_gateway(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    findings: list[Finding] = []
    method = snapshot.payment_method

    if not method.is_tokenized and not requires_manual_renewal(method.gateway_id):
        findings.append(
            Finding(
                type="missing_payment_token",
                category="gateway_communication",
                severity=Severity.CRITICAL,
                description="No payment token found for subscription",
                details={"payment_method": method.gateway_id, "subscription_id": snapshot.id},
                recommendation=(
                    "Check payment method configuration and ensure tokenization is working."
                ),
            )
        )

    expiry = parse_expiry(method.expiry)
    if expiry is not None:
        days_to_expiry = days_until(expiry, now)
        if expiry < now:
            findings.append(
                Finding(
                    type="expired_payment_method",
                    category="gateway_communication",
                    severity=Severity.CRITICAL,
                    description="Payment method has expired",
                    details={"expiry_date": method.expiry, "days_expired": days_until(now, expiry)},
                    recommendation="Contact customer to update payment method.",
                )
            )
        elif days_to_expiry <= EXPIRING_SOON_DAYS:
            findings.append(
                Finding(
                    type="expiring_payment_method",
                    category="gateway_communication",
                    severity=Severity.WARNING,
                    description=f"Payment method expires in {days_to_expiry} days",
                    details={"expiry_date": method.expiry, "days_until_expiry": days_to_expiry},
                    recommendation="Notify customer to update payment method before expiry.",
                )
            )

    if method.gateway_id == "stripe" and not snapshot.meta.get("_stripe_customer_id"):
        findings.append(
            Finding(
                type="missing_stripe_customer",
                category="gateway_communication",
                severity=Severity.HIGH,
                description="No Stripe customer ID found",
                details={"gateway": "stripe"},
                recommendation="Check Stripe integration and customer creation process.",
            )
        )
    elif method.gateway_id == "paypal" and not snapshot.meta.get("_paypal_subscription_id"):
        findings.append(
            Finding(
                type="missing_paypal_subscription",
                category="gateway_communication",
                severity=Severity.HIGH,
                description="No PayPal subscription ID found",
                details={"gateway": "paypal"},
                recommendation="Check PayPal integration and subscription creation process.",
            )
        )
    return findings


def check_notifications(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    findings: list[Finding] = []
    if not config.email.renewal_reminder_enabled:
        findings.append(
            Finding(
                type="missing_renewal_reminders",
                category="notification_gap",
                severity=Severity.MEDIUM,
                description="Renewal reminder emails are disabled",
                details={"setting": "renewal_reminder_enabled"},
                recommendation="Enable renewal reminder emails to improve customer experience.",
            )
        )
    if not config.email.payment_failed_enabled:
        findings.append(
            Finding(
                type="missing_payment_failed_emails",
                category="notification_gap",
                severity=Severity.HIGH,
                description="Payment failed emails are disabled",
                details={"setting": "payment_failed_enabled"},
                recommendation=(
                    "Enable payment failed emails to notify customers of payment issues."
                ),
            )
        )
    return findings


def check_payment_method(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    findings: list[Finding] = []
    gateway_id = snapshot.payment_method.gateway_id
    if requires_manual_renewal(gateway_id):
        findings.append(
            Finding(
                type="manual_renewal_required",
                category="payment_method",
                severity=Severity.INFO,
                description="Subscription requires manual renewal",
                details={"payment_method": gateway_id},
                recommendation="Monitor subscription and process payments manually.",
            )
        )

    retries = retry_count(snapshot.meta)
    if retries > HIGH_RETRY_COUNT:
        findings.append(
            Finding(
                type="high_payment_retry_count",
                category="payment_method",
                severity=Severity.HIGH,
                description=f"High payment retry count: {retries} attempts",
                details={"retry_count": retries},
                recommendation="Contact customer to resolve payment method issues.",
            )
        )
    return findings


def check_configuration(
    snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
) -> list[Finding]:
    return [
        Finding(
            type="non_subscription_product",
            category="configuration",
            severity=Severity.CRITICAL,
            description="Subscription contains non-subscription product",
            details={"product_id": item.product.id, "product_type": item.product.product_type},
            recommendation="Review subscription products and ensure all are subscription products.",
        )
        for item in snapshot.items
        if item.product is not None
        and item.product.product_type not in SUBSCRIPTION_PRODUCT_TYPES
    ]


DEFAULT_CHECKS: tuple[Check, ...] = (
    check_payment_timing,
    check_scheduled_jobs,
    check_status,
    check_gateway,
    check_notifications,
    check_payment_method,
    check_configuration,
)


class DiscrepancyDetector:
    """Runs every check against one snapshot and orders the findings by severity.

    A check that raises aborts the whole detection; no partial list is returned.
    """

    def __init__(
        self,
        collector: SubscriptionDataCollector | None = None,
        checks: tuple[Check, ...] = DEFAULT_CHECKS,
    ):
        self.collector = collector
        self.checks = checks

    def detect(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
    ) -> list[Finding]:
        findings: list[Finding] = []
        for check in self.checks:
            findings.extend(check(snapshot, config, now))
        logger.debug("Subscription %s: %d findings", snapshot.id, len(findings))
        return sort_by_severity(findings)

    def analyze(self, subscription_id: int, now: datetime | None = None) -> list[Finding]:
        """Collect the subscription and platform configuration, then detect."""
        if self.collector is None:
            raise RuntimeError("DiscrepancyDetector.analyze needs a collector")
        snapshot = self.collector.collect(subscription_id)
        config = self.collector.collect_platform_config()
        return self.detect(snapshot, config, now or utc_now())
