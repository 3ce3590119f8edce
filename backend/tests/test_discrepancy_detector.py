"""Tests for the discrepancy checks and the detector that runs them."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from subdoctor.schemas.discrepancy import Finding
from subdoctor.schemas.snapshot import EmailSettings, LineItemSnapshot, ProductSnapshot
from subdoctor.services.discrepancy_detector import (
    DiscrepancyDetector,
    check_configuration,
    check_gateway,
    check_notifications,
    check_payment_method,
    check_payment_timing,
    check_scheduled_jobs,
    check_status,
)
from tests.factories import NOW, make_config, make_job, make_snapshot


def types(findings: list[Finding]) -> list[str]:
    return [f.type for f in findings]


def test_healthy_subscription_has_no_findings():
    assert DiscrepancyDetector().detect(make_snapshot(), make_config(), NOW) == []


class TestPaymentTiming:
    def test_overdue_days_round_up(self):
        snapshot = make_snapshot(
            schedule={"next_payment": NOW - timedelta(days=2, hours=1), "last_payment": None}
        )
        findings = check_payment_timing(snapshot, make_config(), NOW)
        assert types(findings) == ["payment_overdue"]
        assert findings[0].severity == "critical"
        assert findings[0].details["days_overdue"] == 3
        assert findings[0].description == "Payment is 3 days overdue"

    @pytest.mark.parametrize("days", [0, 3])
    def test_due_soon_window(self, days):
        snapshot = make_snapshot(
            schedule={"next_payment": NOW + timedelta(days=days), "last_payment": None}
        )
        findings = check_payment_timing(snapshot, make_config(), NOW)
        assert types(findings) == ["payment_due_soon"]
        assert findings[0].severity == "warning"
        assert findings[0].details["days_until_due"] == days

    def test_four_days_out_is_not_due_soon(self):
        snapshot = make_snapshot(
            schedule={"next_payment": NOW + timedelta(days=4), "last_payment": None}
        )
        assert check_payment_timing(snapshot, make_config(), NOW) == []

    def test_calendar_month_is_regular(self):
        # 31 days between May 25 and June 25 is still exactly one month
        assert check_payment_timing(make_snapshot(), make_config(), NOW) == []

    def test_irregular_interval(self):
        snapshot = make_snapshot(schedule={"next_payment": NOW + timedelta(days=20)})
        findings = check_payment_timing(snapshot, make_config(), NOW)
        assert types(findings) == ["irregular_payment_interval"]
        details = findings[0].details
        assert details["expected_interval"] == 31 * 86400
        assert details["actual_interval"] == 41 * 86400
        assert details["difference_days"] == 10

    def test_no_next_payment(self):
        snapshot = make_snapshot(schedule={"next_payment": None})
        assert check_payment_timing(snapshot, make_config(), NOW) == []

    def test_unknown_period_skips_interval_check(self):
        snapshot = make_snapshot(
            schedule={"period": "fortnight", "next_payment": NOW + timedelta(days=20)}
        )
        assert check_payment_timing(snapshot, make_config(), NOW) == []
        assert DiscrepancyDetector().detect(snapshot, make_config(), NOW) == []


class TestScheduledJobs:
    def test_missing_renewal_action(self):
        snapshot = make_snapshot(scheduled_jobs={})
        findings = check_scheduled_jobs(snapshot, make_config(), NOW)
        assert types(findings) == ["missing_renewal_action"]
        assert findings[0].severity == "critical"
        assert findings[0].details["subscription_id"] == 42

    def test_renewal_job_before_next_payment_does_not_count(self):
        early = make_job(
            hook="woocommerce_scheduled_subscription_renewal",
            scheduled_date=NOW + timedelta(days=5),
        )
        snapshot = make_snapshot(scheduled_jobs={"pending": (early,)})
        assert types(check_scheduled_jobs(snapshot, make_config(), NOW)) == [
            "missing_renewal_action"
        ]

    def test_failed_actions(self):
        retry = "woocommerce_scheduled_subscription_payment_retry"
        prepaid = "woocommerce_scheduled_subscription_end_of_prepaid_term"
        failed = (
            make_job(job_id=2, hook=retry, status="failed"),
            make_job(job_id=3, hook=prepaid, status="failed"),
            make_job(job_id=4, hook=retry, status="failed"),
        )
        snapshot = make_snapshot(
            scheduled_jobs={**make_snapshot().scheduled_jobs, "failed": failed}
        )
        findings = check_scheduled_jobs(snapshot, make_config(), NOW)
        assert types(findings) == ["failed_actions"]
        assert findings[0].severity == "high"
        assert findings[0].details == {
            "failed_count": 3,
            "subscription_id": 42,
            "hooks": [prepaid, retry],
        }


class TestStatus:
    def test_active_is_expected(self):
        assert check_status(make_snapshot(), make_config(), NOW) == []

    def test_pending_is_medium(self):
        findings = check_status(make_snapshot(status="pending"), make_config(), NOW)
        assert types(findings) == ["unexpected_status"]
        assert findings[0].severity == "medium"

    def test_on_hold_stuck(self):
        snapshot = make_snapshot(status="on-hold", date_modified=NOW - timedelta(days=10))
        findings = check_status(snapshot, make_config(), NOW)
        assert types(findings) == ["unexpected_status", "stuck_status"]
        assert [f.severity for f in findings] == ["high", "high"]
        assert findings[1].details["days_stuck"] == 10

    def test_recently_modified_is_not_stuck(self):
        snapshot = make_snapshot(status="on-hold", date_modified=NOW - timedelta(days=7))
        assert types(check_status(snapshot, make_config(), NOW)) == ["unexpected_status"]


class TestGateway:
    def test_missing_token(self):
        snapshot = make_snapshot(payment_method={"token_id": None})
        findings = check_gateway(snapshot, make_config(), NOW)
        assert types(findings) == ["missing_payment_token"]
        assert findings[0].severity == "critical"

    def test_missing_token_without_gateway(self):
        snapshot = make_snapshot(payment_method={"gateway_id": None, "token_id": None})
        assert types(check_gateway(snapshot, make_config(), NOW)) == ["missing_payment_token"]

    def test_manual_gateway_needs_no_token(self):
        snapshot = make_snapshot(payment_method={"gateway_id": "bacs", "token_id": None})
        assert check_gateway(snapshot, make_config(), NOW) == []

    def test_expired_card(self):
        snapshot = make_snapshot(payment_method={"expiry": "2024-05"})
        findings = check_gateway(snapshot, make_config(), NOW)
        assert types(findings) == ["expired_payment_method"]
        assert findings[0].severity == "critical"
        # Valid through 2024-05-31 23:59:59
        assert findings[0].details["days_expired"] == 15

    def test_expired_hours_ago(self):
        expiry = (NOW - timedelta(hours=12)).isoformat()
        snapshot = make_snapshot(payment_method={"expiry": expiry})
        findings = check_gateway(snapshot, make_config(), NOW)
        assert types(findings) == ["expired_payment_method"]
        assert findings[0].severity == "critical"
        assert findings[0].details["days_expired"] == 1

    def test_card_valid_through_expiry_month(self):
        snapshot = make_snapshot(payment_method={"expiry": "10/26"})
        findings = check_gateway(snapshot, make_config(), datetime(2026, 10, 16, tzinfo=UTC))
        assert types(findings) == ["expiring_payment_method"]
        assert findings[0].details["days_until_expiry"] == 16

    def test_expiring_card(self):
        snapshot = make_snapshot(payment_method={"expiry": "06/24"})
        findings = check_gateway(snapshot, make_config(), NOW)
        assert types(findings) == ["expiring_payment_method"]
        assert findings[0].severity == "warning"
        assert findings[0].details["days_until_expiry"] == 16

    def test_missing_stripe_customer(self):
        snapshot = make_snapshot(meta={})
        assert types(check_gateway(snapshot, make_config(), NOW)) == ["missing_stripe_customer"]

    def test_missing_paypal_subscription(self):
        snapshot = make_snapshot(payment_method={"gateway_id": "paypal"}, meta={})
        assert types(check_gateway(snapshot, make_config(), NOW)) == [
            "missing_paypal_subscription"
        ]


class TestNotifications:
    def test_disabled_emails(self):
        config = make_config(email=EmailSettings())
        findings = check_notifications(make_snapshot(), config, NOW)
        assert types(findings) == ["missing_renewal_reminders", "missing_payment_failed_emails"]
        assert [f.severity for f in findings] == ["medium", "high"]


class TestPaymentMethod:
    def test_manual_renewal_is_info(self):
        snapshot = make_snapshot(payment_method={"gateway_id": "cheque"})
        findings = check_payment_method(snapshot, make_config(), NOW)
        assert types(findings) == ["manual_renewal_required"]
        assert findings[0].severity == "info"

    def test_high_retry_count(self):
        snapshot = make_snapshot(
            meta={"_stripe_customer_id": "cus_123", "_payment_retry_count": "5"}
        )
        findings = check_payment_method(snapshot, make_config(), NOW)
        assert types(findings) == ["high_payment_retry_count"]
        assert findings[0].details == {"retry_count": 5}

    def test_three_retries_is_fine(self):
        snapshot = make_snapshot(meta={"_payment_retry_count": 3})
        assert check_payment_method(snapshot, make_config(), NOW) == []


class TestConfiguration:
    def test_non_subscription_product(self):
        items = (
            LineItemSnapshot(
                id=1,
                product=ProductSnapshot(id=5, name="Coffee club", product_type="subscription"),
            ),
            LineItemSnapshot(
                id=2, product=ProductSnapshot(id=9, name="Mug", product_type="simple")
            ),
            LineItemSnapshot(id=3, product=None),
        )
        findings = check_configuration(make_snapshot(items=items), make_config(), NOW)
        assert types(findings) == ["non_subscription_product"]
        assert findings[0].details == {"product_id": 9, "product_type": "simple"}


class TestDiscrepancyDetector:
    def test_orders_by_severity(self):
        snapshot = make_snapshot(
            status="on-hold",
            payment_method={"gateway_id": "cheque", "token_id": None},
            scheduled_jobs={},
        )
        findings = DiscrepancyDetector().detect(snapshot, make_config(), NOW)
        ranks = [f.rank for f in findings]
        assert ranks == sorted(ranks)
        assert findings[0].type == "missing_renewal_action"
        assert findings[-1].type == "manual_renewal_required"

    def test_equal_severities_keep_discovery_order(self):
        def first(snapshot, config, now):
            return [
                Finding(type="a", category="x", severity="high", description="a"),
                Finding(type="b", category="x", severity="info", description="b"),
            ]

        def second(snapshot, config, now):
            return [
                Finding(type="c", category="x", severity="high", description="c"),
                Finding(type="d", category="x", severity="critical", description="d"),
            ]

        detector = DiscrepancyDetector(checks=(first, second))
        findings = detector.detect(make_snapshot(), make_config(), NOW)
        assert types(findings) == ["d", "a", "c", "b"]

    def test_failing_check_aborts_detection(self):
        def broken(snapshot, config, now):
            raise KeyError("boom")

        detector = DiscrepancyDetector(checks=(check_status, broken))
        with pytest.raises(KeyError):
            detector.detect(make_snapshot(status="pending"), make_config(), NOW)

    def test_analyze_uses_collector(self):
        collector = MagicMock()
        collector.collect.return_value = make_snapshot(scheduled_jobs={})
        collector.collect_platform_config.return_value = make_config()

        findings = DiscrepancyDetector(collector).analyze(42, now=NOW)

        collector.collect.assert_called_once_with(42)
        assert types(findings) == ["missing_renewal_action"]

    def test_analyze_without_collector(self):
        with pytest.raises(RuntimeError):
            DiscrepancyDetector().analyze(42, now=datetime(2024, 1, 1, tzinfo=UTC))
