"""Tests for IssueLogger, issue classification and the issue log file."""

import csv
import io
import json
import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from subdoctor.core.errors import NotFoundError, UnsupportedFormatError
from subdoctor.models.shared import utc_now
from subdoctor.repositories.issue_repository import IssueRepository
from subdoctor.schemas.discrepancy import Finding
from subdoctor.schemas.issue import IssueExportFilters
from subdoctor.services import issue_logger as issue_logger_module
from subdoctor.services.issue_logger import (
    IssueLogger,
    assess_severity,
    categorize_issue,
    configure_issue_log,
    issue_log,
)


@pytest.fixture
def email_service():
    service = MagicMock()
    service.send_critical_issue_alert = AsyncMock(return_value=True)
    return service


@pytest.fixture
def issue_logger(db_session, email_service):
    return IssueLogger(db_session, email_service=email_service)


@pytest.fixture
def repo(db_session):
    return IssueRepository(db_session)


class TestClassification:
    @pytest.mark.parametrize(
        ("details", "category"),
        [
            ({"message": "Payment failed for renewal"}, "payment_failure"),
            ("Card DECLINED by issuer", "payment_failure"),
            ("Scheduled action missed its window", "scheduler_issue"),
            ("Gateway unreachable", "gateway_communication"),
            ("Token has expired", "payment_method"),
            ("Customer changed address", "general"),
        ],
    )
    def test_categorize_issue(self, details, category):
        assert categorize_issue(details) == category

    def test_first_pattern_wins(self):
        # Mentions both a payment error and an expired token
        assert categorize_issue("payment token expired with error") == "payment_failure"

    def test_assess_severity_from_details(self):
        assert assess_severity("info", {"message": "card declined"}) == "critical"
        assert assess_severity("info", "webhook delivery failed") == "high"

    def test_assess_severity_from_type(self):
        assert assess_severity("renewal_missed", "nothing matched") == "high"
        assert assess_severity("configuration_error", {}) == "medium"
        assert assess_severity("something_new", {}) == "medium"


class TestLogDiscrepancy:
    def test_persists_issue(self, issue_logger, repo):
        issue = issue_logger.log_discrepancy(42, "renewal_missed", {"message": "no renewal"})
        stored = repo.get_by_id(issue.id)
        assert stored.subscription_id == 42
        assert stored.issue_type == "renewal_missed"
        assert stored.issue_category == "general"
        assert stored.severity == "high"
        assert stored.details == {"message": "no renewal"}
        assert stored.detected_at is not None
        assert stored.resolved_at is None

    def test_explicit_severity_and_category(self, issue_logger):
        issue = issue_logger.log_discrepancy(
            42,
            "missing_stripe_customer",
            {"message": "payment failed"},
            severity="high",
            category="gateway_communication",
        )
        assert (issue.severity, issue.issue_category) == ("high", "gateway_communication")
        assert issue_logger.pending_alerts == []

    def test_critical_issue_queues_alert(self, issue_logger):
        issue_logger.log_discrepancy(42, "payment_failed", {"message": "Payment failed"})
        assert len(issue_logger.pending_alerts) == 1
        alert = issue_logger.pending_alerts[0]
        assert (alert.subscription_id, alert.issue_type, alert.category) == (
            42,
            "payment_failed",
            "payment_failure",
        )

    def test_writes_issue_log_line(self, issue_logger, caplog):
        with caplog.at_level(logging.INFO, logger="subdoctor.issues"):
            issue_logger.log_discrepancy(42, "renewal_missed", {"message": "no renewal"})
        assert 'Subscription #42 - renewal_missed (high): {"message": "no renewal"}' in caplog.text


class TestLogFindings:
    def test_keeps_finding_severity_and_category(self, issue_logger):
        findings = [
            Finding(
                type="payment_overdue",
                category="payment_timing",
                severity="critical",
                description="Payment is 3 days overdue",
                details={"days_overdue": 3},
            ),
            Finding(
                type="manual_renewal_required",
                category="payment_method",
                severity="info",
                description="Subscription requires manual renewal",
                details={"payment_method": "cheque"},
            ),
        ]
        issues = issue_logger.log_findings(42, findings)

        assert [(i.issue_type, i.issue_category, i.severity) for i in issues] == [
            ("payment_overdue", "payment_timing", "critical"),
            ("manual_renewal_required", "payment_method", "info"),
        ]
        assert issues[0].details == {
            "description": "Payment is 3 days overdue",
            "days_overdue": 3,
        }
        assert [a.issue_type for a in issue_logger.pending_alerts] == ["payment_overdue"]

    def test_log_analysis_is_not_persisted(self, issue_logger, repo, caplog):
        analysis = {
            "anatomy": {"meta_analysis": {"warnings": ["High payment retry count detected."]}},
            "expected": {"active_extensions_impact": {"conflicting_extensions": []}},
            "timeline": None,
            "discrepancies": [],
        }
        with caplog.at_level(logging.INFO, logger="subdoctor.issues"):
            issue_logger.log_analysis(42, analysis)
        assert repo.list_recent() == []
        assert "analysis_completed (info)" in caplog.text
        assert '"anatomy_issues": 1' in caplog.text


class TestSecurityEvents:
    def test_logged_without_subscription(self, issue_logger):
        issue = issue_logger.log_security_event(
            "unknown_api_key", {"action": "/v1/troubleshooter/analyze", "ip_address": "10.0.0.1"}
        )
        assert issue.subscription_id is None
        assert issue.issue_type == "security_unknown_api_key"
        assert issue.details["ip_address"] == "10.0.0.1"
        assert "timestamp" in issue.details

    def test_header_content_not_classified(self, issue_logger):
        issue = issue_logger.log_security_event(
            "missing_credentials", {"user_agent": "invalid", "ip_address": "10.0.0.1"}
        )
        assert (issue.issue_category, issue.severity) == ("security", "high")
        assert issue_logger.pending_alerts == []


class TestQueries:
    def test_recent_newest_first(self, issue_logger):
        first = issue_logger.log_discrepancy(1, "info", {})
        second = issue_logger.log_discrepancy(2, "info", {})
        assert [i.id for i in issue_logger.get_recent_issues()] == [second.id, first.id]
        assert [i.id for i in issue_logger.get_recent_issues(limit=1)] == [second.id]

    def test_subscription_issues(self, issue_logger):
        issue_logger.log_discrepancy(1, "info", {})
        issue_logger.log_discrepancy(2, "warning", {})
        assert [i.subscription_id for i in issue_logger.get_subscription_issues(2)] == [2]

    def test_common_issues(self, issue_logger, repo):
        for _ in range(3):
            issue_logger.log_discrepancy(1, "renewal_missed", {})
        issue_logger.log_discrepancy(1, "info", {})
        repo.create(
            "renewal_missed",
            "general",
            "high",
            {},
            subscription_id=1,
            detected_at=utc_now() - timedelta(days=45),
        )

        report = issue_logger.get_common_issues_report(days=30)
        assert [(c.issue_type, c.count) for c in report] == [("renewal_missed", 3), ("info", 1)]
        assert report[0].severity == "high"


class TestResolveAndCleanup:
    def test_mark_resolved(self, issue_logger):
        issue = issue_logger.log_discrepancy(1, "info", {})
        resolved = issue_logger.mark_issue_resolved(issue.id)
        assert resolved.resolved_at is not None

    def test_mark_unknown_issue(self, issue_logger):
        with pytest.raises(NotFoundError, match="Issue not found."):
            issue_logger.mark_issue_resolved(999)

    def test_clean_old_logs_deletes_only_old_resolved(self, issue_logger, repo):
        old = utc_now() - timedelta(days=120)
        old_resolved = repo.create("info", "general", "info", {}, detected_at=old)
        repo.mark_resolved(old_resolved, old)
        old_open = repo.create("info", "general", "info", {}, detected_at=old)
        recent = issue_logger.log_discrepancy(1, "info", {})
        repo.mark_resolved(recent, utc_now())

        assert issue_logger.clean_old_logs(days=90) == 1
        remaining = {i.id for i in repo.list_recent()}
        assert remaining == {old_open.id, recent.id}


class TestExport:
    @pytest.fixture
    def seeded(self, issue_logger):
        issue_logger.log_discrepancy(
            42, "payment_overdue", {"days": 3}, severity="critical", category="payment_timing"
        )
        issue_logger.log_discrepancy(
            43, "stuck_status", {"note": "<b>x</b>"}, severity="high", category="status_issue"
        )
        return issue_logger

    def test_csv(self, seeded):
        content = seeded.export_issues_report("csv", IssueExportFilters())
        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == [
            "ID",
            "Subscription ID",
            "Issue Type",
            "Category",
            "Severity",
            "Details",
            "Detected At",
            "Resolved At",
        ]
        assert len(rows) == 3
        assert {r[2] for r in rows[1:]} == {"payment_overdue", "stuck_status"}
        overdue = next(r for r in rows[1:] if r[2] == "payment_overdue")
        assert json.loads(overdue[5]) == {"days": 3}
        assert overdue[7] == ""

    def test_csv_without_rows(self, issue_logger):
        assert issue_logger.export_issues_report("csv", IssueExportFilters()) == ""

    def test_json_with_filters(self, seeded):
        content = seeded.export_issues_report(
            "json", IssueExportFilters(severity="critical", category="payment_timing")
        )
        rows = json.loads(content)
        assert [r["issue_type"] for r in rows] == ["payment_overdue"]

    def test_json_date_filter(self, seeded):
        future = IssueExportFilters(date_from=utc_now() + timedelta(days=1))
        assert json.loads(seeded.export_issues_report("json", future)) == []

    def test_html_escapes_details(self, seeded):
        content = seeded.export_issues_report("html", IssueExportFilters())
        assert content.startswith('<table border="1"')
        assert "<td>stuck_status</td>" in content
        assert "<b>x</b>" not in content
        assert "&lt;b&gt;x&lt;/b&gt;" in content

    def test_pdf_not_supported(self, issue_logger):
        with pytest.raises(UnsupportedFormatError):
            issue_logger.export_issues_report("pdf", IssueExportFilters())


class TestDispatchAlerts:
    @pytest.mark.asyncio
    async def test_sends_queued_alerts(self, issue_logger, email_service):
        issue_logger.log_discrepancy(42, "payment_failed", {"message": "Payment failed"})
        issue_logger.log_discrepancy(43, "info", {"message": "fine"})

        assert await issue_logger.dispatch_alerts() == 1
        email_service.send_critical_issue_alert.assert_awaited_once_with(
            42, "payment_failed", "payment_failure", {"message": "Payment failed"}
        )
        assert issue_logger.pending_alerts == []

    @pytest.mark.asyncio
    async def test_failed_send_is_skipped(self, issue_logger, email_service, caplog):
        email_service.send_critical_issue_alert = AsyncMock(
            side_effect=[ConnectionError("refused"), True]
        )
        issue_logger.log_discrepancy(1, "payment_failed", {"message": "Payment failed"})
        issue_logger.log_discrepancy(2, "payment_failed", {"message": "Payment failed"})

        with caplog.at_level(logging.ERROR):
            assert await issue_logger.dispatch_alerts() == 1
        assert "Failed to send critical alert" in caplog.text

    @pytest.mark.asyncio
    async def test_undelivered_alert_not_counted(self, issue_logger, email_service):
        email_service.send_critical_issue_alert = AsyncMock(return_value=False)
        issue_logger.log_discrepancy(1, "payment_failed", {"message": "Payment failed"})
        assert await issue_logger.dispatch_alerts() == 0


class TestIssueLogFile:
    def test_writes_to_configured_file(self, tmp_path, monkeypatch, db_session):
        path = tmp_path / "issues.log"
        monkeypatch.setattr(issue_logger_module, "_issue_log_path", None)
        handlers_before = list(issue_log.handlers)
        try:
            with patch.object(issue_logger_module.settings, "ISSUE_LOG_FILE", str(path)):
                configure_issue_log()
                configure_issue_log()
                IssueLogger(db_session).log_discrepancy(42, "renewal_missed", {"a": 1})
            added = [h for h in issue_log.handlers if h not in handlers_before]
            assert len(added) == 1
            added[0].flush()
            assert 'Subscription #42 - renewal_missed (high): {"a": 1}' in path.read_text()
        finally:
            for handler in issue_log.handlers:
                if handler not in handlers_before:
                    issue_log.removeHandler(handler)
                    handler.close()
