"""Persistent log of detected issues, with aggregation, export and alerting."""

import csv
import html
import io
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session

from subdoctor.core.config import settings
from subdoctor.core.errors import NotFoundError
from subdoctor.core.security import ISSUE_EXPORT_FORMATS, validate_export_format
from subdoctor.models.issue import Issue
from subdoctor.models.shared import utc_now
from subdoctor.repositories.issue_repository import IssueRepository
from subdoctor.schemas.discrepancy import Finding
from subdoctor.schemas.issue import CommonIssue, IssueExportFilters, IssueResponse
from subdoctor.services.email_service import EmailService

logger = logging.getLogger(__name__)

issue_log = logging.getLogger("subdoctor.issues")

# (pattern, category, severity); first match wins
ISSUE_PATTERNS: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (re.compile(r"payment.*failed|declined|error"), "payment_failure", "critical"),
    (re.compile(r"action.*missed|skipped|timeout"), "scheduler_issue", "high"),
    (re.compile(r"gateway.*timeout|unreachable"), "gateway_communication", "high"),
    (re.compile(r"token.*expired|invalid"), "payment_method", "critical"),
    (re.compile(r"webhook.*failed|error"), "gateway_communication", "high"),
)

TYPE_SEVERITIES = {
    "payment_failed": "critical",
    "renewal_missed": "high",
    "gateway_error": "high",
    "configuration_error": "medium",
    "warning": "warning",
    "info": "info",
}

EXPORT_COLUMNS = (
    "id",
    "subscription_id",
    "issue_type",
    "issue_category",
    "severity",
    "details",
    "detected_at",
    "resolved_at",
)

_issue_log_path: str | None = None


def configure_issue_log() -> None:
    """Attach a file handler for ``ISSUE_LOG_FILE`` to the issues logger, once per path."""
    global _issue_log_path
    path = settings.ISSUE_LOG_FILE
    if not path or path == _issue_log_path:
        return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
    issue_log.addHandler(handler)
    issue_log.setLevel(logging.INFO)
    _issue_log_path = path


def _pattern_match(details: Any) -> tuple[str, str] | None:
    text = (details if isinstance(details, str) else json.dumps(details, default=str)).lower()
    for pattern, category, severity in ISSUE_PATTERNS:
        if pattern.search(text):
            return category, severity
    return None


def categorize_issue(details: Any) -> str:
    match = _pattern_match(details)
    return match[0] if match else "general"


def assess_severity(issue_type: str, details: Any) -> str:
    match = _pattern_match(details)
    if match:
        return match[1]
    return TYPE_SEVERITIES.get(issue_type, "medium")


@dataclass
class PendingAlert:
    subscription_id: int | None
    issue_type: str
    category: str
    details: dict[str, Any] = field(default_factory=dict)


class IssueLogger:
    """Records issues in the issues table and the issue log.

    Critical issues are queued in ``pending_alerts``; ``dispatch_alerts``
    sends them once the request has finished its synchronous work.
    """

    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.repo = IssueRepository(db)
        self.email_service = email_service or EmailService()
        self.pending_alerts: list[PendingAlert] = []
        configure_issue_log()

    def log_discrepancy(
        self,
        subscription_id: int | None,
        issue_type: str,
        details: dict[str, Any],
        severity: str | None = None,
        category: str | None = None,
    ) -> Issue:
        """Persist one issue.

        Findings carry their own severity and category; free-form events
        without them are classified from their details.
        """
        category = category or categorize_issue(details)
        severity = severity or assess_severity(issue_type, details)
        issue = self.repo.create(
            issue_type=issue_type,
            issue_category=category,
            severity=severity,
            details=details,
            subscription_id=subscription_id,
            detected_at=utc_now(),
        )
        self._write_line(subscription_id, issue_type, severity, details)
        if severity == "critical":
            self.pending_alerts.append(
                PendingAlert(
                    subscription_id=subscription_id,
                    issue_type=issue_type,
                    category=category,
                    details=details,
                )
            )
        return issue

    def log_findings(self, subscription_id: int, findings: list[Finding]) -> list[Issue]:
        return [
            self.log_discrepancy(
                subscription_id,
                finding.type,
                {"description": finding.description, **finding.details},
                severity=str(finding.severity),
                category=finding.category,
            )
            for finding in findings
        ]

    def log_analysis(self, subscription_id: int, analysis: dict[str, Any]) -> None:
        """Write an ``analysis_completed`` line; it is not persisted."""
        meta = analysis.get("anatomy", {}).get("meta_analysis", {})
        impact = analysis.get("expected", {}).get("active_extensions_impact", {})
        details = {
            "anatomy_issues": len(meta.get("warnings", [])),
            "expected_issues": len(impact.get("conflicting_extensions", [])),
            "timeline_events": len(getattr(analysis.get("timeline"), "events", ())),
            "discrepancies": len(analysis.get("discrepancies", [])),
        }
        self._write_line(subscription_id, "analysis_completed", "info", details)

    def log_security_event(self, event_type: str, details: dict[str, Any]) -> Issue:
        """Record a rejected request. Details come from request headers and are
        never classified, so every security event is ``high``.
        """
        return self.log_discrepancy(
            None,
            f"security_{event_type}",
            {**details, "timestamp": utc_now().isoformat()},
            severity="high",
            category="security",
        )

    def get_common_issues_report(self, days: int = 30) -> list[CommonIssue]:
        cutoff = utc_now() - timedelta(days=days)
        return [
            CommonIssue(issue_type=t, issue_category=c, severity=s, count=n)
            for t, c, s, n in self.repo.count_grouped_since(cutoff)
        ]

    def get_subscription_issues(self, subscription_id: int) -> list[Issue]:
        return self.repo.list_for_subscription(subscription_id)

    def get_recent_issues(self, limit: int = 50) -> list[Issue]:
        return self.repo.list_recent(limit)

    def mark_issue_resolved(self, issue_id: int) -> Issue:
        issue = self.repo.get_by_id(issue_id)
        if issue is None:
            raise NotFoundError("Issue not found.")
        return self.repo.mark_resolved(issue, utc_now())

    def clean_old_logs(self, days: int = 90) -> int:
        deleted = self.repo.delete_resolved_before(utc_now() - timedelta(days=days))
        logger.info("Deleted %d resolved issues older than %d days", deleted, days)
        return deleted

    def export_issues_report(self, fmt: str, filters: IssueExportFilters) -> str:
        fmt = validate_export_format(fmt, ISSUE_EXPORT_FORMATS)
        issues = self.repo.filtered(
            severity=filters.severity,
            category=filters.category,
            date_from=filters.date_from,
            date_to=filters.date_to,
        )
        rows = [IssueResponse.model_validate(issue).model_dump(mode="json") for issue in issues]
        if fmt == "json":
            return json.dumps(rows, indent=2)
        if fmt == "csv":
            return self._issues_csv(rows)
        return self._issues_html(rows)

    async def dispatch_alerts(self) -> int:
        """Send queued critical alerts; a failed send is logged and skipped."""
        sent = 0
        alerts, self.pending_alerts = self.pending_alerts, []
        for alert in alerts:
            try:
                delivered = await self.email_service.send_critical_issue_alert(
                    alert.subscription_id, alert.issue_type, alert.category, alert.details
                )
            except Exception:
                logger.exception("Failed to send critical alert for %s", alert.issue_type)
                continue
            if delivered:
                sent += 1
                self._write_line(
                    alert.subscription_id, "alert_sent", "info", {"alert_type": "critical_issue"}
                )
        return sent

    @staticmethod
    def _write_line(
        subscription_id: int | None, issue_type: str, severity: str, details: dict[str, Any]
    ) -> None:
        issue_log.info(
            "Subscription #%s - %s (%s): %s",
            subscription_id if subscription_id is not None else 0,
            issue_type,
            severity,
            json.dumps(details, default=str),
        )

    @staticmethod
    def _issues_csv(rows: list[dict[str, Any]]) -> str:
        if not rows:
            return ""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "ID",
                "Subscription ID",
                "Issue Type",
                "Category",
                "Severity",
                "Details",
                "Detected At",
                "Resolved At",
            ]
        )
        for row in rows:
            writer.writerow(
                [
                    json.dumps(row[col]) if col == "details" else row[col] or ""
                    for col in EXPORT_COLUMNS
                ]
            )
        return output.getvalue()

    @staticmethod
    def _issues_html(rows: list[dict[str, Any]]) -> str:
        header = (
            "<tr><th>ID</th><th>Subscription ID</th><th>Issue Type</th><th>Category</th>"
            "<th>Severity</th><th>Details</th><th>Detected At</th><th>Resolved At</th></tr>"
        )
        body = "".join(
            "<tr>"
            + "".join(
                "<td>"
                + html.escape(json.dumps(row[col]) if col == "details" else str(row[col] or ""))
                + "</td>"
                for col in EXPORT_COLUMNS
            )
            + "</tr>"
            for row in rows
        )
        return f'<table border="1" cellpadding="5" cellspacing="0">{header}{body}</table>'
