"""Runs the collector and every analyzer for the troubleshooter actions."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from subdoctor.core.security import (
    validate_export_format,
    validate_filters,
    validate_search_term,
    validate_settings,
    validate_subscription_id,
)
from subdoctor.models.platform_option import TROUBLESHOOTER_SETTINGS_OPTION
from subdoctor.models.shared import utc_now
from subdoctor.repositories.platform_option_repository import PlatformOptionRepository
from subdoctor.schemas.analysis import AnalysisSummary, ExportedReport, SearchMatch
from subdoctor.schemas.discrepancy import Finding
from subdoctor.schemas.snapshot import PlatformConfig, SubscriptionSnapshot, TroubleshooterSettings
from subdoctor.schemas.timeline import Timeline
from subdoctor.services.anatomy import SubscriptionAnatomyAnalyzer
from subdoctor.services.discrepancy_detector import DiscrepancyDetector
from subdoctor.services.event_classifier import EventClassifier
from subdoctor.services.expected_behavior import ExpectedBehaviorAnalyzer
from subdoctor.services.issue_logger import IssueLogger
from subdoctor.services.report_exporter import ReportExporter
from subdoctor.services.subscription_data import SubscriptionDataCollector
from subdoctor.services.timeline_builder import TimelineBuilder, filter_events

logger = logging.getLogger(__name__)


def summarize_findings(findings: list[Finding], timeline: Timeline) -> AnalysisSummary:
    counts = {severity: 0 for severity in ("critical", "high", "medium", "warning", "info")}
    for finding in findings:
        counts[str(finding.severity)] += 1
    if counts["critical"]:
        health = "critical"
    elif counts["high"] or counts["medium"] or counts["warning"]:
        health = "attention"
    else:
        health = "healthy"
    return AnalysisSummary(
        total_findings=len(findings),
        timeline_events=len(timeline.events),
        health=health,
        **counts,
    )


class DiagnosticsService:
    """Entry point for analyze, search, timeline, export and settings.

    Each call reads the subscription and the platform configuration once
    and hands the same snapshot to every analyzer.
    """

    def __init__(
        self,
        db: Session,
        classifier: EventClassifier | None = None,
        log_dir: str | None = None,
    ):
        self.db = db
        self.collector = SubscriptionDataCollector(db)
        self.options = PlatformOptionRepository(db)
        self.anatomy = SubscriptionAnatomyAnalyzer()
        self.expected = ExpectedBehaviorAnalyzer()
        self.timeline_builder = TimelineBuilder(classifier=classifier, log_dir=log_dir)
        self.detector = DiscrepancyDetector(self.collector)
        self.exporter = ReportExporter()

    def analyze(
        self,
        subscription_id: Any,
        now: datetime | None = None,
        issue_logger: IssueLogger | None = None,
    ) -> dict[str, Any]:
        """Full diagnosis of one subscription.

        When an ``issue_logger`` is given and logging is enabled in the
        troubleshooter settings, every finding is persisted.
        """
        subscription_id = validate_subscription_id(subscription_id)
        now = now or utc_now()
        snapshot = self.collector.collect(subscription_id)
        config = self.collector.collect_platform_config()
        result = self._run(snapshot, config, now)

        if issue_logger is not None and config.troubleshooter.enable_logging:
            issue_logger.log_findings(subscription_id, result["discrepancies"])
            issue_logger.log_analysis(subscription_id, result)
        logger.info(
            "Analyzed subscription %s: %d findings",
            subscription_id,
            len(result["discrepancies"]),
        )
        return result

    def _run(
        self, snapshot: SubscriptionSnapshot, config: PlatformConfig, now: datetime
    ) -> dict[str, Any]:
        timeline = self.timeline_builder.build(snapshot, now)
        findings = self.detector.detect(snapshot, config, now)
        return {
            "subscription_id": snapshot.id,
            "anatomy": self.anatomy.analyze(snapshot, config, now),
            "expected": self.expected.analyze(snapshot, config, now),
            "timeline": timeline,
            "discrepancies": findings,
            "summary": summarize_findings(findings, timeline),
            "timestamp": now,
        }

    def search(self, search_term: Any) -> list[SearchMatch]:
        return self.collector.search(validate_search_term(search_term))

    def timeline(
        self, subscription_id: Any, filters: Any = None, now: datetime | None = None
    ) -> dict[str, Any]:
        """Timeline of one subscription narrowed by the operator's filters."""
        subscription_id = validate_subscription_id(subscription_id)
        timeline_filters = validate_filters(filters or {})
        snapshot = self.collector.collect(subscription_id)
        timeline = self.timeline_builder.build(snapshot, now or utc_now())
        events = filter_events(timeline.events, timeline_filters)
        return {
            "events": events,
            "summary": TimelineBuilder.summarize(events),
            "total_events": len(timeline.events),
            "filters": timeline_filters,
        }

    def export(self, subscription_id: Any, fmt: Any, now: datetime | None = None) -> ExportedReport:
        # Format is checked before any subscription data is read
        fmt = validate_export_format(fmt)
        subscription_id = validate_subscription_id(subscription_id)
        now = now or utc_now()
        snapshot = self.collector.collect(subscription_id)
        config = self.collector.collect_platform_config()
        result = self._run(snapshot, config, now)
        report = {
            "subscription_id": subscription_id,
            "generated_at": now,
            "anatomy": result["anatomy"],
            "expected": result["expected"],
            "timeline": result["timeline"],
            "discrepancies": result["discrepancies"],
        }
        return self.exporter.export(report, fmt)

    def get_settings(self) -> TroubleshooterSettings:
        stored = self.options.get(TROUBLESHOOTER_SETTINGS_OPTION, {}) or {}
        return TroubleshooterSettings(**stored)

    def save_settings(self, values: Any) -> TroubleshooterSettings:
        """Merge the valid subset of ``values`` into the stored settings."""
        merged = {**self.get_settings().model_dump(), **validate_settings(values)}
        self.options.set(TROUBLESHOOTER_SETTINGS_OPTION, merged)
        return TroubleshooterSettings(**merged)
