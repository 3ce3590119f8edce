from subdoctor.schemas.analysis import (
    AnalysisSummary,
    AnalyzeRequest,
    Envelope,
    ExportedReport,
    ExportRequest,
    SearchMatch,
    SearchRequest,
    SettingsUpdate,
    TimelineRequest,
    TokenResponse,
)
from subdoctor.schemas.discrepancy import SEVERITY_RANK, Finding, Severity, sort_by_severity
from subdoctor.schemas.issue import CommonIssue, IssueExportFilters, IssueResponse
from subdoctor.schemas.snapshot import PlatformConfig, SubscriptionSnapshot
from subdoctor.schemas.timeline import Timeline, TimelineEvent, TimelineFilters

__all__ = [
    "SEVERITY_RANK",
    "AnalysisSummary",
    "AnalyzeRequest",
    "CommonIssue",
    "Envelope",
    "ExportRequest",
    "ExportedReport",
    "Finding",
    "IssueExportFilters",
    "IssueResponse",
    "PlatformConfig",
    "SearchMatch",
    "SearchRequest",
    "SettingsUpdate",
    "Severity",
    "SubscriptionSnapshot",
    "Timeline",
    "TimelineEvent",
    "TimelineFilters",
    "TokenResponse",
    "sort_by_severity",
]
