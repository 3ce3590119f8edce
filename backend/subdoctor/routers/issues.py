from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from subdoctor.core.database import get_db
from subdoctor.core.security import validate_severity, validate_subscription_id
from subdoctor.models.api_key import ApiKey
from subdoctor.models.shared import ensure_utc
from subdoctor.routers.troubleshooter import envelope, rate_limited
from subdoctor.schemas.analysis import Envelope
from subdoctor.schemas.issue import IssueExportFilters, IssueResponse
from subdoctor.services.diagnostics import DiagnosticsService
from subdoctor.services.issue_logger import IssueLogger
from subdoctor.services.report_exporter import MIME_TYPES

router = APIRouter()


@router.get(
    "/recent",
    response_model=Envelope,
    summary="Most recently detected issues",
)
async def recent_issues(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("issues")),
) -> dict[str, Any]:
    issues = IssueLogger(db).get_recent_issues(limit)
    return envelope([IssueResponse.model_validate(i) for i in issues])


@router.get(
    "/common",
    response_model=Envelope,
    summary="Issue counts grouped by type, category and severity",
)
async def common_issues(
    days: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("issues")),
) -> dict[str, Any]:
    return envelope(IssueLogger(db).get_common_issues_report(days))


@router.get(
    "/subscription/{subscription_id}",
    response_model=Envelope,
    summary="Every issue recorded for one subscription",
)
async def subscription_issues(
    subscription_id: str,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("issues")),
) -> dict[str, Any]:
    issues = IssueLogger(db).get_subscription_issues(validate_subscription_id(subscription_id))
    return envelope([IssueResponse.model_validate(i) for i in issues])


@router.post(
    "/{issue_id}/resolve",
    response_model=Envelope,
    summary="Mark an issue as resolved",
)
async def resolve_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("resolve_issue")),
) -> dict[str, Any]:
    issue = IssueLogger(db).mark_issue_resolved(issue_id)
    return envelope(IssueResponse.model_validate(issue))


@router.post(
    "/cleanup",
    response_model=Envelope,
    summary="Delete resolved issues older than the retention period",
)
async def cleanup_issues(
    days: int | None = Query(default=None, ge=1, le=3650),
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("cleanup_issues")),
) -> dict[str, Any]:
    retention = days or DiagnosticsService(db).get_settings().log_retention_days
    deleted = IssueLogger(db).clean_old_logs(retention)
    return envelope({"deleted": deleted, "days": retention})


@router.get(
    "/export",
    summary="Download the filtered issue log as csv, json or html",
    responses={200: {"description": "The issue report"}},
)
async def export_issues(
    format: str = Query(default="csv"),
    severity: str | None = Query(default=None),
    category: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("export_issues")),
) -> Response:
    filters = IssueExportFilters(
        severity=validate_severity(severity),
        category=category or None,
        date_from=ensure_utc(date_from),
        date_to=ensure_utc(date_to),
    )
    content = IssueLogger(db).export_issues_report(format, filters)
    fmt = format.strip().lower()
    return Response(
        content=content,
        media_type=MIME_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="issues-report.{fmt}"'},
    )
