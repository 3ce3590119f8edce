import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, Response
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from subdoctor.core.auth import get_current_operator, require_anti_forgery_token
from subdoctor.core.config import settings
from subdoctor.core.database import get_db
from subdoctor.core.errors import RateLimitError
from subdoctor.core.rate_limiter import RateLimiter, rate_limit_key
from subdoctor.core.security import escape_html
from subdoctor.models.api_key import ApiKey
from subdoctor.schemas.analysis import (
    AnalyzeRequest,
    Envelope,
    ExportRequest,
    SearchRequest,
    SettingsUpdate,
    TimelineRequest,
    TokenResponse,
)
from subdoctor.services.anti_forgery import AntiForgeryService
from subdoctor.services.diagnostics import DiagnosticsService
from subdoctor.services.issue_logger import IssueLogger

logger = logging.getLogger(__name__)

router = APIRouter()

# Module-level rate limiter shared by every troubleshooter action
troubleshooter_rate_limiter = RateLimiter(
    max_requests=settings.RATE_LIMIT_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)


def rate_limited(
    action: str, authorize: Callable[..., Any] = require_anti_forgery_token
) -> Callable[..., ApiKey]:
    """Dependency enforcing the per-operator limit for one action."""

    def _check_rate_limit(operator: ApiKey = Depends(authorize)) -> ApiKey:
        if not troubleshooter_rate_limiter.is_allowed(rate_limit_key(action, operator.id)):
            raise RateLimitError("Rate limit exceeded. Please wait before making another request.")
        return operator

    return _check_rate_limit


def envelope(data: Any) -> dict[str, Any]:
    """Successful response body; every string in ``data`` is HTML-escaped."""
    return {"success": True, "data": escape_html(jsonable_encoder(data))}


@router.get(
    "/token",
    response_model=Envelope,
    summary="Issue an anti-forgery token for the calling operator key",
)
async def get_token(
    operator: ApiKey = Depends(rate_limited("token", get_current_operator)),
) -> dict[str, Any]:
    token, expires_at = AntiForgeryService.generate_token(operator.id)
    return envelope(TokenResponse(token=token, expires_at=expires_at))


@router.post(
    "/analyze",
    response_model=Envelope,
    summary="Run the full diagnosis of one subscription",
)
async def analyze_subscription(
    data: AnalyzeRequest,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("analyze")),
) -> dict[str, Any]:
    issue_logger = IssueLogger(db)
    result = DiagnosticsService(db).analyze(data.subscription_id, issue_logger=issue_logger)
    await issue_logger.dispatch_alerts()
    return envelope(result)


@router.post(
    "/search",
    response_model=Envelope,
    summary="Search subscriptions by id or billing email",
)
async def search_subscriptions(
    data: SearchRequest,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("search")),
) -> dict[str, Any]:
    return envelope(DiagnosticsService(db).search(data.search_term))


@router.post(
    "/timeline",
    response_model=Envelope,
    summary="Filtered event timeline of one subscription",
)
async def subscription_timeline(
    data: TimelineRequest,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("timeline")),
) -> dict[str, Any]:
    return envelope(DiagnosticsService(db).timeline(data.subscription_id, data.filters))


@router.post(
    "/export",
    summary="Download the subscription report as csv, html, json or pdf",
    responses={200: {"description": "The report document"}},
)
async def export_report(
    data: ExportRequest,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("export")),
) -> Response:
    report = DiagnosticsService(db).export(data.subscription_id, data.format)
    logger.info("Exported %s for operator %s", report.filename, operator.key_prefix)
    return Response(
        content=report.content,
        media_type=report.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get(
    "/settings",
    response_model=Envelope,
    summary="Current troubleshooter settings",
)
async def get_settings(
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("settings")),
) -> dict[str, Any]:
    return envelope(DiagnosticsService(db).get_settings())


@router.post(
    "/settings",
    response_model=Envelope,
    summary="Update troubleshooter settings; unknown or invalid values are dropped",
)
async def update_settings(
    data: SettingsUpdate,
    db: Session = Depends(get_db),
    operator: ApiKey = Depends(rate_limited("save_settings")),
) -> dict[str, Any]:
    return envelope(DiagnosticsService(db).save_settings(data.settings))
