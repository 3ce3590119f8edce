from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AnalyzeRequest(BaseModel):
    subscription_id: int | str = Field(..., description="Subscription to diagnose")


class SearchRequest(BaseModel):
    search_term: str = Field(..., description="Subscription id or part of a billing email")


class TimelineRequest(BaseModel):
    subscription_id: int | str
    filters: dict[str, Any] = Field(default_factory=dict)


class ExportRequest(BaseModel):
    subscription_id: int | str
    format: str = Field(..., description="One of csv, html, json, pdf")


class SettingsUpdate(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


class SearchMatch(BaseModel):
    """One subscription matching a search term."""

    id: int
    title: str
    status: str
    customer: str
    email: str | None = None


class AnalysisSummary(BaseModel):
    total_findings: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    warning: int = 0
    info: int = 0
    timeline_events: int = 0
    health: str = Field(..., description="healthy, attention or critical")


class Envelope(BaseModel):
    """Uniform response body for every troubleshooter action."""

    success: bool
    data: Any = None


class TokenResponse(BaseModel):
    token: str
    expires_at: datetime


class ExportedReport(BaseModel):
    format: str
    filename: str
    content: bytes
    mime_type: str
