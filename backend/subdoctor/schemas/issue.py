from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class IssueResponse(BaseModel):
    id: int
    subscription_id: int | None = None
    issue_type: str
    issue_category: str
    severity: str
    details: dict[str, Any] = Field(default_factory=dict)
    detected_at: datetime | None = None
    resolved_at: datetime | None = None

    model_config = {"from_attributes": True}


class CommonIssue(BaseModel):
    """Aggregated count of one issue type/category/severity combination."""

    issue_type: str
    issue_category: str
    severity: str
    count: int


class IssueExportFilters(BaseModel):
    severity: str | None = None
    category: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
