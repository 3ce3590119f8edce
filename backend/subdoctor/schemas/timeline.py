"""Schemas for the merged subscription timeline."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    INFO = "info"


class TimelineEvent(BaseModel):
    """A single event in the subscription timeline."""

    timestamp: datetime
    source: str  # subscription, subscription_note, order, order_note, scheduled_job, log, gateway
    event_type: str
    description: str
    status: EventStatus = EventStatus.INFO
    expected: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"use_enum_values": True}


class DateRange(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class TimelineSummary(BaseModel):
    total_events: int = 0
    event_types: dict[str, int] = Field(default_factory=dict)
    sources: dict[str, int] = Field(default_factory=dict)
    statuses: dict[str, int] = Field(default_factory=dict)
    date_range: DateRange = Field(default_factory=DateRange)


class TimelineGap(BaseModel):
    type: str
    description: str
    severity: str
    expected: int
    actual: int


class Timeline(BaseModel):
    """Merged timeline, its summary and the detected gaps."""

    events: list[TimelineEvent] = Field(default_factory=list)
    summary: TimelineSummary = Field(default_factory=TimelineSummary)
    gaps: list[TimelineGap] = Field(default_factory=list)
    # Number of events contributed by each collection step
    source_counts: dict[str, int] = Field(default_factory=dict)


class TimelineFilters(BaseModel):
    event_type: str | None = None
    status: str | None = None
    source: str | None = None
    date_range: DateRange | None = None
