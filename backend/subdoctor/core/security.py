"""Input validation and output escaping for troubleshooter requests."""

import html
import re
from datetime import datetime
from typing import Any

from subdoctor.core.errors import UnsupportedFormatError, ValidationError
from subdoctor.models.shared import ensure_utc
from subdoctor.schemas.timeline import DateRange, EventStatus, TimelineFilters

EXPORT_FORMATS = ("csv", "html", "json", "pdf")
ISSUE_EXPORT_FORMATS = ("csv", "html", "json")

TIMELINE_SOURCES = frozenset(
    {
        "subscription",
        "subscription_note",
        "order",
        "order_note",
        "scheduled_job",
        "log",
        "gateway",
    }
)
SEVERITIES = ("critical", "high", "medium", "warning", "info")
SCAN_FREQUENCIES = ("hourly", "daily", "weekly")

SEARCH_TERM_MIN_LENGTH = 2
SEARCH_TERM_MAX_LENGTH = 100

# Subscription ids are signed 64-bit integers in the platform schema
MAX_SUBSCRIPTION_ID = 2**63 - 1

_UNSAFE_SEARCH_CHARS = re.compile(r"[<>\"']")
_EVENT_TYPE_PATTERN = re.compile(r"^[a-z][a-z_]{0,49}$")
_ASCII_DIGITS = re.compile(r"[0-9]+")


def parse_numeric_id(term: str) -> int | None:
    """Return ``term`` as an id when it is ASCII digits within the id range."""
    if not _ASCII_DIGITS.fullmatch(term):
        return None
    if len(term.lstrip("0")) > len(str(MAX_SUBSCRIPTION_ID)):
        return None
    value = int(term)
    return value if value <= MAX_SUBSCRIPTION_ID else None


def validate_subscription_id(value: Any) -> int:
    """Coerce ``value`` to a positive integer subscription id."""
    if isinstance(value, bool):
        raise ValidationError("Invalid subscription ID provided.")
    try:
        subscription_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid subscription ID provided.") from None
    if not 0 < subscription_id <= MAX_SUBSCRIPTION_ID:
        raise ValidationError("Invalid subscription ID provided.")
    return subscription_id


def validate_search_term(value: Any) -> str:
    """Strip markup characters and enforce length bounds.

    Purely numeric terms are id lookups and are accepted at any length.
    """
    term = _UNSAFE_SEARCH_CHARS.sub("", str(value or "")).strip()
    if _ASCII_DIGITS.fullmatch(term):
        return term
    if len(term) < SEARCH_TERM_MIN_LENGTH:
        raise ValidationError(
            f"Search term must be at least {SEARCH_TERM_MIN_LENGTH} characters long."
        )
    if len(term) > SEARCH_TERM_MAX_LENGTH:
        raise ValidationError("Search term is too long.")
    return term


def validate_export_format(value: Any, allowed: tuple[str, ...] = EXPORT_FORMATS) -> str:
    fmt = str(value or "").strip().lower()
    if fmt not in allowed:
        raise UnsupportedFormatError("Invalid export format specified.")
    return fmt


def _parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(str(value).strip()))
    except ValueError:
        return None


def validate_filters(filters: Any) -> TimelineFilters:
    """Keep only recognised timeline filters with acceptable values."""
    if not isinstance(filters, dict):
        return TimelineFilters()

    event_type = filters.get("event_type")
    if not (isinstance(event_type, str) and _EVENT_TYPE_PATTERN.match(event_type)):
        event_type = None

    status = filters.get("status")
    if status not in {s.value for s in EventStatus}:
        status = None

    source = filters.get("source")
    if source not in TIMELINE_SOURCES:
        source = None

    date_range = None
    raw_range = filters.get("date_range")
    if isinstance(raw_range, dict):
        start = _parse_date(raw_range["start"]) if raw_range.get("start") else None
        end = _parse_date(raw_range["end"]) if raw_range.get("end") else None
        if start or end:
            date_range = DateRange(start=start, end=end)

    return TimelineFilters(
        event_type=event_type, status=status, source=source, date_range=date_range
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def validate_settings(values: Any) -> dict[str, Any]:
    """Return the subset of ``values`` that are known settings with valid values."""
    if not isinstance(values, dict):
        return {}

    validated: dict[str, Any] = {}
    for key in ("enable_logging", "auto_scan_enabled"):
        if key in values:
            validated[key] = _as_bool(values[key])

    if "log_retention_days" in values:
        try:
            days = int(values["log_retention_days"])
        except (TypeError, ValueError):
            days = 0
        if 1 <= days <= 365:
            validated["log_retention_days"] = days

    frequency = values.get("scan_frequency")
    if isinstance(frequency, str) and frequency.strip() in SCAN_FREQUENCIES:
        validated["scan_frequency"] = frequency.strip()

    return validated


def validate_severity(value: Any) -> str | None:
    return value if value in SEVERITIES else None


def escape_html(data: Any) -> Any:
    """Recursively HTML-escape every string in ``data``; keys are left intact."""
    if isinstance(data, str):
        return html.escape(data)
    if isinstance(data, dict):
        return {key: escape_html(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [escape_html(item) for item in data]
    return data
