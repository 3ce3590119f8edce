from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    WARNING = "warning"
    INFO = "info"


SEVERITY_RANK: dict[str, int] = {
    Severity.CRITICAL.value: 0,
    Severity.HIGH.value: 1,
    Severity.MEDIUM.value: 2,
    Severity.WARNING.value: 3,
    Severity.INFO.value: 4,
}


class Finding(BaseModel):
    """A detected deviation between expected and observed behavior."""

    type: str
    category: str
    severity: Severity
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    recommendation: str = ""

    model_config = {"use_enum_values": True}

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[str(self.severity)]


def sort_by_severity(findings: list[Finding]) -> list[Finding]:
    """Order findings critical first; equal severities keep discovery order."""
    return sorted(findings, key=lambda f: f.rank)
