"""Classification of free-text notes, job hooks and log lines into timeline events.

Keyword matching is a heuristic: it can misclassify, which is acceptable for a
diagnostic view but not for anything that changes billing. Sources with
structured event data can supply their own ``EventClassifier``.
"""

from typing import Protocol

from subdoctor.schemas.timeline import EventStatus


class EventClassifier(Protocol):
    def note_event_type(self, content: str) -> str: ...

    def text_status(self, text: str) -> str: ...

    def job_event_type(self, hook: str) -> str: ...

    def job_status(self, status: str) -> str: ...


class KeywordEventClassifier:
    """Default classifier based on case-insensitive substring matches."""

    # First match wins
    NOTE_TYPES: tuple[tuple[str, str], ...] = (
        ("payment", "payment"),
        ("status", "status_change"),
        ("cancelled", "cancellation"),
        ("failed", "payment_failed"),
    )
    JOB_TYPES: tuple[tuple[str, str], ...] = (
        ("payment", "payment"),
        ("renewal", "renewal"),
        ("email", "notification"),
    )
    FAILURE_WORDS = ("failed", "error")
    SUCCESS_WORDS = ("success", "completed")

    def note_event_type(self, content: str) -> str:
        lowered = content.lower()
        for keyword, event_type in self.NOTE_TYPES:
            if keyword in lowered:
                return event_type
        return "note"

    def text_status(self, text: str) -> str:
        lowered = text.lower()
        if any(word in lowered for word in self.FAILURE_WORDS):
            return EventStatus.FAILED.value
        if any(word in lowered for word in self.SUCCESS_WORDS):
            return EventStatus.SUCCESS.value
        return EventStatus.INFO.value

    def job_event_type(self, hook: str) -> str:
        for keyword, event_type in self.JOB_TYPES:
            if keyword in hook:
                return event_type
        return "action"

    def job_status(self, status: str) -> str:
        return {
            "completed": EventStatus.SUCCESS.value,
            "failed": EventStatus.FAILED.value,
            "pending": EventStatus.PENDING.value,
        }.get(status, EventStatus.INFO.value)
