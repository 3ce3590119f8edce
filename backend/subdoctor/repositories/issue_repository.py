from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from subdoctor.models.issue import Issue


class IssueRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        issue_type: str,
        issue_category: str,
        severity: str,
        details: dict[str, Any],
        subscription_id: int | None = None,
        detected_at: datetime | None = None,
    ) -> Issue:
        issue = Issue(
            subscription_id=subscription_id,
            issue_type=issue_type,
            issue_category=issue_category,
            severity=severity,
            details=details,
        )
        if detected_at is not None:
            issue.detected_at = detected_at
        self.db.add(issue)
        self.db.commit()
        self.db.refresh(issue)
        return issue

    def get_by_id(self, issue_id: int) -> Issue | None:
        return self.db.query(Issue).filter(Issue.id == issue_id).first()

    def list_recent(self, limit: int = 50) -> list[Issue]:
        return (
            self.db.query(Issue)
            .order_by(Issue.detected_at.desc(), Issue.id.desc())
            .limit(limit)
            .all()
        )

    def list_for_subscription(self, subscription_id: int) -> list[Issue]:
        return (
            self.db.query(Issue)
            .filter(Issue.subscription_id == subscription_id)
            .order_by(Issue.detected_at.desc(), Issue.id.desc())
            .all()
        )

    def count_grouped_since(self, cutoff: datetime) -> list[tuple[str, str, str, int]]:
        """(issue_type, issue_category, severity, count) since ``cutoff``, most frequent first."""
        count = func.count(Issue.id).label("count")
        rows = (
            self.db.query(Issue.issue_type, Issue.issue_category, Issue.severity, count)
            .filter(Issue.detected_at >= cutoff)
            .group_by(Issue.issue_type, Issue.issue_category, Issue.severity)
            .order_by(count.desc(), Issue.issue_type)
            .all()
        )
        return [(r[0], r[1], r[2], int(r[3])) for r in rows]

    def filtered(
        self,
        severity: str | None = None,
        category: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[Issue]:
        query = self.db.query(Issue)
        if severity:
            query = query.filter(Issue.severity == severity)
        if category:
            query = query.filter(Issue.issue_category == category)
        if date_from:
            query = query.filter(Issue.detected_at >= date_from)
        if date_to:
            query = query.filter(Issue.detected_at <= date_to)
        return query.order_by(Issue.detected_at.desc(), Issue.id.desc()).all()

    def mark_resolved(self, issue: Issue, resolved_at: datetime) -> Issue:
        issue.resolved_at = resolved_at  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(issue)
        return issue

    def delete_resolved_before(self, cutoff: datetime) -> int:
        """Delete resolved issues detected before ``cutoff``; open issues are kept."""
        deleted = (
            self.db.query(Issue)
            .filter(Issue.detected_at < cutoff, Issue.resolved_at.isnot(None))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return int(deleted)
