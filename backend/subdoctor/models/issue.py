"""Issue model for the persisted log of detected discrepancies."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from subdoctor.core.database import Base


class Issue(Base):
    """Issue model - one detected finding or security event."""

    __tablename__ = "troubleshooter_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Null for security events that are not tied to a subscription
    subscription_id = Column(Integer, nullable=True, index=True)
    issue_type = Column(String(50), nullable=False, index=True)
    issue_category = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False, index=True)
    details = Column(JSON, nullable=False, default=dict)
    detected_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
