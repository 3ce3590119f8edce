from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text

from subdoctor.core.database import Base


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledJob(Base):
    """A deferred task managed by the platform scheduler."""

    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True)
    hook = Column(String(255), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    # Serialized argument payload; matched as free text
    args = Column(Text, nullable=False, default="")
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    group_slug = Column(String(255), nullable=True)
