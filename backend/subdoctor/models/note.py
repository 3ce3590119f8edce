from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from subdoctor.core.database import Base


class Note(Base):
    """A note attached to a subscription or to one of its orders."""

    __tablename__ = "notes"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, nullable=True, index=True)
    order_id = Column(Integer, nullable=True, index=True)
    content = Column(Text, nullable=False)
    note_type = Column(String(20), nullable=False, default="internal")
    customer_note = Column(Boolean, nullable=False, default=False)
    date_created = Column(DateTime(timezone=True), server_default=func.now())
