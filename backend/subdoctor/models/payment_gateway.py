from sqlalchemy import JSON, Boolean, Column, String, Text

from subdoctor.core.database import Base


class PaymentGateway(Base):
    """A payment gateway registered on the platform and its declared features."""

    __tablename__ = "payment_gateways"

    id = Column(String(100), primary_key=True)
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    supports = Column(JSON, nullable=False, default=list)
    webhook_urls = Column(JSON, nullable=False, default=list)
