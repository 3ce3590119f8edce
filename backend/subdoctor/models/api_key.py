from sqlalchemy import JSON, Column, DateTime, String, func

from subdoctor.core.database import Base
from subdoctor.models.shared import UUIDType, generate_uuid


class ApiKey(Base):
    """An operator credential and the capabilities it grants."""

    __tablename__ = "api_keys"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    key_hash = Column(String(255), nullable=False, unique=True, index=True)
    key_prefix = Column(String(16), nullable=False)
    name = Column(String(255), nullable=True)
    capabilities = Column(JSON, nullable=False, default=list)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(50), nullable=False, default="active")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
