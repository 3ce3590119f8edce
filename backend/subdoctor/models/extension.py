from sqlalchemy import Boolean, Column, Integer, String

from subdoctor.core.database import Base


class Extension(Base):
    """A plugin installed on the platform, identified by its path slug."""

    __tablename__ = "extensions"

    id = Column(Integer, primary_key=True)
    slug = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, default="")
    active = Column(Boolean, nullable=False, default=True)
