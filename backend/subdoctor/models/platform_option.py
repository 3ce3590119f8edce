from sqlalchemy import JSON, Column, String

from subdoctor.core.database import Base

EMAIL_SETTINGS_OPTION = "email_settings"
RETRY_SETTINGS_OPTION = "payment_retry_settings"
TROUBLESHOOTER_SETTINGS_OPTION = "subdoctor_settings"


class PlatformOption(Base):
    """A named platform-wide setting holding a JSON value."""

    __tablename__ = "platform_options"

    name = Column(String(191), primary_key=True)
    value = Column(JSON, nullable=True)
