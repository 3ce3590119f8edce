from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Subscription Doctor"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/subdoctor.db"

    # Signs the per-session anti-forgery tokens
    APP_SECRET_KEY: str = "change-me"
    ANTI_FORGERY_TOKEN_TTL_HOURS: int = 12

    # Capability an operator key needs for every troubleshooter action
    REQUIRED_CAPABILITY: str = "manage_commerce"

    # Rate limiting (per operator and action)
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    SEARCH_RESULT_LIMIT: int = 10

    # Platform log directory scanned for timeline events; empty disables the scan
    PLATFORM_LOG_DIR: str = ""

    # Optional plain-text issue log
    ISSUE_LOG_FILE: str = ""

    # Critical issue alerts
    ALERT_EMAIL: str = ""
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "doctor@example.com"
    SMTP_FROM_NAME: str = "Subscription Doctor"
    SMTP_USE_TLS: bool = True

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def version(self) -> str:
        return "1.0.0"


settings = Settings()
