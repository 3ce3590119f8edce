"""Engine and session factory shared by the platform reader and the issue log."""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from subdoctor.core.config import settings


def _connect_args(dsn: str) -> dict[str, Any]:
    # Request handlers run in a threadpool
    return {"check_same_thread": False} if dsn.startswith("sqlite") else {}


engine = create_engine(
    settings.APP_DATABASE_DSN, connect_args=_connect_args(settings.APP_DATABASE_DSN)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """One session per request, closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
