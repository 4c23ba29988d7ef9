"""
SQLAlchemy engine + session factory.
Import *get_db* as a FastAPI dependency in route handlers.
"""
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings


def _engine_options(url: str) -> dict:
    """Pool options for *url*. SQLite (local dev) gets the driver defaults."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        # Health-check connections before handing them to the app
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    # SQL echo follows LOG_LEVEL rather than APP_ENV
    echo=settings.LOG_LEVEL == "DEBUG",
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Ranked rows are returned to the API after commit
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session for one request.

    Rank mutations commit inside the service layer; anything left
    uncommitted when the request ends is rolled back by close().
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
