"""Database configuration and session management"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
from mango.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite shares a single connection so the database survives
    across sessions; file-backed SQLite keeps the driver's default pool and
    everything else gets a sized connection pool.
    """
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
    return create_engine(
        url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=echo,
    )


engine = build_engine(settings.get_database_url(), echo=settings.DEBUG)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

# Import models after Base is defined so metadata is populated.
from mango import models  # noqa: E402,F401


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize database according to configured strategy.

    DB_INIT_MODE:
      - create_all: create missing tables from model metadata
      - off: skip initialization (schema managed externally)
    """
    mode = settings.DB_INIT_MODE.lower().strip()
    if mode == "off":
        logger.info("DB initialization skipped (DB_INIT_MODE=off)")
        return

    if mode == "create_all":
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured via create_all")
        return

    raise RuntimeError(f"Unknown DB_INIT_MODE: {settings.DB_INIT_MODE}")
