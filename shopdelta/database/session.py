"""
Engine and session wiring for the ShopDelta database.

Share-link routes depend on get_db_session and fail with 503 when
DATABASE_URL is missing. Webhook routes depend on get_optional_db_session,
which yields None so cleanup steps can record the failure and Shopify still
gets its 200.
"""

import os
import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

# Module-level engine singleton
_engine = None
_SessionLocal = None


def normalize_database_url(database_url: str) -> str:
    """Convert Render/Heroku style postgres:// URLs to postgresql://."""
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _get_database_url() -> str:
    """Get and normalize the database URL from environment."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")
    return normalize_database_url(database_url)


def get_engine():
    """
    Get or create the database engine singleton.

    PostgreSQL gets a bounded pool with pre-ping; SQLite (local development)
    uses the driver defaults.
    """
    global _engine
    if _engine is None:
        try:
            database_url = _get_database_url()
        except ValueError as e:
            logger.error("Failed to create database engine", extra={"error": str(e)})
            raise

        if database_url.startswith("sqlite"):
            _engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_engine(
                database_url,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Verify connection health
                pool_recycle=1800,   # Recycle connections after 30 minutes
            )
        logger.info("Database engine created")
    return _engine


def get_session_factory() -> sessionmaker:
    """Lazily bind a sessionmaker to the shared engine."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine()
        )
    return _SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """
    Request-scoped session for the share-link routes.

    Raises HTTP 503 when DATABASE_URL is not set.
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_optional_db_session() -> Generator[Optional[Session], None, None]:
    """
    Variant of get_db_session that yields None instead of failing.

    Used by webhook routes, which must answer Shopify even when the
    database is not configured.
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError:
        logger.error("Database not configured for webhook processing")
        yield None
        return

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
