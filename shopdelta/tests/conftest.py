"""
Root test configuration and fixtures.

Provides database fixtures, model factories and an API client wired to
the in-memory test database.
"""

import os
import time
from datetime import datetime, timezone
from typing import Generator

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

from shopdelta.db_base import Base
import shopdelta.models  # noqa: F401 - required to register all model metadata
from shopdelta.models import Shop, ShopStatus, ShopSession, WrappedShare
from shopdelta.platform.config import reset_app_config
from shopdelta.services.share_tokens import generate_share_code

TEST_API_SECRET = "test_webhook_secret"
TEST_API_KEY = "test_api_key"


@pytest.fixture(autouse=True)
def app_env(monkeypatch):
    """Pin the Shopify credentials and reload the cached config for every test."""
    monkeypatch.setenv("SHOPIFY_API_SECRET", TEST_API_SECRET)
    monkeypatch.setenv("SHOPIFY_API_KEY", TEST_API_KEY)
    monkeypatch.setenv("SHARE_VIEW_IP_SALT", "test-salt")
    monkeypatch.delenv("CREDENTIAL_STORE_BACKEND", raising=False)
    reset_app_config()
    yield
    reset_app_config()


@pytest.fixture(scope="function")
def db_engine():
    """
    SQLite in-memory engine, rebuilt for each test.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Database session bound to the per-test engine."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()

    yield session

    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_shop(db_session):
    """Factory fixture that inserts a Shop row."""
    def _make(shop_domain: str = "test-store.myshopify.com", status: str = ShopStatus.ACTIVE) -> Shop:
        shop = Shop(
            shop_domain=shop_domain,
            shop_name=shop_domain.replace(".myshopify.com", ""),
            status=status,
            installed_at=datetime.now(timezone.utc),
        )
        db_session.add(shop)
        db_session.commit()
        return shop
    return _make


@pytest.fixture
def make_shop_session(db_session):
    """Factory fixture that inserts a stored Shopify session."""
    def _make(shop_domain: str, session_id: str = None, is_online: bool = False) -> ShopSession:
        record = ShopSession(
            id=session_id or f"offline_{shop_domain}",
            shop_domain=shop_domain,
            is_online=is_online,
            scope="read_orders,read_products",
            access_token="shpat_test_token",
        )
        db_session.add(record)
        db_session.commit()
        return record
    return _make


@pytest.fixture
def make_share(db_session):
    """Factory fixture that inserts a WrappedShare for a shop."""
    def _make(shop: Shop, **overrides) -> WrappedShare:
        fields = dict(
            shop_id=shop.id,
            share_code=generate_share_code(),
            title="2025 Wrapped",
            wrap_mode="year",
            year_a=2024,
            year_b=2025,
            slides_data=[{"type": "intro"}],
        )
        fields.update(overrides)
        share = WrappedShare(**fields)
        db_session.add(share)
        db_session.commit()
        return share
    return _make


# =============================================================================
# API client
# =============================================================================

def make_session_token(
    shop_domain: str,
    secret: str = TEST_API_SECRET,
    audience: str = TEST_API_KEY,
    expires_in: int = 60,
) -> str:
    """Build a Shopify session token (HS256 JWT) for the embedded admin."""
    now = int(time.time())
    payload = {
        "iss": f"https://{shop_domain}/admin",
        "dest": f"https://{shop_domain}",
        "aud": audience,
        "sub": "42",
        "exp": now + expires_in,
        "nbf": now - 5,
        "iat": now,
        "jti": "test-jti",
        "sid": "test-sid",
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def session_token():
    """Factory fixture for Shopify session tokens."""
    return make_session_token


@pytest.fixture
def auth_headers():
    """Factory fixture for Authorization headers carrying a session token."""
    def _make(shop_domain: str = "test-store.myshopify.com") -> dict:
        return {"Authorization": f"Bearer {make_session_token(shop_domain)}"}
    return _make


@pytest.fixture
def client(db_session):
    """TestClient with database dependencies pointed at the test session."""
    from fastapi.testclient import TestClient

    from main import app
    from shopdelta.database.session import get_db_session, get_optional_db_session

    def _override():
        yield db_session

    app.dependency_overrides[get_db_session] = _override
    app.dependency_overrides[get_optional_db_session] = _override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "slow: mark test as slow-running")
