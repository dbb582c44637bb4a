"""
Credential store capability for Shopify session records.

The webhook dispatcher depends on the CredentialStore contract, not on a
concrete backend. Both implementations scope every operation by shop
domain: the store is shared by all shops, and an unscoped delete would
log every merchant out.

Backends:
- DatabaseCredentialStore: shop_sessions table (default)
- RedisCredentialStore: Redis keys indexed per shop (CREDENTIAL_STORE_BACKEND=redis)
"""

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopdelta.models.shop_session import ShopSession
from shopdelta.platform.config import (
    AppConfig,
    CREDENTIAL_BACKEND_DATABASE,
    CREDENTIAL_BACKEND_REDIS,
    get_app_config,
)

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """The credential store could not complete an operation."""


class CredentialStore(ABC):
    """Per-shop session credential storage."""

    @abstractmethod
    def delete_tenant_sessions(self, shop_domain: str) -> int:
        """
        Delete every session belonging to one shop.

        Deleting an already-empty set is a success and returns 0.

        Returns:
            Number of sessions deleted

        Raises:
            CredentialStoreError: Backend unreachable or write failed
        """

    @abstractmethod
    def count_tenant_sessions(self, shop_domain: str) -> int:
        """
        Count sessions still stored for one shop.

        Raises:
            CredentialStoreError: Backend unreachable or read failed
        """


def _require_domain(shop_domain: str) -> None:
    if not shop_domain:
        raise ValueError("shop_domain is required for credential operations")


class DatabaseCredentialStore(CredentialStore):
    """Sessions stored in the shop_sessions table."""

    def __init__(self, db: Session):
        self.db = db

    def delete_tenant_sessions(self, shop_domain: str) -> int:
        _require_domain(shop_domain)
        try:
            deleted = (
                self.db.query(ShopSession)
                .filter(ShopSession.shop_domain == shop_domain)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CredentialStoreError(f"Failed to delete sessions: {e}") from e

        logger.info("Deleted shop sessions", extra={
            "shop_domain": shop_domain,
            "sessions_deleted": deleted,
        })
        return deleted

    def count_tenant_sessions(self, shop_domain: str) -> int:
        _require_domain(shop_domain)
        try:
            return (
                self.db.query(ShopSession)
                .filter(ShopSession.shop_domain == shop_domain)
                .count()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CredentialStoreError(f"Failed to count sessions: {e}") from e


class RedisCredentialStore(CredentialStore):
    """
    Sessions stored in Redis.

    Layout:
        {prefix}:{session_id}           serialized session
        {prefix}:shop:{shop_domain}     set of session ids for the shop

    Deletion walks the per-shop index; it never pattern-scans the keyspace.
    """

    def __init__(self, client: "redis.Redis", prefix: str = "shopdelta_session"):
        self.client = client
        self.prefix = prefix

    def _session_key(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    def _shop_index_key(self, shop_domain: str) -> str:
        return f"{self.prefix}:shop:{shop_domain}"

    def delete_tenant_sessions(self, shop_domain: str) -> int:
        _require_domain(shop_domain)
        index_key = self._shop_index_key(shop_domain)
        try:
            session_ids = self.client.smembers(index_key)
            pipe = self.client.pipeline()
            for session_id in session_ids:
                pipe.delete(self._session_key(session_id))
            pipe.delete(index_key)
            results = pipe.execute()
        except redis.RedisError as e:
            raise CredentialStoreError(f"Failed to delete sessions: {e}") from e

        # Last result is the index key itself
        deleted = sum(int(r) for r in results[:-1])
        logger.info("Deleted shop sessions", extra={
            "shop_domain": shop_domain,
            "sessions_deleted": deleted,
            "backend": "redis",
        })
        return deleted

    def count_tenant_sessions(self, shop_domain: str) -> int:
        _require_domain(shop_domain)
        try:
            return int(self.client.scard(self._shop_index_key(shop_domain)))
        except redis.RedisError as e:
            raise CredentialStoreError(f"Failed to count sessions: {e}") from e


_redis_client: Optional["redis.Redis"] = None
_redis_lock = Lock()


def _get_redis_client(config: AppConfig) -> "redis.Redis":
    """Get the shared Redis client (lazy initialization)."""
    global _redis_client
    if _redis_client is None:
        with _redis_lock:
            if _redis_client is None:
                if not config.redis_url:
                    raise ValueError("REDIS_URL is required when CREDENTIAL_STORE_BACKEND=redis")
                _redis_client = redis.from_url(config.redis_url, decode_responses=True)
    return _redis_client


def get_credential_store(
    db: Optional[Session],
    config: Optional[AppConfig] = None,
) -> Optional[CredentialStore]:
    """
    Build the configured credential store.

    Returns None when the selected backend is unknown or not available
    (database backend without a session), so callers can record the
    failure instead of crashing.
    """
    config = config or get_app_config()

    if config.credential_store_backend == CREDENTIAL_BACKEND_REDIS:
        try:
            return RedisCredentialStore(
                _get_redis_client(config),
                prefix=config.redis_session_prefix,
            )
        except ValueError as e:
            logger.error("Redis credential store not configured", extra={"error": str(e)})
            return None

    if config.credential_store_backend != CREDENTIAL_BACKEND_DATABASE:
        logger.error("Unknown credential store backend", extra={
            "credential_store_backend": config.credential_store_backend,
        })
        return None

    if db is None:
        return None
    return DatabaseCredentialStore(db)
