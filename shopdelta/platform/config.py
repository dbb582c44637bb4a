"""
Application configuration loaded from environment variables.

All settings are read once into a pydantic model and cached. Tests call
reset_app_config() after changing the environment.

Environment:
    SHOPIFY_API_SECRET        Webhook HMAC + session token signing secret
    SHOPIFY_API_KEY           Session token audience
    CREDENTIAL_STORE_BACKEND  "database" (default) or "redis"
    REDIS_URL                 Required when CREDENTIAL_STORE_BACKEND=redis
    REDIS_SESSION_PREFIX      Key prefix for Redis-backed sessions
    SHARE_VIEW_IP_SALT        Salt for hashing share viewer IPs
    ENV                       development | test | production
"""

import os
import logging
from threading import Lock
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CREDENTIAL_BACKEND_DATABASE = "database"
CREDENTIAL_BACKEND_REDIS = "redis"
CREDENTIAL_BACKENDS = (CREDENTIAL_BACKEND_DATABASE, CREDENTIAL_BACKEND_REDIS)


class AppConfig(BaseModel):
    """Runtime configuration for the ShopDelta backend."""
    shopify_api_secret: str = ""
    shopify_api_key: str = ""
    credential_store_backend: str = CREDENTIAL_BACKEND_DATABASE
    redis_url: Optional[str] = None
    redis_session_prefix: str = "shopdelta_session"
    share_view_ip_salt: str = Field(default="shopdelta-share-views", min_length=1)
    share_auth_cookie_max_age: int = 86400
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def webhooks_configured(self) -> bool:
        return bool(self.shopify_api_secret)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            shopify_api_secret=os.getenv("SHOPIFY_API_SECRET", ""),
            shopify_api_key=os.getenv("SHOPIFY_API_KEY", ""),
            credential_store_backend=os.getenv(
                "CREDENTIAL_STORE_BACKEND", CREDENTIAL_BACKEND_DATABASE
            ).lower(),
            redis_url=os.getenv("REDIS_URL") or None,
            redis_session_prefix=os.getenv("REDIS_SESSION_PREFIX", "shopdelta_session"),
            share_view_ip_salt=os.getenv("SHARE_VIEW_IP_SALT") or "shopdelta-share-views",
            environment=os.getenv("ENV", "development"),
        )


_config: Optional[AppConfig] = None
_config_lock = Lock()


def get_app_config() -> AppConfig:
    """Get the cached application config, loading it on first use."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = AppConfig.from_env()
                if _config.credential_store_backend not in CREDENTIAL_BACKENDS:
                    logger.warning("Unknown CREDENTIAL_STORE_BACKEND; session cleanup will fail", extra={
                        "credential_store_backend": _config.credential_store_backend,
                    })
                logger.info("Application config loaded", extra={
                    "environment": _config.environment,
                    "credential_store_backend": _config.credential_store_backend,
                    "webhooks_configured": _config.webhooks_configured,
                })
    return _config


def reset_app_config() -> None:
    """Drop the cached config so the next access re-reads the environment."""
    global _config
    with _config_lock:
        _config = None
