"""
FastAPI application entry point for the ShopDelta backend.

Serves Shopify lifecycle and compliance webhooks, the embedded admin's
wrap share-link API, and the public share viewer.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopdelta import __version__
from shopdelta.api.routes import health
from shopdelta.api.routes import webhooks_shopify
from shopdelta.api.routes import wrapped_shares
from shopdelta.api.routes import public_share
from shopdelta.platform.config import get_app_config
from shopdelta.platform.secrets import SecretRedactingFilter
from shopdelta.platform.security_headers import SecurityHeadersConfig, SecurityHeadersMiddleware

# Configure structured logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting ShopDelta API", extra={"version": __version__})
    config = get_app_config()

    app.state.webhooks_configured = config.webhooks_configured
    if not config.webhooks_configured:
        logger.error(
            "SHOPIFY_API_SECRET is not set. Every webhook will be rejected with 401 "
            "and Shopify will retry until the secret is configured."
        )
    if not config.shopify_api_key:
        logger.warning("SHOPIFY_API_KEY is not set. Share-link API will return 503.")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error(
            "DATABASE_URL is not set. Webhook cleanup steps will fail and "
            "share endpoints will return 503."
        )
        app.state.database_configured = False
    else:
        # Mask credentials for safe logging
        masked = database_url.split("@")[-1] if "@" in database_url else "(local)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        app.state.database_configured = True

    logger.info("Credential store selected", extra={
        "backend": config.credential_store_backend,
    })

    yield

    # Shutdown
    logger.info("Shutting down ShopDelta API")


# Create FastAPI app
app = FastAPI(
    title="ShopDelta API",
    description="Shopify webhook compliance pipeline and wrap report sharing",
    version=__version__,
    lifespan=lifespan
)

# Include Shopify Admin in CORS origins for embedding
cors_origins = [o for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o]
if "https://admin.shopify.com" not in cors_origins:
    cors_origins.append("https://admin.shopify.com")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    SecurityHeadersMiddleware,
    config=SecurityHeadersConfig(production=os.getenv("ENV") == "production"),
)

# Include health route (bypasses authentication)
app.include_router(health.router)

# Webhooks authenticate by HMAC, not session token
app.include_router(webhooks_shopify.router)

# Embedded admin routes (Shopify session token)
app.include_router(wrapped_shares.router)

# Public share viewer
app.include_router(public_share.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
