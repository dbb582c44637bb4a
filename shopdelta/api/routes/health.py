"""Health check endpoint. No authentication."""

from fastapi import APIRouter

from shopdelta import __version__
from shopdelta.platform.config import get_app_config

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    config = get_app_config()
    return {
        "status": "ok",
        "version": __version__,
        "webhooks_configured": config.webhooks_configured,
    }
