# API routes
from shopdelta.api.routes import health
from shopdelta.api.routes import webhooks_shopify
from shopdelta.api.routes import wrapped_shares
from shopdelta.api.routes import public_share

__all__ = ["health", "webhooks_shopify", "wrapped_shares", "public_share"]
