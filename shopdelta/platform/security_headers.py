"""
Security headers middleware for the Shopify embedded admin.

The app is framed by Shopify Admin, so frame-ancestors must allow
admin.shopify.com and the shop's own domain while blocking everything else.
HSTS is only sent in production.
"""

import os
import logging
from typing import Callable, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class SecurityHeadersConfig:
    """
    Security header configuration.

    Frame ancestors can be overridden via EMBED_FRAME_ANCESTORS
    (comma-separated).
    """

    def __init__(self, production: bool = False):
        self.production = production
        self.frame_ancestors = self._get_frame_ancestors()
        self.connect_src = (
            "'self' https://*.myshopify.com https://admin.shopify.com "
            "https://cdn.shopify.com https://*.shopifycloud.com https://*.shopifycdn.com"
        )
        self.script_src = (
            "'self' 'unsafe-inline' 'unsafe-eval' "
            "https://cdn.shopify.com https://*.shopifycloud.com"
        )
        self.style_src = "'self' 'unsafe-inline' https://cdn.shopify.com https://fonts.googleapis.com"
        self.img_src = "'self' data: https://cdn.shopify.com https://*.shopifycdn.com"
        self.font_src = "'self' https://cdn.shopify.com https://fonts.gstatic.com"

    def _get_frame_ancestors(self) -> List[str]:
        env_ancestors = os.getenv("EMBED_FRAME_ANCESTORS")
        if env_ancestors:
            return [a.strip() for a in env_ancestors.split(",") if a.strip()]

        return [
            "https://admin.shopify.com",
            "https://*.myshopify.com",
        ]

    def build_csp_header(self) -> str:
        ancestors = " ".join(self.frame_ancestors)
        directives = [
            "default-src 'self'",
            "base-uri 'self'",
            f"frame-ancestors {ancestors}",
            f"connect-src {self.connect_src}",
            f"script-src {self.script_src}",
            f"style-src {self.style_src}",
            f"img-src {self.img_src}",
            f"font-src {self.font_src}",
            f"frame-src {ancestors}",
            f"form-action 'self' {ancestors}",
        ]
        return "; ".join(directives)

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Security-Policy": self.build_csp_header(),
            "Referrer-Policy": "no-referrer",
            "X-Content-Type-Options": "nosniff",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        }
        if self.production:
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response unless the route already set them."""

    def __init__(self, app, config: Optional[SecurityHeadersConfig] = None):
        super().__init__(app)
        self.config = config or SecurityHeadersConfig()
        self._headers = self.config.build_headers()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        return response
