"""
Shopify session token authentication for the embedded admin.

Shopify embedded apps use session tokens (JWTs) signed by Shopify with the
app's API secret. The shop domain in the token's 'dest' claim is the tenant
key for every share-link operation.

Documentation: https://shopify.dev/docs/apps/build/authentication-authorization/session-tokens
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shopdelta.platform.config import AppConfig, get_app_config
from shopdelta.services.webhook_events import is_valid_shop_domain, normalize_shop_domain

logger = logging.getLogger(__name__)

# Security scheme for extracting Bearer token
security = HTTPBearer(auto_error=False)


@dataclass
class ShopifySessionContext:
    """Context extracted from a Shopify session token."""
    shop_domain: str
    user_id: Optional[str]
    session_id: Optional[str] = None


class ShopifySessionTokenVerifier:
    """
    Verifies Shopify session tokens (JWTs).

    Session tokens are signed with HS256 using the app's API secret and
    carry the app's API key as audience.
    """

    def __init__(self, api_key: str, api_secret: str):
        if not api_key:
            raise ValueError("SHOPIFY_API_KEY is required")
        if not api_secret:
            raise ValueError("SHOPIFY_API_SECRET is required")
        self.api_key = api_key
        self.api_secret = api_secret

    @classmethod
    def from_config(cls, config: AppConfig) -> "ShopifySessionTokenVerifier":
        return cls(api_key=config.shopify_api_key, api_secret=config.shopify_api_secret)

    def verify_session_token(self, token: str) -> ShopifySessionContext:
        """
        Verify a Shopify session token and extract the shop.

        Raises:
            HTTPException: 401 if the token is invalid, expired, or has no shop
        """
        try:
            payload = jwt.decode(
                token,
                self.api_secret,
                algorithms=["HS256"],
                audience=self.api_key,
                options={"require": ["exp", "dest"]},
                leeway=5,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token has expired"
            )
        except jwt.InvalidAudienceError:
            logger.warning("Session token invalid audience")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token has invalid audience"
            )
        except jwt.InvalidSignatureError:
            logger.warning("Session token invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token signature is invalid"
            )
        except jwt.InvalidTokenError as e:
            logger.warning("Session token rejected", extra={"error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token is malformed"
            )

        # 'dest' is the shop URL, e.g. "https://mystore.myshopify.com"
        shop_domain = normalize_shop_domain(payload["dest"])
        if not is_valid_shop_domain(shop_domain):
            logger.warning("Session token has invalid shop", extra={"dest": payload["dest"]})
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token has invalid shop"
            )

        return ShopifySessionContext(
            shop_domain=shop_domain,
            user_id=payload.get("sub"),
            session_id=payload.get("sid"),
        )


async def get_shopify_session(request: Request) -> ShopifySessionContext:
    """
    FastAPI dependency to extract and verify the Shopify session token.

    Usage:
        @router.get("/api/wrapped-shares")
        async def list_shares(session: ShopifySessionContext = Depends(get_shopify_session)):
            ...

    Raises:
        HTTPException: 401 if the token is missing or invalid,
            503 if Shopify credentials are not configured
    """
    credentials: Optional[HTTPAuthorizationCredentials] = await security(request)

    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization token"
        )

    try:
        verifier = ShopifySessionTokenVerifier.from_config(get_app_config())
    except ValueError as e:
        logger.error("Shopify session auth not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured"
        )

    return verifier.verify_session_token(credentials.credentials)
