"""
Public share link endpoints.

Mounted at /share/{code}. No Shopify session is required: the share code
is the credential, optionally backed by a password.

Password-protected links set an HttpOnly share_auth_{code} cookie after a
correct password. The cookie value is an HMAC tied to the current password,
so changing or removing the password signs every viewer out.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Response, HTTPException, Depends, status
from sqlalchemy.exc import SQLAlchemyError

from shopdelta.database.session import get_db_session
from shopdelta.platform.config import get_app_config
from shopdelta.services.share_tokens import ShareAccessState
from shopdelta.services.wrapped_share_service import (
    PublicShareService,
    ShareAuthenticationError,
    ShareNotFoundError,
)
from shopdelta.api.schemas.wrapped_shares import PublicShareResponse, SharePasswordRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/share", tags=["public-share"])

_DENIED_MESSAGES = {
    ShareAccessState.INACTIVE: "This share link is no longer active",
    ShareAccessState.REVOKED: "This share link has been revoked",
    ShareAccessState.NOT_YET_ACTIVE: "This share link is not yet active",
    ShareAccessState.EXPIRED: "This share link has expired",
}


def auth_cookie_name(code: str) -> str:
    return f"share_auth_{code}"


def _get_public_share_service(db=Depends(get_db_session)) -> PublicShareService:
    config = get_app_config()
    try:
        return PublicShareService(
            db,
            signing_secret=config.shopify_api_secret,
            ip_salt=config.share_view_ip_salt,
        )
    except ValueError as e:
        logger.error("Public share service not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Share links not configured"
        )


def _client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, falling back to the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


@router.get("/{code}", response_model=PublicShareResponse)
async def view_share(
    code: str,
    request: Request,
    service: PublicShareService = Depends(_get_public_share_service),
):
    """Open a share link and record the view."""
    try:
        result = service.open_share(code, auth_token=request.cookies.get(auth_cookie_name(code)))
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail="Share not found")

    share = result.share
    if result.state in _DENIED_MESSAGES:
        raise HTTPException(status_code=403, detail=_DENIED_MESSAGES[result.state])

    if result.state == ShareAccessState.PASSWORD_REQUIRED:
        return PublicShareResponse(
            state=result.state.value,
            title=share.title,
            shop_name=share.shop.shop_name,
        )

    try:
        service.record_view(
            share,
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            referrer=request.headers.get("referer"),
        )
    except SQLAlchemyError as e:
        service.db.rollback()
        logger.error("Failed to record share view", extra={
            "share_id": share.id,
            "error": str(e),
        })

    return PublicShareResponse(
        state=result.state.value,
        title=share.title,
        shop_name=share.shop.shop_name,
        currency_code=share.shop.currency_code,
        wrap_mode=share.wrap_mode,
        year_a=share.year_a,
        year_b=share.year_b,
        month=share.month,
        analytics_data=share.analytics_data,
        slides_data=share.slides_data or [],
    )


@router.post("/{code}/password")
async def submit_share_password(
    code: str,
    body: SharePasswordRequest,
    response: Response,
    service: PublicShareService = Depends(_get_public_share_service),
):
    """Check a share password and set the share auth cookie."""
    try:
        token = service.authenticate(code, body.password)
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail="Invalid share")
    except ShareAuthenticationError:
        raise HTTPException(status_code=401, detail="Incorrect password")

    config = get_app_config()
    response.set_cookie(
        key=auth_cookie_name(code),
        value=token,
        max_age=config.share_auth_cookie_max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )
    return {"success": True}
