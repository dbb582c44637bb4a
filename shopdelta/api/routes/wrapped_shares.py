"""
Wrapped Shares API - Endpoints for managing wrap report share links.

Mounted at /api/wrapped-shares

All endpoints require a valid Shopify session token; the shop in the token
scopes every read and write.
"""

import logging

from fastapi import APIRouter, HTTPException, Depends, Response, status

from shopdelta.database.session import get_db_session
from shopdelta.platform.shopify_session import ShopifySessionContext, get_shopify_session
from shopdelta.services.share_tokens import ShareValidationError, is_expired
from shopdelta.services.wrapped_share_service import ShareNotFoundError, WrappedShareService
from shopdelta.api.schemas.wrapped_shares import (
    CreateShareRequest,
    UpdateShareRequest,
    ShareResponse,
    ShareListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/wrapped-shares", tags=["wrapped-shares"])


def _get_share_service(
    session: ShopifySessionContext = Depends(get_shopify_session),
    db=Depends(get_db_session),
) -> WrappedShareService:
    return WrappedShareService(db, session.shop_domain)


def _share_to_response(share) -> ShareResponse:
    """Convert a WrappedShare model to response, computing is_expired."""
    response = ShareResponse.model_validate(share)
    response.is_expired = is_expired(share.expires_at)
    return response


@router.get("", response_model=ShareListResponse)
async def list_shares(
    service: WrappedShareService = Depends(_get_share_service),
):
    """List all share links for the shop."""
    shares = service.list_shares()
    return ShareListResponse(
        shares=[_share_to_response(s) for s in shares],
        total=len(shares),
    )


@router.post("", response_model=ShareResponse, status_code=201)
async def create_share(
    body: CreateShareRequest,
    service: WrappedShareService = Depends(_get_share_service),
):
    """Create a share link for a wrap report."""
    try:
        share = service.create_share(
            wrap_mode=body.wrap_mode,
            title=body.title,
            year_a=body.year_a,
            year_b=body.year_b,
            month=body.month,
            password=body.password,
            expires_in=body.expires_in,
            analytics_data=body.analytics_data,
            slides_data=body.slides_data,
        )
    except ShareValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _share_to_response(share)


@router.post("/{share_id}/revoke", response_model=ShareResponse)
async def revoke_share(
    share_id: str,
    service: WrappedShareService = Depends(_get_share_service),
):
    """Revoke a share link. Revoked links can never be re-enabled."""
    try:
        share = service.revoke_share(share_id)
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail="Share not found")

    return _share_to_response(share)


@router.patch("/{share_id}", response_model=ShareResponse)
async def update_share(
    share_id: str,
    body: UpdateShareRequest,
    service: WrappedShareService = Depends(_get_share_service),
):
    """Update a share link's title, password, expiry or active flag."""
    try:
        share = service.update_share(
            share_id,
            title=body.title,
            password=body.password,
            remove_password=body.remove_password,
            expires_in=body.expires_in,
            is_active=body.is_active,
        )
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail="Share not found")
    except ShareValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _share_to_response(share)


@router.delete("/{share_id}", status_code=204)
async def delete_share(
    share_id: str,
    service: WrappedShareService = Depends(_get_share_service),
):
    """Delete a share link and its view history."""
    try:
        service.delete_share(share_id)
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail="Share not found")

    return Response(status_code=status.HTTP_204_NO_CONTENT)
