"""
Shopify webhook handlers for app lifecycle and GDPR compliance topics.

SECURITY: All webhooks MUST verify HMAC signature before processing.
Shopify signs webhooks with the app's API secret.

Every delivery goes through the same pipeline:
    verify -> parse -> dispatch cleanup -> log -> respond

Shopify retries any non-2xx reply, so the only non-200 answer is 401 for a
request that failed verification. Cleanup failures are logged, not returned.

Documentation: https://shopify.dev/docs/apps/build/privacy-law-compliance
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.requests import ClientDisconnect

from shopdelta.database.session import get_optional_db_session
from shopdelta.platform.config import get_app_config
from shopdelta.platform.secrets import redact_secrets
from shopdelta.services.compliance_responder import WebhookReply, log_outcome, respond
from shopdelta.services.compliance_webhook_handler import ComplianceWebhookHandler
from shopdelta.services.credential_store import get_credential_store
from shopdelta.services.webhook_events import (
    MalformedWebhookError,
    WebhookTopic,
    parse_webhook_event,
)
from shopdelta.services.webhook_verification import (
    HMAC_HEADER,
    VerificationFailure,
    VerificationResult,
    verify,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks/shopify", tags=["webhooks"])


def _to_response(reply: WebhookReply) -> PlainTextResponse:
    return PlainTextResponse(
        content=reply.body,
        status_code=reply.status_code,
        headers=reply.headers,
        media_type="text/plain; charset=utf-8",
    )


async def _read_body(request: Request) -> Optional[bytes]:
    try:
        return await request.body()
    except ClientDisconnect:
        logger.warning("Client disconnected while reading webhook body")
        return None


async def _handle(
    topic: WebhookTopic,
    request: Request,
    db: Optional[Session],
) -> PlainTextResponse:
    try:
        config = get_app_config()
    except ValidationError as e:
        logger.error("Invalid application config; rejecting webhook", extra={
            "topic": topic.value,
            "error": str(e),
        })
        return _to_response(
            respond(VerificationResult.failed(VerificationFailure.BAD_SIGNATURE), None)
        )

    if not config.webhooks_configured:
        logger.error("SHOPIFY_API_SECRET not configured; rejecting webhook", extra={
            "topic": topic.value,
        })

    raw_body = await _read_body(request)
    signature = request.headers.get(HMAC_HEADER)
    header_shop_domain = request.headers.get("X-Shopify-Shop-Domain")

    verification = verify(raw_body, signature, config.shopify_api_secret)
    if not verification.valid:
        logger.warning("Webhook verification failed", extra={
            "topic": topic.value,
            "reason": verification.reason.value,
            "shop_domain": header_shop_domain,
        })
        return _to_response(respond(verification, None))

    header_topic = request.headers.get("X-Shopify-Topic")
    if header_topic and header_topic != topic.value:
        logger.warning("Webhook topic header does not match route", extra={
            "topic": topic.value,
            "header_topic": header_topic,
        })

    try:
        event = parse_webhook_event(
            topic,
            raw_body,
            signature,
            header_shop_domain=header_shop_domain,
            webhook_id=request.headers.get("X-Shopify-Webhook-Id"),
            api_version=request.headers.get("X-Shopify-API-Version"),
        )
    except MalformedWebhookError as e:
        # Retrying a malformed payload would never succeed
        logger.error("Malformed webhook payload", extra={
            "topic": topic.value,
            "error": str(e),
        })
        return _to_response(respond(verification, None))

    logger.info("Webhook received", extra={
        "topic": topic.value,
        "shop_domain": event.shop_domain,
        "webhook_id": event.webhook_id,
        "api_version": event.api_version,
    })
    logger.debug("Webhook payload", extra={"payload": redact_secrets(event.payload)})

    handler = ComplianceWebhookHandler(db, get_credential_store(db, config))
    outcome = handler.dispatch(event)
    log_outcome(outcome)

    return _to_response(respond(verification, outcome))


@router.post("/app-uninstalled", response_class=PlainTextResponse)
async def handle_app_uninstalled(
    request: Request,
    db: Optional[Session] = Depends(get_optional_db_session),
):
    """
    Handle app/uninstalled webhook from Shopify.

    Deletes the shop's stored sessions and marks the shop uninstalled.
    Share links are kept until shop/redact arrives (48 hours later).
    """
    return await _handle(WebhookTopic.APP_UNINSTALLED, request, db)


@router.post("/shop-redact", response_class=PlainTextResponse)
async def handle_shop_redact(
    request: Request,
    db: Optional[Session] = Depends(get_optional_db_session),
):
    """
    Handle shop/redact webhook from Shopify.

    Deletes every record held for the shop. May arrive before, after or
    without app/uninstalled.
    """
    return await _handle(WebhookTopic.SHOP_REDACT, request, db)


@router.post("/customers-redact", response_class=PlainTextResponse)
async def handle_customers_redact(
    request: Request,
    db: Optional[Session] = Depends(get_optional_db_session),
):
    """Handle customers/redact webhook. No customer data is stored."""
    return await _handle(WebhookTopic.CUSTOMERS_REDACT, request, db)


@router.post("/customers-data-request", response_class=PlainTextResponse)
async def handle_customers_data_request(
    request: Request,
    db: Optional[Session] = Depends(get_optional_db_session),
):
    """Handle customers/data_request webhook. No customer data is stored."""
    return await _handle(WebhookTopic.CUSTOMERS_DATA_REQUEST, request, db)
