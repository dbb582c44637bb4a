"""
Compliance Responder: maps webhook outcomes to the reply Shopify receives.

respond() is a pure function. Shopify retries any non-2xx webhook reply,
so after a valid signature the reply is always 200, including when some
cleanup steps failed. Failures are reported through log_outcome(), which
the endpoint calls separately before respond().

Reply policy:
- Verification failed           -> 401 "Unauthorized"
- Verified, malformed payload   -> 200 generic acknowledgement
- Verified, all steps succeeded -> 200 topic confirmation message
- Verified, some steps failed   -> 200 topic acknowledgement (no failure detail)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from shopdelta.services.compliance_webhook_handler import CleanupOutcome
from shopdelta.services.webhook_events import WebhookTopic
from shopdelta.services.webhook_verification import VerificationResult

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
}

UNAUTHORIZED_MESSAGE = "Unauthorized"
ACKNOWLEDGED_MESSAGE = "Webhook acknowledged."

_SUCCESS_MESSAGES = {
    WebhookTopic.APP_UNINSTALLED: "App uninstalled and cleanup completed for {shop}.",
    WebhookTopic.SHOP_REDACT: "Shop data deleted successfully for {shop}.",
    WebhookTopic.CUSTOMERS_REDACT: "Customer data redaction completed.",
    WebhookTopic.CUSTOMERS_DATA_REQUEST: (
        "No customer data retained. ShopDelta only processes anonymized analytics data."
    ),
}

_PARTIAL_MESSAGES = {
    WebhookTopic.APP_UNINSTALLED: "App uninstall processed.",
    WebhookTopic.SHOP_REDACT: "Shop redaction processed.",
    WebhookTopic.CUSTOMERS_REDACT: "Customer data redaction processed.",
    WebhookTopic.CUSTOMERS_DATA_REQUEST: "No customer data retained.",
}


@dataclass(frozen=True)
class WebhookReply:
    """HTTP reply for a webhook delivery."""
    status_code: int
    body: str
    headers: Dict[str, str] = field(default_factory=lambda: dict(NO_STORE_HEADERS))


def respond(
    verification: VerificationResult,
    outcome: Optional[CleanupOutcome],
) -> WebhookReply:
    """
    Build the reply for a webhook delivery.

    Args:
        verification: Result of the HMAC check
        outcome: Cleanup outcome, or None when nothing was dispatched

    Returns:
        WebhookReply; 401 only when verification failed
    """
    if not verification.valid:
        return WebhookReply(status_code=401, body=UNAUTHORIZED_MESSAGE)

    if outcome is None:
        return WebhookReply(status_code=200, body=ACKNOWLEDGED_MESSAGE)

    if outcome.has_failures:
        return WebhookReply(status_code=200, body=_PARTIAL_MESSAGES[outcome.topic])

    message = _SUCCESS_MESSAGES[outcome.topic].format(shop=outcome.shop_domain)
    return WebhookReply(status_code=200, body=message)


def log_outcome(outcome: CleanupOutcome) -> None:
    """Log a cleanup outcome for operators. Failed steps are logged at ERROR."""
    for step in outcome.failed_steps:
        logger.error("Webhook cleanup step failed", extra={
            "shop_domain": outcome.shop_domain,
            "topic": outcome.topic.value,
            "step": step.name,
            "error": step.error_detail,
        })

    logger.info("Webhook cleanup finished", extra={
        "shop_domain": outcome.shop_domain,
        "topic": outcome.topic.value,
        "steps": [s.name for s in outcome.steps_attempted],
        "failed_steps": len(outcome.failed_steps),
        "records_affected": outcome.records_affected,
    })
