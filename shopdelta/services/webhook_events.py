"""
Webhook event parsing for Shopify lifecycle and compliance topics.

A WebhookEvent is built only after the HMAC check passed. The shop domain
is read from the signed payload, not from X-Shopify-Shop-Domain: headers
are outside the HMAC, so a replayed body with a swapped header must not
redirect cleanup to another shop.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")


class WebhookTopic(str, Enum):
    """Webhook topics handled by the trust pipeline."""
    APP_UNINSTALLED = "app/uninstalled"
    SHOP_REDACT = "shop/redact"
    CUSTOMERS_REDACT = "customers/redact"
    CUSTOMERS_DATA_REQUEST = "customers/data_request"


# Payload fields holding the shop domain, per topic
_DOMAIN_FIELDS = {
    WebhookTopic.APP_UNINSTALLED: "myshopify_domain",
    WebhookTopic.SHOP_REDACT: "shop_domain",
    WebhookTopic.CUSTOMERS_REDACT: "shop_domain",
    WebhookTopic.CUSTOMERS_DATA_REQUEST: "shop_domain",
}


class MalformedWebhookError(Exception):
    """Verified payload is missing the fields needed to identify the shop."""


@dataclass(frozen=True)
class WebhookEvent:
    """A verified inbound webhook. Never persisted."""
    topic: WebhookTopic
    shop_domain: str
    raw_body: bytes = b""
    signature: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    webhook_id: Optional[str] = None
    api_version: Optional[str] = None


def normalize_shop_domain(value: str) -> str:
    """Lowercase a shop domain and strip scheme and trailing slash."""
    return value.replace("https://", "").replace("http://", "").strip().rstrip("/").lower()


def is_valid_shop_domain(value: str) -> bool:
    return bool(_SHOP_DOMAIN_RE.match(value))


def parse_webhook_event(
    topic: WebhookTopic,
    raw_body: bytes,
    signature: str,
    header_shop_domain: Optional[str] = None,
    webhook_id: Optional[str] = None,
    api_version: Optional[str] = None,
) -> WebhookEvent:
    """
    Build a WebhookEvent from a verified request.

    Raises:
        MalformedWebhookError: Body is not a JSON object or lacks a valid
            shop domain
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedWebhookError(f"Invalid JSON body: {e}")

    if not isinstance(payload, dict):
        raise MalformedWebhookError("Webhook body is not a JSON object")

    domain_field = _DOMAIN_FIELDS[topic]
    raw_domain = payload.get(domain_field)
    if not isinstance(raw_domain, str) or not raw_domain:
        raise MalformedWebhookError(f"Payload missing '{domain_field}'")

    shop_domain = normalize_shop_domain(raw_domain)
    if not is_valid_shop_domain(shop_domain):
        raise MalformedWebhookError(f"Invalid shop domain in '{domain_field}'")

    if header_shop_domain and normalize_shop_domain(header_shop_domain) != shop_domain:
        logger.warning("Shop domain header does not match signed payload", extra={
            "topic": topic.value,
            "header_shop_domain": header_shop_domain,
            "shop_domain": shop_domain,
        })

    return WebhookEvent(
        topic=topic,
        shop_domain=shop_domain,
        raw_body=raw_body,
        signature=signature,
        payload=payload,
        webhook_id=webhook_id,
        api_version=api_version,
    )
