"""
Shopify webhook HMAC verification.

SECURITY: All webhooks MUST be verified before the payload is trusted.
Shopify signs the raw request body with HMAC-SHA256 keyed by the app's API
secret and sends the base64 digest in X-Shopify-Hmac-Sha256.

A failed verification is an expected outcome, not a fault: verify() returns
a VerificationResult and never raises.

Documentation: https://shopify.dev/docs/apps/build/webhooks/subscribe/https
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

HMAC_HEADER = "X-Shopify-Hmac-Sha256"


class VerificationFailure(str, Enum):
    """Why a webhook failed verification."""
    MISSING_SIGNATURE = "missing_signature"
    BAD_SIGNATURE = "bad_signature"
    MALFORMED_BODY = "malformed_body"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one webhook request."""
    valid: bool
    reason: Optional[VerificationFailure] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def failed(cls, reason: VerificationFailure) -> "VerificationResult":
        return cls(valid=False, reason=reason)


def _secret_bytes(secret: Union[str, bytes]) -> bytes:
    if isinstance(secret, bytes):
        return secret
    return secret.encode("utf-8")


def sign(raw_body: bytes, secret: Union[str, bytes]) -> str:
    """
    Compute the X-Shopify-Hmac-Sha256 value for a raw body.

    Args:
        raw_body: Exact request body bytes
        secret: Shopify app API secret

    Returns:
        Base64-encoded HMAC-SHA256 digest
    """
    digest = hmac.new(_secret_bytes(secret), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(
    raw_body: Optional[bytes],
    provided_signature: Optional[str],
    secret: Union[str, bytes],
) -> VerificationResult:
    """
    Verify a Shopify webhook signature.

    The digest is computed over the raw, unparsed body. Parsing and
    re-serializing first would change the bytes Shopify signed.

    Args:
        raw_body: Raw request body bytes, or None if the body could not be read
        provided_signature: X-Shopify-Hmac-Sha256 header value
        secret: Shopify app API secret

    Returns:
        VerificationResult; reason is set when valid is False
    """
    if not provided_signature:
        return VerificationResult.failed(VerificationFailure.MISSING_SIGNATURE)

    if raw_body is None:
        return VerificationResult.failed(VerificationFailure.MALFORMED_BODY)

    # An empty key would let anyone forge signatures
    if not secret:
        return VerificationResult.failed(VerificationFailure.BAD_SIGNATURE)

    try:
        provided = provided_signature.strip().encode("ascii")
    except UnicodeEncodeError:
        return VerificationResult.failed(VerificationFailure.BAD_SIGNATURE)

    computed = sign(raw_body, secret).encode("ascii")

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(computed, provided):
        return VerificationResult.failed(VerificationFailure.BAD_SIGNATURE)

    return VerificationResult.ok()
