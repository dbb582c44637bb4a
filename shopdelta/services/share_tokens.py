"""
Share token primitives for wrapped share links.

- Share codes: 12 characters from a display-safe alphabet, drawn from a
  CSPRNG with rejection sampling so every character is equally likely
- Passwords: SHA-256 hex digest, deterministic and one-way
- Expiry presets: "1d", "7d", "30d", "never"
- Access state: derived at read time from the stored share and the clock
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

# No I, O, l, o, 0, 1: they are easy to misread when a link is typed by hand
SHARE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
SHARE_CODE_LENGTH = 12

# Bytes >= this value are discarded so byte % len(alphabet) stays uniform
_REJECTION_LIMIT = 256 - (256 % len(SHARE_CODE_ALPHABET))

EXPIRY_NEVER = "never"
EXPIRY_PRESETS = {
    "1d": 1,
    "7d": 7,
    "30d": 30,
}


class ShareValidationError(Exception):
    """Share request fails validation."""


class ShareAccessState(str, Enum):
    """Access state of a share link at read time."""
    ACTIVE = "active"
    PASSWORD_REQUIRED = "password_required"
    INACTIVE = "inactive"
    REVOKED = "revoked"
    NOT_YET_ACTIVE = "not_yet_active"
    EXPIRED = "expired"


def generate_share_code(length: int = SHARE_CODE_LENGTH) -> str:
    """Generate an unguessable share code."""
    alphabet_size = len(SHARE_CODE_ALPHABET)
    chars = []
    while len(chars) < length:
        for byte in secrets.token_bytes(length):
            if byte < _REJECTION_LIMIT:
                chars.append(SHARE_CODE_ALPHABET[byte % alphabet_size])
                if len(chars) == length:
                    break
    return "".join(chars)


def hash_share_password(password: str) -> str:
    """One-way hash of a share password (SHA-256 hex)."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_share_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored hash in constant time."""
    if not password or not password_hash:
        return False
    return hmac.compare_digest(hash_share_password(password), password_hash)


def compute_expiry(expires_in: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Convert an expiry preset into an absolute timestamp.

    Args:
        expires_in: "1d", "7d", "30d" or "never"
        now: Reference time (defaults to current UTC time)

    Returns:
        Expiry timestamp, or None for "never"

    Raises:
        ShareValidationError: Unknown preset
    """
    if expires_in is None or expires_in == EXPIRY_NEVER:
        return None

    days = EXPIRY_PRESETS.get(expires_in)
    if days is None:
        raise ShareValidationError(
            f"Invalid expiresIn '{expires_in}'. Must be one of: "
            f"{', '.join([*EXPIRY_PRESETS, EXPIRY_NEVER])}"
        )

    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=days)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(expires_at) < now


def resolve_share_access(
    share,
    now: Optional[datetime] = None,
    authenticated: bool = False,
) -> ShareAccessState:
    """
    Resolve whether a share can be viewed right now.

    Resolution order:
    1. Deactivated by the owner -> INACTIVE
    2. Revoked -> REVOKED (terminal)
    3. starts_at in the future -> NOT_YET_ACTIVE
    4. expires_at in the past -> EXPIRED
    5. Password protected and not authenticated -> PASSWORD_REQUIRED
    6. Otherwise -> ACTIVE
    """
    now = now or datetime.now(timezone.utc)

    if not share.is_active:
        return ShareAccessState.INACTIVE
    if share.is_revoked:
        return ShareAccessState.REVOKED
    if share.starts_at is not None and _as_utc(share.starts_at) > now:
        return ShareAccessState.NOT_YET_ACTIVE
    if is_expired(share.expires_at, now):
        return ShareAccessState.EXPIRED
    if share.password_hash and not authenticated:
        return ShareAccessState.PASSWORD_REQUIRED
    return ShareAccessState.ACTIVE
