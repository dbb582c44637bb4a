"""
Wrapped Share Service - Business logic for shareable wrap report links.

Handles creating, listing, updating, revoking and deleting share links for
one shop, plus the public read path used by the share viewer page.

Key edge cases:
- Every mutation is scoped to the caller's shop; a share id from another
  shop raises ShareNotFoundError instead of silently doing nothing
- Revocation is monotonic; update_share() never clears is_revoked
- Expiry is enforced lazily at read time; nothing sweeps expired rows
- Share code collisions on insert are retried with a fresh code
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopdelta.models.shop import Shop, ShopStatus
from shopdelta.models.wrapped_share import WrappedShare, WrappedShareView, WrapMode
from shopdelta.services.share_tokens import (
    ShareAccessState,
    ShareValidationError,
    compute_expiry,
    generate_share_code,
    hash_share_password,
    resolve_share_access,
    verify_share_password,
)

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


class ShareNotFoundError(Exception):
    """Share does not exist for this shop."""


class ShareAuthenticationError(Exception):
    """Share password is missing or incorrect."""


class WrappedShareService:
    """Service for managing one shop's share links."""

    def __init__(self, db: Session, shop_domain: str):
        if not shop_domain:
            raise ValueError("shop_domain is required")
        self.db = db
        self.shop_domain = shop_domain

    def get_or_create_shop(self) -> Shop:
        """Return the caller's shop record, creating it on first use."""
        shop = self._find_shop()
        if shop is not None:
            return shop

        shop = Shop(
            shop_domain=self.shop_domain,
            shop_name=self.shop_domain.replace(".myshopify.com", ""),
            status=ShopStatus.ACTIVE,
            installed_at=datetime.now(timezone.utc),
        )
        try:
            self.db.add(shop)
            self.db.flush()
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()
            shop = self._find_shop()
            if shop is None:
                raise
        return shop

    def list_shares(self) -> List[WrappedShare]:
        """List all share links for the shop, newest first."""
        shop = self._find_shop()
        if shop is None:
            return []

        return (
            self.db.query(WrappedShare)
            .filter(WrappedShare.shop_id == shop.id)
            .order_by(WrappedShare.created_at.desc())
            .all()
        )

    def create_share(
        self,
        wrap_mode: str = WrapMode.YEAR,
        title: Optional[str] = None,
        year_a: Optional[int] = None,
        year_b: Optional[int] = None,
        month: Optional[int] = None,
        password: Optional[str] = None,
        expires_in: Optional[str] = "never",
        analytics_data: Optional[Any] = None,
        slides_data: Optional[Any] = None,
    ) -> WrappedShare:
        """
        Create a share link.

        Raises:
            ShareValidationError: Invalid mode or expiry preset
        """
        if wrap_mode not in (WrapMode.YEAR, WrapMode.MONTH):
            raise ShareValidationError(f"Invalid wrap mode '{wrap_mode}'")

        expires_at = compute_expiry(expires_in)

        if not title:
            if wrap_mode == WrapMode.MONTH:
                title = "Monthly Wrapped"
            else:
                title = f"{year_b} Wrapped" if year_b else "Wrapped"

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            shop = self.get_or_create_shop()
            share = WrappedShare(
                shop_id=shop.id,
                share_code=generate_share_code(),
                title=title,
                wrap_mode=wrap_mode,
                year_a=year_a,
                year_b=year_b,
                month=month,
                password_hash=hash_share_password(password) if password else None,
                is_password_protected=bool(password),
                expires_at=expires_at,
                analytics_data=analytics_data,
                slides_data=slides_data,
            )
            try:
                self.db.add(share)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning("Share code collision, retrying", extra={
                    "shop_domain": self.shop_domain,
                    "attempt": attempt,
                })
                continue

            logger.info("Share link created", extra={
                "shop_domain": self.shop_domain,
                "share_id": share.id,
                "password_protected": share.is_password_protected,
                "expires_at": share.expires_at.isoformat() if share.expires_at else None,
            })
            return share

        raise ShareValidationError("Could not allocate a unique share code")

    def revoke_share(self, share_id: str) -> WrappedShare:
        """Revoke a share link. Revoking twice keeps the first revoked_at."""
        share = self._get_share(share_id)
        if not share.is_revoked:
            share.is_revoked = True
            share.revoked_at = datetime.now(timezone.utc)
            self.db.commit()
            logger.info("Share link revoked", extra={
                "shop_domain": self.shop_domain,
                "share_id": share.id,
            })
        return share

    def delete_share(self, share_id: str) -> None:
        """Delete a share link and its recorded views."""
        share = self._get_share(share_id)
        self.db.delete(share)
        self.db.commit()
        logger.info("Share link deleted", extra={
            "shop_domain": self.shop_domain,
            "share_id": share_id,
        })

    def update_share(
        self,
        share_id: str,
        title: Optional[str] = None,
        password: Optional[str] = None,
        remove_password: bool = False,
        expires_in: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> WrappedShare:
        """
        Update a share link's title, password, expiry or active flag.

        remove_password wins over password when both are given.
        is_revoked is not touched: a revoked share stays revoked.
        """
        share = self._get_share(share_id)

        if expires_in is not None:
            share.expires_at = compute_expiry(expires_in)
        if title:
            share.title = title
        if is_active is not None:
            share.is_active = is_active

        if remove_password:
            share.password_hash = None
            share.is_password_protected = False
        elif password:
            share.password_hash = hash_share_password(password)
            share.is_password_protected = True

        self.db.commit()
        return share

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _find_shop(self) -> Optional[Shop]:
        return (
            self.db.query(Shop)
            .filter(Shop.shop_domain == self.shop_domain)
            .first()
        )

    def _get_share(self, share_id: str) -> WrappedShare:
        """Load a share owned by the caller's shop."""
        share = (
            self.db.query(WrappedShare)
            .join(Shop, WrappedShare.shop_id == Shop.id)
            .filter(
                WrappedShare.id == share_id,
                Shop.shop_domain == self.shop_domain,
            )
            .first()
        )
        if share is None:
            raise ShareNotFoundError(f"Share {share_id} not found")
        return share


@dataclass
class ShareAccessResult:
    """Outcome of opening a share link."""
    state: ShareAccessState
    share: Optional[WrappedShare] = None

    @property
    def viewable(self) -> bool:
        return self.state == ShareAccessState.ACTIVE


class PublicShareService:
    """
    Read path for share links opened by anonymous viewers.

    Password-protected shares hand out an auth token after a correct
    password. The token is an HMAC over the share id and the current
    password hash, so changing or removing the password invalidates it.
    """

    def __init__(self, db: Session, signing_secret: str, ip_salt: str):
        if not signing_secret:
            raise ValueError("signing_secret is required")
        self.db = db
        self.signing_secret = signing_secret
        self.ip_salt = ip_salt

    def get_by_code(self, code: str) -> Optional[WrappedShare]:
        return (
            self.db.query(WrappedShare)
            .filter(WrappedShare.share_code == code)
            .first()
        )

    def open_share(
        self,
        code: str,
        auth_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareAccessResult:
        """
        Resolve access to a share link.

        Raises:
            ShareNotFoundError: No share with this code
        """
        share = self.get_by_code(code)
        if share is None:
            raise ShareNotFoundError("Share not found")

        authenticated = self.is_authenticated(share, auth_token)
        state = resolve_share_access(share, now=now, authenticated=authenticated)
        return ShareAccessResult(state=state, share=share)

    def authenticate(self, code: str, password: str) -> str:
        """
        Check a share password and return an auth token.

        Raises:
            ShareNotFoundError: No share with this code, or no password set
            ShareAuthenticationError: Wrong password
        """
        share = self.get_by_code(code)
        if share is None or not share.password_hash:
            raise ShareNotFoundError("Invalid share")

        if not verify_share_password(password, share.password_hash):
            logger.info("Incorrect share password", extra={"share_id": share.id})
            raise ShareAuthenticationError("Incorrect password")

        return self._auth_token(share)

    def is_authenticated(self, share: WrappedShare, auth_token: Optional[str]) -> bool:
        if not share.password_hash or not auth_token:
            return False
        return hmac.compare_digest(self._auth_token(share), auth_token)

    def record_view(
        self,
        share: WrappedShare,
        ip_address: Optional[str],
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> None:
        """Increment the view counter and store an anonymized view record."""
        now = datetime.now(timezone.utc)
        share.view_count = (share.view_count or 0) + 1
        share.last_viewed_at = now

        self.db.add(WrappedShareView(
            share_id=share.id,
            viewer_ip_hash=self.hash_ip(ip_address or "unknown"),
            user_agent=user_agent[:512] if user_agent else None,
            referrer=referrer[:1024] if referrer else None,
            viewed_at=now,
        ))
        self.db.commit()

    def hash_ip(self, ip_address: str) -> str:
        return hashlib.sha256((ip_address + self.ip_salt).encode("utf-8")).hexdigest()

    def _auth_token(self, share: WrappedShare) -> str:
        message = f"{share.id}:{share.password_hash}".encode("utf-8")
        return hmac.new(self.signing_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
