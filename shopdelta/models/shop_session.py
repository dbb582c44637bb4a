"""
ShopSession model: Shopify OAuth sessions (offline and online access tokens).

Rows are written by the OAuth install flow and read by API clients. The
webhook pipeline only ever deletes them, always filtered by shop_domain.
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, Index

from shopdelta.db_base import Base
from shopdelta.models.base import TimestampMixin, ShopScopedMixin


class ShopSession(Base, TimestampMixin, ShopScopedMixin):
    """
    Stored Shopify session credential.

    SECURITY:
    - access_token is a live Shopify Admin API credential
    - rows must be deleted when the app is uninstalled or the shop redacted
    """

    __tablename__ = "shop_sessions"

    id = Column(
        String(255),
        primary_key=True,
        comment="Shopify session id (offline_{shop} or online session id)"
    )
    state = Column(
        String(255),
        nullable=True,
        comment="OAuth state nonce"
    )
    is_online = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Online (per-user) vs offline (per-shop) access token"
    )
    scope = Column(
        Text,
        nullable=True,
        comment="Comma-separated granted OAuth scopes"
    )
    expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiry for online tokens. NULL for offline tokens."
    )
    access_token = Column(
        Text,
        nullable=True,
        comment="Shopify Admin API access token"
    )
    user_id = Column(
        String(50),
        nullable=True,
        comment="Shopify staff user id for online sessions"
    )

    __table_args__ = (
        Index("ix_shop_sessions_shop_online", "shop_domain", "is_online"),
    )

    def __repr__(self) -> str:
        return f"<ShopSession(id={self.id}, shop_domain={self.shop_domain}, online={self.is_online})>"
