"""
Shop model: the tenant record for an installed Shopify store.

CRITICAL DESIGN DECISIONS:
- shop_domain is the canonical Shopify identifier (mystore.myshopify.com)
- One row per installed store; the row is removed on shop/redact
- Share links hang off the shop and are deleted with it
"""

from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from shopdelta.db_base import Base
from shopdelta.models.base import TimestampMixin, generate_uuid


class ShopStatus:
    """Shop installation status values."""
    ACTIVE = "active"
    UNINSTALLED = "uninstalled"


class Shop(Base, TimestampMixin):
    """
    Tenant record keyed by shop domain.

    SECURITY:
    - shop_domain comes from a verified session token or a verified webhook,
      NEVER from request bodies
    - shop_domain is unique (one app install per store)
    """

    __tablename__ = "shops"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    shop_domain = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Shopify store domain (mystore.myshopify.com)"
    )

    shop_name = Column(
        String(255),
        nullable=True,
        comment="Store display name"
    )
    currency_code = Column(
        String(10),
        nullable=False,
        default="USD",
        comment="Store's primary currency"
    )

    status = Column(
        String(20),
        nullable=False,
        default=ShopStatus.ACTIVE,
        index=True,
        comment="Installation status: active, uninstalled"
    )
    installed_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the app was installed"
    )
    uninstalled_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the app was uninstalled"
    )

    wrapped_shares = relationship(
        "WrappedShare",
        back_populates="shop",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("shop_domain", name="uq_shops_shop_domain"),
    )

    def __repr__(self) -> str:
        return f"<Shop(id={self.id}, shop_domain={self.shop_domain}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        """Check if the app is currently installed on this shop."""
        return self.status == ShopStatus.ACTIVE
