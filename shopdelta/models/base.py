"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- ShopScopedMixin: shop_domain column for per-shop isolation
- generate_uuid: UUID generation for primary keys
"""

import uuid

from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.orm import declared_attr


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


class ShopScopedMixin:
    """
    Mixin that adds a shop_domain column for per-shop isolation.

    SECURITY: shop_domain is the tenant key. Every query and every delete
    against a shop-scoped table MUST filter on it.
    """

    @declared_attr
    def shop_domain(cls):
        return Column(
            String(255),
            nullable=False,
            index=True,
            comment="Shopify store domain (mystore.myshopify.com). Tenant key."
        )
