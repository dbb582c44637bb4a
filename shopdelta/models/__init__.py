"""
Database models for shops, Shopify sessions and share links.

Shop-scoped models carry shop_domain (ShopScopedMixin) or hang off
Shop via a foreign key.
"""

from shopdelta.models.base import TimestampMixin, ShopScopedMixin, generate_uuid
from shopdelta.models.shop import Shop, ShopStatus
from shopdelta.models.shop_session import ShopSession
from shopdelta.models.wrapped_share import WrappedShare, WrappedShareView, WrapMode

__all__ = [
    "TimestampMixin",
    "ShopScopedMixin",
    "generate_uuid",
    "Shop",
    "ShopStatus",
    "ShopSession",
    "WrappedShare",
    "WrappedShareView",
    "WrapMode",
]
