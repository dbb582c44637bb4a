"""ShopDelta backend: Shopify webhook trust pipeline and shareable wrap reports."""

__version__ = "0.4.0"
