"""
Wrapped Share models: public share links for pre-rendered wrap reports.

A share link exposes a snapshot of a shop's wrap slides to anyone holding
the share code, optionally behind a password and an expiry date.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey,
    Index, UniqueConstraint, JSON, func,
)
from sqlalchemy.orm import relationship

from shopdelta.db_base import Base
from shopdelta.models.base import TimestampMixin, generate_uuid


class WrapMode:
    """Report comparison modes."""
    YEAR = "year"
    MONTH = "month"


class WrappedShare(Base, TimestampMixin):
    """
    Share link for a wrap report.

    Lifecycle: created on demand -> mutated by revoke/update -> deleted
    explicitly or left to expire.

    SECURITY:
    - share_code is generated from a CSPRNG, never from tenant input
    - password_hash is a one-way hash; the plaintext is never stored
    - Expired shares (expires_at < now) are inaccessible at read time;
      there is no background sweep
    - is_revoked is monotonic: once set it is never cleared
    """

    __tablename__ = "wrapped_shares"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    shop_id = Column(
        String(36),
        ForeignKey("shops.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning shop. CASCADE delete when the shop is redacted."
    )

    share_code = Column(
        String(32),
        nullable=False,
        comment="Public share code (12 chars, display-safe alphabet)"
    )

    title = Column(String(255), nullable=True)
    wrap_mode = Column(
        String(10),
        nullable=False,
        default=WrapMode.YEAR,
        comment="year or month"
    )
    year_a = Column(Integer, nullable=True, comment="Comparison year")
    year_b = Column(Integer, nullable=True, comment="Primary year")
    month = Column(Integer, nullable=True, comment="Month (1-12) for month mode")

    password_hash = Column(
        String(128),
        nullable=True,
        comment="SHA-256 hex digest of the access password. NULL = no password."
    )
    is_password_protected = Column(Boolean, nullable=False, default=False)

    starts_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Optional embargo. NULL = available immediately."
    )
    expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Optional expiry. NULL = never expires. Checked at read time."
    )
    is_active = Column(Boolean, nullable=False, default=True)
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    view_count = Column(Integer, nullable=False, default=0)
    last_viewed_at = Column(DateTime(timezone=True), nullable=True)

    analytics_data = Column(JSON, nullable=True, comment="Analytics snapshot")
    slides_data = Column(JSON, nullable=True, comment="Pre-built slide list")

    shop = relationship("Shop", back_populates="wrapped_shares")
    views = relationship(
        "WrappedShareView",
        back_populates="share",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("share_code", name="uq_wrapped_shares_share_code"),
        Index("idx_wrapped_shares_shop_created", "shop_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WrappedShare(id={self.id}, shop_id={self.shop_id}, "
            f"code={self.share_code}, revoked={self.is_revoked})>"
        )


class WrappedShareView(Base):
    """One recorded view of a share link. Stores a salted IP hash only."""

    __tablename__ = "wrapped_share_views"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )
    share_id = Column(
        String(36),
        ForeignKey("wrapped_shares.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    viewer_ip_hash = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    referrer = Column(String(1024), nullable=True)
    viewed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    share = relationship("WrappedShare", back_populates="views")
