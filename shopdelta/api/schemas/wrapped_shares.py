"""
Pydantic schemas for wrapped share links.

Request bodies accept the camelCase field names sent by the embedded admin
(yearA, expiresIn, ...) as well as their snake_case names.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shopdelta.services.share_tokens import EXPIRY_NEVER, EXPIRY_PRESETS

VALID_WRAP_MODES = ["year", "month"]
VALID_EXPIRY_OPTIONS = [*EXPIRY_PRESETS, EXPIRY_NEVER]


def _check_expiry(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in VALID_EXPIRY_OPTIONS:
        raise ValueError(f"Invalid expiresIn '{v}'. Must be one of: {VALID_EXPIRY_OPTIONS}")
    return v


class CreateShareRequest(BaseModel):
    """Request to create a share link for a wrap report."""

    model_config = ConfigDict(populate_by_name=True)

    wrap_mode: str = Field("year", alias="mode")
    title: Optional[str] = Field(None, max_length=255)
    year_a: Optional[int] = Field(None, alias="yearA", ge=2000, le=2100)
    year_b: Optional[int] = Field(None, alias="yearB", ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    password: Optional[str] = Field(None, max_length=255)
    expires_in: str = Field(EXPIRY_NEVER, alias="expiresIn")
    analytics_data: Optional[Any] = Field(None, alias="analyticsData")
    slides_data: Optional[Any] = Field(None, alias="slidesData")

    @field_validator("wrap_mode")
    @classmethod
    def valid_wrap_mode(cls, v: str) -> str:
        if v not in VALID_WRAP_MODES:
            raise ValueError(f"Invalid mode '{v}'. Must be one of: {VALID_WRAP_MODES}")
        return v

    @field_validator("expires_in")
    @classmethod
    def valid_expires_in(cls, v: str) -> str:
        return _check_expiry(v)


class UpdateShareRequest(BaseModel):
    """Request to update a share link. Omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=255)
    remove_password: bool = Field(False, alias="removePassword")
    expires_in: Optional[str] = Field(None, alias="expiresIn")
    is_active: Optional[bool] = Field(None, alias="isActive")

    @field_validator("expires_in")
    @classmethod
    def valid_expires_in(cls, v: Optional[str]) -> Optional[str]:
        return _check_expiry(v)


class ShareResponse(BaseModel):
    """Response model for a share link. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    share_code: str
    title: Optional[str] = None
    wrap_mode: str
    year_a: Optional[int] = None
    year_b: Optional[int] = None
    month: Optional[int] = None
    is_password_protected: bool
    is_active: bool
    is_revoked: bool
    is_expired: bool = False
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    view_count: int = 0
    last_viewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ShareListResponse(BaseModel):
    """Response for listing share links."""

    shares: List[ShareResponse]
    total: int


class SharePasswordRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=255)


class PublicShareResponse(BaseModel):
    """What an anonymous viewer receives when opening a share link."""

    state: str
    title: Optional[str] = None
    shop_name: Optional[str] = None
    currency_code: Optional[str] = None
    wrap_mode: Optional[str] = None
    year_a: Optional[int] = None
    year_b: Optional[int] = None
    month: Optional[int] = None
    analytics_data: Optional[Any] = None
    slides_data: Optional[Any] = None
