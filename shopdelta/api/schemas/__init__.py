"""
API schemas package.

Contains Pydantic models for request/response validation.
"""

from shopdelta.api.schemas.wrapped_shares import (
    CreateShareRequest,
    UpdateShareRequest,
    ShareResponse,
    ShareListResponse,
    SharePasswordRequest,
    PublicShareResponse,
)

__all__ = [
    "CreateShareRequest",
    "UpdateShareRequest",
    "ShareResponse",
    "ShareListResponse",
    "SharePasswordRequest",
    "PublicShareResponse",
]
