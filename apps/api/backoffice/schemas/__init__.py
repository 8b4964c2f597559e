"""Pydantic schemas for API request/response models."""

from backoffice.schemas.auth import LoginRequest, MeResponse, UserSession

__all__ = [
    # Auth
    "LoginRequest",
    "MeResponse",
    "UserSession",
]
