"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Returned by the get_current_session dependency. Roles are re-read from
    the database on every request, never taken from the token.
    """
    profile_id: UUID
    org_id: UUID
    roles: list[str]
    email: str | None
    display_name: str


class LoginRequest(BaseModel):
    org_slug: str
    email: str
    password: str


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    profile_id: UUID
    org_id: UUID
    email: str | None
    display_name: str
    roles: list[str]
    permissions: list[str]
    admin_sections: list[str]
