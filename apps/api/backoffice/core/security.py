"""Security utilities for JWT session tokens, passwords and invite tokens."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from passlib.context import CryptContext

from backoffice.core.config import settings


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

INVITE_TOKEN_BYTES = 32


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(profile_id: UUID, org_id: UUID) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Roles are NOT embedded; they are re-read on every request.
    """
    payload = {
        "sub": str(profile_id),
        "org_id": str(org_id),
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Passwords & Invite Tokens
# =============================================================================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def generate_invite_token() -> str:
    """Opaque, URL-safe, single-use onboarding token."""
    return secrets.token_urlsafe(INVITE_TOKEN_BYTES)
