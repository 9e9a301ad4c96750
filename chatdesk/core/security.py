"""Security utilities for JWT access tokens, refresh tokens and password hashing."""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt

from chatdesk.core.config import settings


# =============================================================================
# Access Token (JWT bearer)
# =============================================================================

def create_access_token(
    user_id: UUID,
    company_id: UUID,
    role: str,
    token_version: int,
) -> str:
    """
    Create signed access JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity, company context, and revocation version.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "company_id": str(company_id),
        "role": role,
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify access JWT.

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
# Refresh Token (opaque, stored server-side)
# =============================================================================

def generate_refresh_token() -> str:
    """Generate cryptographically random refresh token (48 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(48)


def refresh_token_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_DAYS)


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def generate_widget_key() -> str:
    return f"widget_{uuid.uuid4()}"
