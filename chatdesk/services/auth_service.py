"""Authentication service - credential login, token issuance, refresh rotation, logout."""

import logging
from datetime import datetime, timezone
from uuid import UUID

import jwt
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from chatdesk.core.config import settings
from chatdesk.core.errors import UnauthorizedError
from chatdesk.core.security import (
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    refresh_token_expiry,
    verify_password,
)
from chatdesk.core.tenant import get_company_by_slug
from chatdesk.db.enums import SystemRole
from chatdesk.db.models import Company, RefreshToken, Role, User
from chatdesk.schemas.auth import TokenResponse, TokenUser

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"

# Login surfaces
COMPANY_LOGIN = "company"
ADMIN_LOGIN = "admin"


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def issue_tokens(db: Session, user: User, role: Role) -> TokenResponse:
    """Mint an access JWT and persist a fresh refresh token. Caller commits."""
    access_token = create_access_token(
        user_id=user.id,
        company_id=user.company_id,
        role=role.name,
        token_version=user.token_version,
    )
    refresh = RefreshToken(
        user_id=user.id,
        token=generate_refresh_token(),
        expires_at=refresh_token_expiry(),
    )
    db.add(refresh)
    db.flush()
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh.token,
        expires_in=settings.JWT_EXPIRES_MINUTES * 60,
        user=TokenUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=role.name,
            company_id=user.company_id,
        ),
    )


def _ensure_active(db: Session, user: User) -> Role:
    if not user.is_active:
        raise UnauthorizedError("Account disabled")
    company = db.get(Company, user.company_id)
    if not company or not company.is_active:
        raise UnauthorizedError("Company is inactive")
    role = db.get(Role, user.role_id)
    if not role:
        raise UnauthorizedError(INVALID_CREDENTIALS)
    return role


def login(
    db: Session,
    email: str,
    password: str,
    surface: str = COMPANY_LOGIN,
    subdomain: str | None = None,
) -> TokenResponse:
    """
    Authenticate by email/password.

    The company surface refuses super admins; the admin surface accepts
    only super admins. With a tenant subdomain, the user must belong to it.

    Raises:
        UnauthorizedError: Bad credentials, wrong surface, or inactive account
        NotFoundError: Subdomain names no active company
    """
    user = find_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError(INVALID_CREDENTIALS)

    role = _ensure_active(db, user)
    is_super_admin = role.is_system and role.name == SystemRole.SUPER_ADMIN.value

    if surface == ADMIN_LOGIN and not is_super_admin:
        raise UnauthorizedError(INVALID_CREDENTIALS)
    if surface == COMPANY_LOGIN and is_super_admin:
        raise UnauthorizedError("Super admins must use the admin login")

    if subdomain:
        company = get_company_by_slug(db, subdomain)
        if company.id != user.company_id:
            raise UnauthorizedError(INVALID_CREDENTIALS)

    user.last_login_at = datetime.now(timezone.utc)
    tokens = issue_tokens(db, user, role)
    db.commit()
    logger.info("User %s logged in via %s surface", user.id, surface)
    return tokens


def refresh(db: Session, token: str) -> TokenResponse:
    """
    Rotate a refresh token: revoke the presented one and issue a new pair.

    Raises:
        UnauthorizedError: Token unknown, revoked, expired, or owner inactive
    """
    stored = db.query(RefreshToken).filter(RefreshToken.token == token).first()
    if not stored or stored.is_revoked:
        raise UnauthorizedError("Invalid refresh token")
    if stored.expires_at <= datetime.now(timezone.utc):
        raise UnauthorizedError("Refresh token expired")

    user = db.get(User, stored.user_id)
    if not user:
        raise UnauthorizedError("Invalid refresh token")
    role = _ensure_active(db, user)

    stored.is_revoked = True
    tokens = issue_tokens(db, user, role)
    db.commit()
    return tokens


def logout(db: Session, user_id: UUID, refresh_token: str | None = None) -> int:
    """
    Revoke one refresh token, or all of a user's tokens.

    Revoking all also bumps token_version, invalidating live access tokens.
    Returns the number of tokens revoked.
    """
    if refresh_token:
        result = db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == refresh_token,
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
        )
        db.commit()
        return result.rowcount or 0

    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True)
    )
    user = db.get(User, user_id)
    if user:
        user.token_version += 1
    db.commit()
    return result.rowcount or 0


def authenticate_token(db: Session, token: str) -> tuple[User, Role]:
    """
    Resolve a bearer token to an active user and role.

    Validates:
    - JWT is valid and not expired
    - User exists and is active
    - Company exists and is active
    - Token version matches (for revocation support)

    Raises:
        UnauthorizedError: Authentication failed
    """
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid or expired token")

    user = db.get(User, _parse_uuid(payload.get("sub")))
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account disabled")
    if user.token_version != payload.get("token_version"):
        raise UnauthorizedError("Session revoked")

    company = db.get(Company, user.company_id)
    if not company or not company.is_active:
        raise UnauthorizedError("Company is inactive")

    role = db.get(Role, user.role_id)
    if not role:
        raise UnauthorizedError("Role not found")
    return user, role


def _parse_uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token")
