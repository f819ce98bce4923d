"""
Session credentials.

Access tokens are signed JWTs whose claim set depends on the role; refresh
tokens are opaque random strings persisted in the refresh_tokens table.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Union

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.models.partner import Partner
from app.models.user import Role, User


class ConfigurationError(RuntimeError):
    """Raised when a required secret or credential is not configured."""


class TokenExpiredError(Exception):
    pass


class TokenInvalidError(Exception):
    pass


def _signing_key() -> str:
    if not settings.SECRET_KEY:
        raise ConfigurationError("SECRET_KEY is not configured")
    return settings.SECRET_KEY


# ==================== Claim builders ====================

def user_claims(user: User) -> dict[str, Any]:
    return {
        "user_id": str(user.id),
        "phone_number": user.phone_number,
        "email": user.email,
        "name": user.name,
        "role": Role.USER.value,
        "is_active": user.is_active,
    }


def admin_claims(user: User) -> dict[str, Any]:
    return {
        "admin_id": str(user.id),
        "admin_phone_number": user.phone_number,
        "email": user.email,
        "name": user.name,
        "role": Role.ADMIN.value,
    }


def sub_admin_claims(user: User) -> dict[str, Any]:
    return {
        "sub_admin_id": str(user.id),
        "sub_admin_phone_number": user.phone_number,
        "email": user.email,
        "name": user.name,
        "role": Role.SUB_ADMIN.value,
        "permissions": list(user.permissions or []),
    }


def partner_claims(partner: Partner) -> dict[str, Any]:
    return {
        "partner_id": str(partner.id),
        "phone_number": partner.phone_number,
        "email": partner.email,
        "name": partner.name,
        "role": Role.PARTNER.value,
        "is_active": partner.is_active,
    }


# Claim that carries the principal id for each role
ID_CLAIMS: dict[Role, str] = {
    Role.USER: "user_id",
    Role.ADMIN: "admin_id",
    Role.SUB_ADMIN: "sub_admin_id",
    Role.PARTNER: "partner_id",
}


def build_claims(role: Role, principal: Union[User, Partner]) -> dict[str, Any]:
    """Role-specific claim set; every Role member must be handled here."""
    if role is Role.USER:
        return user_claims(principal)
    if role is Role.ADMIN:
        return admin_claims(principal)
    if role is Role.SUB_ADMIN:
        return sub_admin_claims(principal)
    if role is Role.PARTNER:
        return partner_claims(principal)
    raise ValueError(f"Unhandled role: {role!r}")


# ==================== Tokens ====================

def create_access_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (principal id)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    signing_key = _signing_key()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "jti": str(uuid.uuid4()),
        "type": "access"
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, signing_key, algorithm=settings.ALGORITHM)


def issue_access_token(
    role: Role,
    principal: Union[User, Partner],
    expires_delta: Optional[timedelta] = None,
) -> str:
    return create_access_token(
        principal.id,
        expires_delta=expires_delta,
        additional_claims=build_claims(role, principal),
    )


def create_refresh_token() -> str:
    """Opaque refresh credential (128 hex chars)."""
    return secrets.token_hex(64)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        TokenExpiredError: signature is valid but the token has expired
        TokenInvalidError: anything else wrong with the token
    """
    signing_key = _signing_key()
    try:
        payload = jwt.decode(token, signing_key, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError(str(e)) from e
    except JWTError as e:
        raise TokenInvalidError(str(e)) from e

    if payload.get("type") != "access":
        raise TokenInvalidError("Not an access token")
    return payload


@dataclass(frozen=True)
class TokenPrincipal:
    """Identity extracted from a verified access token."""
    role: Role
    id: uuid.UUID
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def phone_number(self) -> Optional[str]:
        return self.claims.get("phone_number") or self.claims.get(
            "admin_phone_number") or self.claims.get("sub_admin_phone_number")


def principal_from_claims(claims: dict[str, Any]) -> TokenPrincipal:
    try:
        role = Role(claims.get("role"))
        principal_id = uuid.UUID(str(claims.get(ID_CLAIMS[role])))
    except (ValueError, KeyError) as e:
        raise TokenInvalidError(f"Malformed claims: {e}") from e
    return TokenPrincipal(role=role, id=principal_id, claims=claims)
