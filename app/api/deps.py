from typing import Annotated, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.security import (
    TokenExpiredError,
    TokenInvalidError,
    TokenPrincipal,
    decode_token,
    principal_from_claims,
)
from app.core.storage import StorageClient, get_storage
from app.models.partner import Partner
from app.models.user import Role, User
from app.services.identity_service import FirebaseIdentityVerifier, get_identity_verifier
from app.services.otp_service import MSG91Client, get_sms_provider


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; a missing header is answered by us, not FastAPI
security = HTTPBearer(auto_error=False)


async def get_token_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> TokenPrincipal:
    """
    Dependency to get the identity carried by the bearer token.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = decode_token(credentials.credentials)
        return principal_from_claims(claims)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TokenInvalidError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_roles(*allowed: Role):
    """
    Dependency factory to restrict a route to some roles.

    Usage:
        @router.get("/", dependencies=[Depends(require_roles(Role.ADMIN))])
        async def list_things():
            ...
    """
    async def role_dependency(
        principal: Annotated[TokenPrincipal, Depends(get_token_principal)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> TokenPrincipal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role {principal.role.value}",
            )

        if principal.role is Role.SUB_ADMIN:
            sub_admin = await db.get(User, principal.id)
            if not sub_admin or not sub_admin.is_sub_admin_active:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="SubAdmin account is deactivated",
                )

        return principal

    return role_dependency


async def get_current_user(
    principal: Annotated[TokenPrincipal, Depends(require_roles(Role.USER))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """The shopper behind a User token."""
    user = await db.get(User, principal.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


async def get_current_partner(
    principal: Annotated[TokenPrincipal, Depends(require_roles(Role.PARTNER))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Partner:
    partner = await db.get(Partner, principal.id)
    if partner is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Partner not found")
    return partner


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
Principal = Annotated[TokenPrincipal, Depends(get_token_principal)]
AdminAccess = Annotated[TokenPrincipal, Depends(require_roles(Role.ADMIN, Role.SUB_ADMIN))]
AdminOnly = Annotated[TokenPrincipal, Depends(require_roles(Role.ADMIN))]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentPartner = Annotated[Partner, Depends(get_current_partner)]
AnyRole = Annotated[TokenPrincipal, Depends(require_roles(*Role))]

# External collaborators
SMSProvider = Annotated[MSG91Client, Depends(get_sms_provider)]
IdentityVerifier = Annotated[FirebaseIdentityVerifier, Depends(get_identity_verifier)]
Storage = Annotated[StorageClient, Depends(get_storage)]
