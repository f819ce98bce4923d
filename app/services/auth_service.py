"""
Authentication Service

Identity is established either by a Firebase ID token or by an MSG91 OTP
session. Both paths end in issue_session(), which branches on the account's
role and mints the matching credentials.
"""

import logging
from datetime import timedelta
from typing import Any, Optional, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import create_refresh_token, issue_access_token
from app.db_types import utcnow
from app.models.address import UserAddress
from app.models.cart import CartItem
from app.models.order import UserOrder, UserOrderItem, TERMINAL_ORDER_STATUSES
from app.models.partner import Partner
from app.models.refresh_token import RefreshToken
from app.models.review import UserReview
from app.models.tbyb import UserTBYB
from app.models.user import Role, User
from app.models.wishlist import WishlistItem
from app.services.identity_service import FirebaseIdentityVerifier, IdentityVerificationError
from app.services.otp_service import OTPService, mask_phone

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Authentication failure carrying the HTTP status to answer with."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def user_profile(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "name": user.name,
        "phone_number": user.phone_number,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
        "is_phone_verified": user.is_phone_verified,
    }


class AuthService:
    """
    Signup, login, refresh and account lifecycle.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Lookups ====================

    async def get_user_by_phone(self, phone: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.phone_number == phone))
        return result.scalar_one_or_none()

    async def get_partner_by_phone(self, phone: str) -> Optional[Partner]:
        result = await self.db.execute(select(Partner).where(Partner.phone_number == phone))
        return result.scalar_one_or_none()

    # ==================== Session issuance ====================

    def _session_token(self, role: Role, principal) -> str:
        return issue_access_token(
            role,
            principal,
            expires_delta=timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS),
        )

    async def _token_pair(self, user: User, role: Role) -> dict[str, str]:
        access_token = issue_access_token(role, user)
        refresh_token = create_refresh_token()
        self.db.add(RefreshToken(
            user_id=user.id,
            token=refresh_token,
            role=role.value,
            expires_at=utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ))
        await self.db.flush()
        return {"access_token": access_token, "refresh_token": refresh_token}

    async def issue_session(self, user: User) -> Tuple[str, dict[str, Any]]:
        """
        Mint credentials for a verified account.

        Returns:
            Tuple of (message, data)
        """
        try:
            role = user.role_enum
        except ValueError:
            raise AuthError(f"Unknown role '{user.role}'", 500)

        if role is Role.ADMIN:
            tokens = await self._token_pair(user, role)
            logger.info(f"Admin login for {mask_phone(user.phone_number)}")
            return "Admin login successful", {**tokens, "role": role.value, "user": user_profile(user)}

        if role is Role.SUB_ADMIN:
            if not user.is_sub_admin_active:
                raise AuthError("SubAdmin account is deactivated", 403)
            tokens = await self._token_pair(user, role)
            logger.info(f"SubAdmin login for {mask_phone(user.phone_number)}")
            return "SubAdmin login successful", {
                **tokens,
                "role": role.value,
                "permissions": list(user.permissions or []),
                "user": user_profile(user),
            }

        if role is Role.PARTNER or (user.is_partner and not user.is_active):
            partner = await self.get_partner_by_phone(user.phone_number)
            if not partner:
                raise AuthError("Partner not found", 404)
            if not partner.is_verified:
                raise AuthError("Partner is not verified", 403)
            if not partner.is_active:
                raise AuthError("Partner account is inactive", 403)
            token = self._session_token(Role.PARTNER, partner)
            logger.info(f"Partner login for {mask_phone(partner.phone_number)}")
            return "Partner login successful", {
                "access_token": token,
                "role": Role.PARTNER.value,
                "partner": {
                    "id": str(partner.id),
                    "name": partner.name,
                    "phone_number": partner.phone_number,
                    "email": partner.email,
                },
            }

        if not user.is_active:
            raise AuthError("User account is inactive", 403)
        token = self._session_token(Role.USER, user)
        logger.info(f"User login for {mask_phone(user.phone_number)}")
        return "User login successful", {"access_token": token, "role": Role.USER.value, "user": user_profile(user)}

    # ==================== Federated (Firebase) flow ====================

    async def _verified_phone(self, identity: FirebaseIdentityVerifier, id_token: str, phone: str) -> dict:
        try:
            claims = await identity.verify(id_token)
        except IdentityVerificationError as e:
            logger.warning(f"Identity token rejected for {mask_phone(phone)}: {e}")
            raise AuthError("Invalid identity token", 401)

        if claims.get("phone_number") != phone:
            raise AuthError("Phone number does not match the verified token", 401)
        return claims

    async def signup_with_identity(
        self,
        identity: FirebaseIdentityVerifier,
        id_token: str,
        name: str,
        phone: str,
        email: Optional[str] = None,
    ) -> dict[str, Any]:
        claims = await self._verified_phone(identity, id_token, phone)

        if await self.get_user_by_phone(phone):
            raise AuthError("User already exists", 403)

        user = User(
            name=name,
            phone_number=phone,
            email=email,
            firebase_uid=claims.get("uid"),
            is_phone_verified=True,
        )
        self.db.add(user)
        await self.db.flush()

        logger.info(f"User signed up via identity token {mask_phone(phone)}")
        return {"access_token": self._session_token(Role.USER, user), "user": user_profile(user)}

    async def login_with_identity(
        self,
        identity: FirebaseIdentityVerifier,
        id_token: str,
        phone: str,
    ) -> Tuple[str, dict[str, Any]]:
        await self._verified_phone(identity, id_token, phone)

        user = await self.get_user_by_phone(phone)
        if not user:
            raise AuthError("User not found", 404)
        return await self.issue_session(user)

    # ==================== OTP flow ====================

    async def signup_with_otp(
        self,
        otp_service: OTPService,
        name: str,
        phone: str,
        email: Optional[str] = None,
    ) -> dict[str, Any]:
        record = await otp_service.get_record(phone)
        if not record or not record.is_verified:
            raise AuthError("Phone number not verified", 403)
        if record.is_expired:
            raise AuthError("OTP has expired", 410)

        if await self.get_user_by_phone(phone):
            raise AuthError("User already exists", 403)

        user = User(name=name, phone_number=phone, email=email, is_phone_verified=True)
        self.db.add(user)
        await otp_service.consume(phone)
        await self.db.flush()

        logger.info(f"User signed up via OTP {mask_phone(phone)}")
        return {"access_token": self._session_token(Role.USER, user), "user": user_profile(user)}

    async def login_with_otp(self, otp_service: OTPService, phone: str) -> Tuple[str, dict[str, Any]]:
        user = await self.get_user_by_phone(phone)
        if not user:
            raise AuthError("User not found", 404)

        # 404 / 410 / 401 come from the OTP session itself
        await otp_service.require_verified(phone)
        await otp_service.consume(phone)

        if not user.is_phone_verified:
            raise AuthError("Phone number not verified", 403)

        return await self.issue_session(user)

    # ==================== Refresh / logout ====================

    async def refresh(self, token: Optional[str]) -> dict[str, Any]:
        if not token:
            raise AuthError("Refresh token is required", 400)

        result = await self.db.execute(
            select(RefreshToken).where(RefreshToken.token == token, RefreshToken.is_active == True)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise AuthError("Invalid refresh token", 401)

        if record.is_expired:
            await self._retire(record)
            raise AuthError("Refresh token has expired", 401)

        user = await self.db.get(User, record.user_id)
        if not user or not user.is_active:
            await self._retire(record)
            raise AuthError("User not found or inactive", 401)

        role = Role(record.role)
        if role is Role.SUB_ADMIN and not user.is_sub_admin_active:
            raise AuthError("SubAdmin account is deactivated", 403)

        # Rotate: the presented token is spent
        record.is_active = False
        record.last_used = utcnow()

        tokens = await self._token_pair(user, role)
        return {**tokens, "role": role.value}

    async def _retire(self, record: RefreshToken) -> None:
        """Deactivate a refused token. Committed here since the request itself fails."""
        record.is_active = False
        record.last_used = utcnow()
        await self.db.commit()

    async def logout(self, token: Optional[str]) -> None:
        if not token:
            raise AuthError("Refresh token is required", 400)

        result = await self.db.execute(
            select(RefreshToken).where(RefreshToken.token == token, RefreshToken.is_active == True)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise AuthError("Refresh token not found or already inactive", 404)

        record.is_active = False
        record.last_used = utcnow()
        await self.db.flush()

    # ==================== Account deletion ====================

    async def delete_account(
        self,
        user: User,
        identity: Optional[FirebaseIdentityVerifier] = None,
    ) -> dict[str, int]:
        """
        Remove the account and everything it owns. Refused while any order
        is outside the terminal statuses.
        """
        active_orders = await self.db.scalar(
            select(func.count(UserOrder.id)).where(
                UserOrder.user_id == user.id,
                UserOrder.order_status.not_in(TERMINAL_ORDER_STATUSES),
            )
        )
        if active_orders:
            raise AuthError("Cannot delete account with active orders", 400)

        order_ids = select(UserOrder.id).where(UserOrder.user_id == user.id)
        await self.db.execute(delete(UserOrderItem).where(UserOrderItem.order_id.in_(order_ids)))

        removed = {}
        for label, model in (
            ("orders", UserOrder),
            ("reviews", UserReview),
            ("addresses", UserAddress),
            ("cart_items", CartItem),
            ("tbyb_entries", UserTBYB),
            ("wishlist_items", WishlistItem),
            ("refresh_tokens", RefreshToken),
        ):
            result = await self.db.execute(delete(model).where(model.user_id == user.id))
            removed[label] = result.rowcount or 0

        if identity and user.firebase_uid:
            try:
                await identity.delete_account(user.firebase_uid)
            except Exception as e:
                logger.warning(f"Identity account removal failed for {mask_phone(user.phone_number)}: {e}")

        await self.db.execute(delete(User).where(User.id == user.id))

        logger.info(f"Account deleted for {mask_phone(user.phone_number)}: {removed}")
        return removed
