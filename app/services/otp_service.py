"""
OTP Service for phone authentication

MSG91 generates, delivers and checks the code; locally we keep one PhoneOTP
row per phone with a "sent" marker, an expiry and the verified flag.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Literal, Optional

import httpx
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db_types import utcnow
from app.models.phone_otp import PhoneOTP, OTP_SENT_MARKER

logger = logging.getLogger(__name__)


def mask_phone(phone: str) -> str:
    return phone[-4:].rjust(10, '*')


class SMSProviderError(Exception):
    """Raised when MSG91 cannot be reached or rejects the request outright."""


class OTPError(Exception):
    """OTP flow failure carrying the HTTP status to answer with."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class MSG91Client:
    """
    Thin async wrapper over the MSG91 v5 OTP API.
    """

    def __init__(
        self,
        auth_key: str,
        template_id: str,
        base_url: str = "https://control.msg91.com/api/v5",
        timeout: float = 10,
        otp_expiry_minutes: int = 10,
        otp_length: int = 6,
    ):
        self.auth_key = auth_key
        self.template_id = template_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.otp_expiry_minutes = otp_expiry_minutes
        self.otp_length = otp_length

    @staticmethod
    def _mobile(phone: str) -> str:
        # Format phone for MSG91 (add 91 if not present)
        phone = phone.replace("+", "")
        if len(phone) == 10:
            return f"91{phone}"
        return phone

    def _ensure_configured(self) -> None:
        if not self.auth_key:
            raise SMSProviderError("MSG91 not configured")

    async def _call(self, method: str, path: str, params: dict, headers: Optional[dict] = None) -> dict:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                if method == "POST":
                    response = await client.post(path, params=params, headers=headers, json={})
                else:
                    response = await client.get(path, params=params, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise SMSProviderError(f"MSG91 request failed: {e}") from e
        except ValueError as e:
            raise SMSProviderError(f"MSG91 returned a non-JSON body: {e}") from e

    async def send_otp(self, phone: str) -> None:
        self._ensure_configured()
        result = await self._call(
            "POST",
            "/otp",
            params={
                "mobile": self._mobile(phone),
                "authkey": self.auth_key,
                "otp_expiry": self.otp_expiry_minutes,
                "otp_length": self.otp_length,
                "template_id": self.template_id,
                "realTimeResponse": 1,
            },
        )
        if result.get("type") != "success":
            logger.error(f"MSG91 send error: {result}")
            raise SMSProviderError(result.get("message") or "Failed to send OTP")
        logger.info(f"OTP SMS sent to {mask_phone(phone)}")

    async def resend_otp(self, phone: str, channel: Literal["voice", "text"]) -> None:
        self._ensure_configured()
        result = await self._call(
            "GET",
            "/otp/retry",
            params={
                "mobile": self._mobile(phone),
                "authkey": self.auth_key,
                "retrytype": channel,
            },
        )
        if result.get("type") != "success":
            logger.error(f"MSG91 retry error: {result}")
            raise SMSProviderError(result.get("message") or f"Failed to resend OTP via {channel}")
        logger.info(f"OTP resent via {channel} to {mask_phone(phone)}")

    async def verify_otp(self, phone: str, otp: str) -> bool:
        """True when MSG91 accepts the code, False when it rejects it."""
        self._ensure_configured()
        result = await self._call(
            "GET",
            "/otp/verify",
            params={"otp": otp, "mobile": self._mobile(phone)},
            headers={"authkey": self.auth_key},
        )
        if result.get("type") == "success":
            return True
        logger.warning(f"MSG91 rejected OTP for {mask_phone(phone)}: {result.get('message')}")
        return False


@lru_cache()
def get_sms_provider() -> MSG91Client:
    return MSG91Client(
        auth_key=settings.MSG91_AUTH_KEY,
        template_id=settings.MSG91_TEMPLATE_ID_OTP,
        base_url=settings.MSG91_BASE_URL,
        timeout=settings.MSG91_TIMEOUT_SECONDS,
        otp_expiry_minutes=settings.OTP_EXPIRY_MINUTES,
        otp_length=settings.OTP_LENGTH,
    )


class OTPService:
    """
    Service for handling OTP operations.
    """

    def __init__(self, db: AsyncSession, sms: MSG91Client):
        self.db = db
        self.sms = sms

    async def get_record(self, phone: str) -> Optional[PhoneOTP]:
        result = await self.db.execute(
            select(PhoneOTP).where(PhoneOTP.phone_number == phone)
        )
        return result.scalar_one_or_none()

    async def _get_live_record(self, phone: str) -> PhoneOTP:
        record = await self.get_record(phone)
        if not record:
            raise OTPError("OTP not found for this phone number", 404)
        if record.is_expired:
            logger.warning(f"OTP expired for phone {mask_phone(phone)}")
            raise OTPError("OTP has expired", 410)
        return record

    async def send_otp(self, phone: str) -> PhoneOTP:
        """Dispatch a new OTP and reset the local OTP session for the phone."""
        try:
            await self.sms.send_otp(phone)
        except SMSProviderError as e:
            logger.error(f"Failed to send OTP to {mask_phone(phone)}: {e}")
            raise OTPError("Failed to send OTP via SMS", 500) from e

        expires_at = utcnow() + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        record = await self.get_record(phone)
        if record:
            record.otp = OTP_SENT_MARKER
            record.expires_at = expires_at
            record.is_verified = False
            record.verified_at = None
        else:
            record = PhoneOTP(
                phone_number=phone,
                otp=OTP_SENT_MARKER,
                expires_at=expires_at,
                is_verified=False,
            )
            self.db.add(record)

        await self.db.flush()
        logger.info(f"OTP session opened for phone {mask_phone(phone)}")
        return record

    async def verify_otp(self, phone: str, otp: str) -> PhoneOTP:
        """
        Check the code with the provider. Expiry is enforced before the
        provider is asked, so an expired session fails even with a correct code.
        """
        record = await self._get_live_record(phone)

        try:
            accepted = await self.sms.verify_otp(phone, otp)
        except SMSProviderError as e:
            logger.error(f"OTP verification error for {mask_phone(phone)}: {e}")
            raise OTPError("OTP verification service error", 500) from e

        if not accepted:
            raise OTPError("Invalid OTP", 401)

        record.is_verified = True
        record.verified_at = utcnow()
        await self.db.flush()

        logger.info(f"OTP verified for phone {mask_phone(phone)}")
        return record

    async def resend_otp(self, phone: str, channel: Literal["voice", "text"]) -> PhoneOTP:
        record = await self._get_live_record(phone)
        try:
            await self.sms.resend_otp(phone, channel)
        except SMSProviderError as e:
            logger.error(f"Failed to resend OTP to {mask_phone(phone)}: {e}")
            raise OTPError(f"Failed to resend OTP via {channel}", 500) from e
        return record

    async def require_verified(self, phone: str) -> PhoneOTP:
        """The OTP session must exist, be unexpired and verified."""
        record = await self._get_live_record(phone)
        if not record.is_verified:
            raise OTPError("Please verify your OTP first", 401)
        return record

    async def consume(self, phone: str) -> None:
        await self.db.execute(delete(PhoneOTP).where(PhoneOTP.phone_number == phone))
