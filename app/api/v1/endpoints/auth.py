"""
Authentication API Endpoints

Two ways in:
- identity token (Firebase) signup/login
- MSG91 OTP send/verify/resend followed by OTP signup/login

Login on either path branches by role (User, Admin, SubAdmin, Partner).
"""

import logging

from fastapi import APIRouter, HTTPException

from app.api.deps import DB, CurrentUser, IdentityVerifier, SMSProvider
from app.core.responses import created, ok
from app.schemas.auth import (
    IdentityLoginRequest,
    IdentitySignupRequest,
    OTPSignupRequest,
    PhoneRequest,
    ProfileUpdateRequest,
    RefreshTokenRequest,
    VerifyOTPRequest,
)
from app.services.auth_service import AuthError, AuthService, user_profile
from app.services.otp_service import OTPError, OTPService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


def _raise(e: Exception):
    raise HTTPException(status_code=e.status_code, detail=e.message)


# ==================== Identity token flow ====================

@router.post("/signup", status_code=201)
async def signup(request: IdentitySignupRequest, db: DB, identity: IdentityVerifier):
    """Create an account from a verified identity token."""
    try:
        data = await AuthService(db).signup_with_identity(
            identity,
            request.id_token,
            name=request.name,
            phone=request.phone_number,
            email=request.email,
        )
    except AuthError as e:
        _raise(e)
    return created("User registered successfully", data)


@router.post("/login")
async def login(request: IdentityLoginRequest, db: DB, identity: IdentityVerifier):
    try:
        message, data = await AuthService(db).login_with_identity(
            identity, request.id_token, request.phone_number
        )
    except AuthError as e:
        _raise(e)
    return ok(message, data)


# ==================== OTP flow ====================

@router.post("/otp/send")
async def send_otp(request: PhoneRequest, db: DB, sms: SMSProvider):
    """Ask MSG91 to text a code and open a fresh OTP session."""
    try:
        record = await OTPService(db, sms).send_otp(request.phone_number)
    except OTPError as e:
        _raise(e)
    return ok("OTP sent successfully", {"phone_number": record.phone_number, "expires_at": record.expires_at})


@router.post("/otp/verify")
async def verify_otp(request: VerifyOTPRequest, db: DB, sms: SMSProvider):
    try:
        record = await OTPService(db, sms).verify_otp(request.phone_number, request.otp)
    except OTPError as e:
        _raise(e)
    return ok("OTP verified successfully", {"phone_number": record.phone_number, "is_verified": True})


@router.post("/otp/resend/voice")
async def resend_otp_voice(request: PhoneRequest, db: DB, sms: SMSProvider):
    try:
        await OTPService(db, sms).resend_otp(request.phone_number, "voice")
    except OTPError as e:
        _raise(e)
    return ok("OTP resent via voice call")


@router.post("/otp/resend/text")
async def resend_otp_text(request: PhoneRequest, db: DB, sms: SMSProvider):
    try:
        await OTPService(db, sms).resend_otp(request.phone_number, "text")
    except OTPError as e:
        _raise(e)
    return ok("OTP resent via SMS")


@router.post("/otp/signup", status_code=201)
async def signup_with_otp(request: OTPSignupRequest, db: DB, sms: SMSProvider):
    try:
        data = await AuthService(db).signup_with_otp(
            OTPService(db, sms),
            name=request.name,
            phone=request.phone_number,
            email=request.email,
        )
    except AuthError as e:
        _raise(e)
    return created("User registered successfully", data)


@router.post("/otp/login")
async def login_with_otp(request: PhoneRequest, db: DB, sms: SMSProvider):
    try:
        message, data = await AuthService(db).login_with_otp(OTPService(db, sms), request.phone_number)
    except (AuthError, OTPError) as e:
        _raise(e)
    return ok(message, data)


# ==================== Session ====================

@router.post("/refresh-token")
async def refresh_token(request: RefreshTokenRequest, db: DB):
    """Rotate a refresh token into a new access/refresh pair."""
    try:
        data = await AuthService(db).refresh(request.refresh_token)
    except AuthError as e:
        _raise(e)
    return ok("Token refreshed successfully", data)


@router.post("/logout")
async def logout(request: RefreshTokenRequest, db: DB):
    try:
        await AuthService(db).logout(request.refresh_token)
    except AuthError as e:
        _raise(e)
    return ok("Logged out successfully")


# ==================== Profile ====================

@router.get("/profile")
async def get_profile(user: CurrentUser):
    return ok("User profile fetched successfully", user_profile(user))


@router.put("/profile")
async def update_profile(request: ProfileUpdateRequest, user: CurrentUser, db: DB):
    user.name = request.name
    user.email = request.email
    await db.flush()
    return ok("User profile updated successfully", user_profile(user))


@router.delete("/account")
async def delete_account(user: CurrentUser, db: DB, identity: IdentityVerifier):
    """
    Delete the caller's account with its orders, reviews, addresses, cart,
    TBYB entries and wishlist. Refused while any order is still open.
    """
    try:
        removed = await AuthService(db).delete_account(user, identity)
    except AuthError as e:
        _raise(e)
    return ok("User account deleted successfully", {"removed": removed})
