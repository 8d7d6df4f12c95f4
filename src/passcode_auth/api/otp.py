"""OTP router — send and verify one-time passcodes.

Endpoints
---------
POST /auth/otp/send             → registration OTP
POST /auth/otp/forgot-password  → forgot-password OTP
POST /auth/otp/password-reset   → password-change OTP
POST /auth/otp/email-reset      → email-change OTP
POST /auth/otp/verify           → verify a code for a purpose
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.api.dependencies import get_auth_service
from passcode_auth.database.engine import get_session
from passcode_auth.otp.errors import DeliveryError
from passcode_auth.otp.models import OtpPurpose
from passcode_auth.otp.passcode import CODE_LENGTH
from passcode_auth.services.auth_service import AuthService, OtpVerificationFailed, UserNotFound
from passcode_auth.services.identity_provider import IdentityProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/otp", tags=["otp"])


# ── Request / response models ────────────────────────────

class SendOtpRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    code: str = Field(
        ..., pattern=rf"^[0-9]{{{CODE_LENGTH}}}$", description=f"{CODE_LENGTH}-digit OTP code"
    )
    purpose: OtpPurpose


class VerifyOtpResponse(BaseModel):
    message: str
    login_token: str | None = None


# ── Endpoints ────────────────────────────────────────────

async def _send(service: AuthService, email: str, purpose: OtpPurpose) -> None:
    try:
        await service.send_otp(email, purpose)
    except DeliveryError as exc:
        raise HTTPException(
            status_code=500, detail=f"Failed to send {purpose.label} OTP email"
        ) from exc


@router.post("/send", response_model=MessageResponse)
async def send_registration_otp(
    body: SendOtpRequest, service: AuthService = Depends(get_auth_service)
):
    """Send a registration OTP to the given email."""
    await _send(service, body.email, OtpPurpose.REGISTRATION)
    return MessageResponse(message="Registration OTP sent successfully. Please check your email.")


@router.post("/forgot-password", response_model=MessageResponse)
async def send_forgot_password_otp(
    body: SendOtpRequest, service: AuthService = Depends(get_auth_service)
):
    await _send(service, body.email, OtpPurpose.FORGOT_PASSWORD)
    return MessageResponse(
        message="Password reset OTP sent successfully. Please check your email."
    )


@router.post("/password-reset", response_model=MessageResponse)
async def send_password_reset_otp(
    body: SendOtpRequest, service: AuthService = Depends(get_auth_service)
):
    await _send(service, body.email, OtpPurpose.PASSWORD_RESET)
    return MessageResponse(
        message="Password change OTP sent successfully. Please check your email."
    )


@router.post("/email-reset", response_model=MessageResponse)
async def send_email_reset_otp(
    body: SendOtpRequest, service: AuthService = Depends(get_auth_service)
):
    await _send(service, body.email, OtpPurpose.EMAIL_RESET)
    return MessageResponse(message="Email change OTP sent successfully. Please check your email.")


@router.post("/verify", response_model=VerifyOtpResponse)
async def verify_otp(
    body: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
    session: AsyncSession = Depends(get_session),
):
    """Verify a code for the given email and purpose.

    A forgot-password verification also returns a custom login token.
    """
    try:
        verified = await service.verify_otp(body.email, body.purpose, body.code, session)
    except OtpVerificationFailed as exc:
        raise HTTPException(status_code=400, detail=exc.result.message) from exc
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    except IdentityProviderError as exc:
        logger.error("Failed to create login token for %s: %s", body.email, exc)
        raise HTTPException(
            status_code=500, detail="Failed to create login token for email"
        ) from exc

    return VerifyOtpResponse(message=verified.message, login_token=verified.login_token)
