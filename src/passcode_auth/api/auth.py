"""Auth router — account queries backed by the identity provider.

Endpoints
---------
GET  /auth/providers?email=...          → sign-in providers for an email
GET  /auth/onboarding-status?email=...  → whether a profile still needs creating
POST /auth/reset-password               → set a new password (needs a password-reset OTP)
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.api.dependencies import get_auth_service
from passcode_auth.database.engine import get_session
from passcode_auth.otp.passcode import CODE_LENGTH
from passcode_auth.services.auth_service import (
    AuthService,
    NoSignInMethods,
    OtpVerificationFailed,
    UserNotFound,
)
from passcode_auth.services.identity_provider import IdentityProviderError

router = APIRouter(prefix="/auth", tags=["auth"])

_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class ProvidersResponse(BaseModel):
    providers: list[str]


class OnboardingStatusResponse(BaseModel):
    needs_onboarding: bool
    message: str
    providers: list[str] | None = None


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=rf"^[0-9]{{{CODE_LENGTH}}}$", description="Password-reset OTP")
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def _check_strength(cls, value: str) -> str:
        if not _PASSWORD_RULE.match(value):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return value


class MessageResponse(BaseModel):
    message: str


@router.get("/providers", response_model=ProvidersResponse)
async def get_providers(
    email: EmailStr = Query(...), service: AuthService = Depends(get_auth_service)
):
    """List the sign-in methods attached to an email."""
    try:
        providers = await service.get_providers(email)
    except IdentityProviderError as exc:
        raise HTTPException(status_code=500, detail="Failed to check sign-in providers") from exc
    return ProvidersResponse(providers=providers)


@router.get("/onboarding-status", response_model=OnboardingStatusResponse)
async def get_onboarding_status(
    email: EmailStr = Query(...),
    service: AuthService = Depends(get_auth_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        status = await service.get_onboarding_status(email, session)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail="No user found for this email") from exc
    except NoSignInMethods as exc:
        raise HTTPException(
            status_code=400, detail="No sign-in methods found for this user"
        ) from exc
    except IdentityProviderError as exc:
        raise HTTPException(status_code=500, detail="Failed to check user status") from exc

    return OnboardingStatusResponse(
        needs_onboarding=status.needs_onboarding,
        message=status.message,
        providers=status.providers,
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)
):
    try:
        await service.reset_password(body.email, body.new_password, body.code)
    except OtpVerificationFailed as exc:
        raise HTTPException(status_code=400, detail=exc.result.message) from exc
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail="No user found for this email") from exc
    except IdentityProviderError as exc:
        raise HTTPException(status_code=500, detail="Failed to reset password") from exc
    return MessageResponse(message="Password updated successfully")
