"""Dependency providers — shared instances handed to routers via ``Depends``.

Tests replace any of these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from passcode_auth.config import settings
from passcode_auth.otp.manager import OtpManager
from passcode_auth.otp.store import InMemoryChallengeStore
from passcode_auth.services.auth_service import AuthService
from passcode_auth.services.email_service import EmailService
from passcode_auth.services.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
    IdentityUser,
    InvalidIdToken,
)
from passcode_auth.services.user_service import UserService

_bearer = HTTPBearer(description="ID token issued by the identity provider")


@lru_cache
def get_otp_manager() -> OtpManager:
    """Process-wide OTP manager; its in-memory store lives as long as the app."""
    return OtpManager(
        InMemoryChallengeStore(),
        EmailService(),
        ttl=timedelta(minutes=settings.otp_ttl_minutes),
        expiry_timezone=settings.otp_expiry_timezone,
    )


@lru_cache
def get_identity_client() -> IdentityProviderClient:
    return IdentityProviderClient()


def get_auth_service(
    otp_manager: OtpManager = Depends(get_otp_manager),
    identity: IdentityProviderClient = Depends(get_identity_client),
) -> AuthService:
    return AuthService(otp_manager, identity)


def get_user_service(
    identity: IdentityProviderClient = Depends(get_identity_client),
) -> UserService:
    return UserService(identity)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),
    identity: IdentityProviderClient = Depends(get_identity_client),
) -> IdentityUser:
    """Account behind the request's ``Authorization: Bearer <id token>`` header."""
    try:
        return await identity.verify_id_token(credentials.credentials)
    except InvalidIdToken as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc
    except IdentityProviderError as exc:
        raise HTTPException(status_code=500, detail="Failed to verify token") from exc
