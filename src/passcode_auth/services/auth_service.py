"""Auth service — account flows built on top of the OTP engine.

The OTP manager answers "did this person prove control of the address";
this module decides what that proof unlocks (a login token for the
forgot-password flow) and hosts the provider-backed account queries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.database.repository import UserRepository
from passcode_auth.otp.errors import VerificationResult
from passcode_auth.otp.manager import OtpManager
from passcode_auth.otp.models import OtpPurpose
from passcode_auth.services.identity_provider import IdentityProviderClient

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for account-flow failures."""


class OtpVerificationFailed(AuthError):
    """The submitted passcode did not verify; see :attr:`result`."""

    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        super().__init__(result.message)


class UserNotFound(AuthError):
    """No account (or profile) exists for the email."""


class NoSignInMethods(AuthError):
    """The account exists but has no sign-in provider attached."""


@dataclass
class OtpVerification:
    """Value object returned after a passcode verifies."""

    email: str
    purpose: OtpPurpose
    login_token: str | None = None
    message: str = "OTP verified successfully."


@dataclass
class OnboardingStatus:
    needs_onboarding: bool
    message: str
    providers: list[str] | None = None


class AuthService:
    """Glue between the OTP manager, the identity provider and the profile store."""

    def __init__(self, otp_manager: OtpManager, identity: IdentityProviderClient) -> None:
        self._otp = otp_manager
        self._identity = identity

    # ── OTP flows ────────────────────────────────────────

    async def send_otp(self, email: str, purpose: OtpPurpose) -> None:
        """Issue a passcode for *purpose*; raises ``DeliveryError`` on failure."""
        await self._otp.issue(email, purpose)

    async def verify_otp(
        self,
        email: str,
        purpose: OtpPurpose,
        code: str,
        session: AsyncSession,
    ) -> OtpVerification:
        """Verify *code* and run the follow-up the purpose calls for.

        Raises
        ------
        OtpVerificationFailed
            The code did not verify (missing, expired, wrong context or digits).
        UserNotFound
            Forgot-password only: no profile exists for *email*.
        IdentityProviderError
            Forgot-password only: the login token could not be minted.
        """
        result = self._otp.verify(email, purpose, code)
        if not result.ok:
            raise OtpVerificationFailed(result)

        if purpose is not OtpPurpose.FORGOT_PASSWORD:
            return OtpVerification(email=email, purpose=purpose)

        user = await UserRepository(session).find_by_email(email)
        if user is None:
            logger.warning("OTP verification failed: User not found for %s", email)
            raise UserNotFound(email)

        token = await self._identity.create_custom_token(user.id)
        logger.info("Login token issued for %s after forgot-password OTP", email)
        return OtpVerification(email=email, purpose=purpose, login_token=token)

    # ── Account queries ──────────────────────────────────

    async def get_providers(self, email: str) -> list[str]:
        """Sign-in provider ids for *email*; empty when no account exists."""
        user = await self._identity.get_user_by_email(email)
        if user is None:
            logger.info("No user found for email: %s", email)
            return []
        logger.info("Sign-in providers found for %s: %s", email, ", ".join(user.providers))
        return user.providers

    async def get_onboarding_status(self, email: str, session: AsyncSession) -> OnboardingStatus:
        """Whether the provider account still needs a profile row."""
        user = await self._identity.get_user_by_email(email)
        if user is None:
            raise UserNotFound(email)
        if not user.providers:
            raise NoSignInMethods(email)

        profile = await UserRepository(session).find_by_id(user.uid)
        if profile is None:
            logger.info("User needs onboarding: %s", email)
            return OnboardingStatus(
                needs_onboarding=True,
                providers=user.providers,
                message="User exists in the identity provider, but no profile found in database",
            )

        logger.info("User onboarding complete: %s", email)
        return OnboardingStatus(needs_onboarding=False, message="User profile exists")

    async def reset_password(self, email: str, new_password: str, code: str) -> None:
        """Set a new password once a password-reset passcode for *email* verifies.

        The passcode is consumed before the account lookup, so a failed
        lookup still requires a fresh code.
        """
        result = self._otp.verify(email, OtpPurpose.PASSWORD_RESET, code)
        if not result.ok:
            raise OtpVerificationFailed(result)

        user = await self._identity.get_user_by_email(email)
        if user is None:
            raise UserNotFound(email)
        await self._identity.update_password(user.uid, new_password)
        logger.info("Password reset successfully for %s", email)
