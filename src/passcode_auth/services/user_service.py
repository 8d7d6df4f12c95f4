"""User service — profile onboarding and edits for signed-in accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.database.repository import UserRepository
from passcode_auth.models.user import User
from passcode_auth.services.identity_provider import IdentityProviderClient, IdentityUser

logger = logging.getLogger(__name__)


class ProfileError(Exception):
    """Base class for profile failures."""


class ProfileAlreadyExists(ProfileError):
    """The account (or its email) already has a profile row."""


class ProfileNotFound(ProfileError):
    """The signed-in account has not completed onboarding."""


@dataclass
class EmailAvailability:
    available: bool
    message: str


class UserService:
    """Creates, reads and updates the profile that completes onboarding."""

    def __init__(self, identity: IdentityProviderClient) -> None:
        self._identity = identity

    async def check_email_availability(
        self, email: str, session: AsyncSession
    ) -> EmailAvailability:
        """An email is free when neither the provider nor the profile store knows it."""
        taken = await UserRepository(session).email_exists(email)
        if not taken:
            taken = await self._identity.get_user_by_email(email) is not None

        if taken:
            logger.info("Email already registered: %s", email)
            return EmailAvailability(available=False, message="Email is already registered")
        logger.info("Email available: %s", email)
        return EmailAvailability(available=True, message="Email is available")

    async def get_profile(self, account: IdentityUser, session: AsyncSession) -> User:
        user = await UserRepository(session).find_by_id(account.uid)
        if user is None:
            raise ProfileNotFound(account.uid)
        return user

    async def create_profile(
        self,
        account: IdentityUser,
        first_name: str,
        last_name: str,
        session: AsyncSession,
    ) -> User:
        """Finish onboarding: store the profile for the signed-in *account*."""
        repo = UserRepository(session)
        if await repo.find_by_id(account.uid) is not None:
            raise ProfileAlreadyExists(account.uid)
        if await repo.email_exists(account.email):
            raise ProfileAlreadyExists(account.email)

        user = await repo.create(
            account.uid, account.email, first_name.strip(), last_name.strip()
        )
        logger.info("User registered successfully: %s", account.email)
        return user

    async def update_profile(
        self,
        account: IdentityUser,
        session: AsyncSession,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        user = await self.get_profile(account, session)
        user = await UserRepository(session).update(
            user,
            first_name=first_name.strip() if first_name is not None else None,
            last_name=last_name.strip() if last_name is not None else None,
        )
        logger.info("User profile updated: %s", account.email)
        return user
