"""User repository — data access layer for user profiles."""

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.models.user import User


class UserRepository:
    """Encapsulates all database queries related to user profiles.

    Writes are flushed, not committed; the request's session owner commits.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        """Look up a profile by email, matched exactly as stored."""
        stmt = select(User).where(User.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> User | None:
        """Look up a profile by identity provider uid."""
        return await self._session.get(User, user_id)

    async def email_exists(self, email: str) -> bool:
        stmt = select(exists().where(User.email == email))
        return bool(await self._session.scalar(stmt))

    async def create(self, user_id: str, email: str, first_name: str, last_name: str) -> User:
        """Insert a profile row for the provider account *user_id*."""
        user = User(id=user_id, email=email, first_name=first_name, last_name=last_name)
        self._session.add(user)
        await self._session.flush()
        return user

    async def update(
        self,
        user: User,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Apply the given fields to *user*; ``None`` leaves a field unchanged."""
        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        await self._session.flush()
        return user
