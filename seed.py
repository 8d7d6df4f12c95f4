"""Seed script — populates the database with sample user profiles for testing."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from passcode_auth.database.engine import async_session_factory, init_db
from passcode_auth.models.user import User

SAMPLE_USERS = [
    User(id="uid-alice", email="alice@example.com", first_name="Alice", last_name="Johnson"),
    User(id="uid-bob", email="bob@example.com", first_name="Bob", last_name="Smith"),
    User(id="uid-carol", email="carol@example.com", first_name="Carol", last_name="Davis"),
]


async def seed() -> None:
    """Insert sample profiles into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        for user in SAMPLE_USERS:
            session.add(user)
        await session.commit()
    print(f"✅ Seeded {len(SAMPLE_USERS)} users into the database.")


if __name__ == "__main__":
    asyncio.run(seed())
