"""Shared fixtures: controllable clock, recording delivery, in-memory profile DB."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from passcode_auth.models.user import Base, User
from passcode_auth.otp.manager import OtpManager
from passcode_auth.otp.models import OtpPurpose
from passcode_auth.otp.store import InMemoryChallengeStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingDelivery:
    """Delivery double that remembers every code it was handed."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, OtpPurpose]] = []

    async def deliver(
        self, identity: str, code: str, human_expiry: str, purpose: OtpPurpose
    ) -> None:
        self.sent.append((identity, code, human_expiry, purpose))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 6, 52, tzinfo=UTC))


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def store():
    return InMemoryChallengeStore()


@pytest.fixture
def manager(store, delivery, clock):
    return OtpManager(store, delivery, clock=clock, expiry_timezone="Asia/Manila")


@pytest_asyncio.fixture
async def db_session():
    """Create tables in a fresh in-memory DB, seed profiles and yield a session."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        session.add_all(
            [
                User(
                    id="uid-alice",
                    email="alice@example.com",
                    first_name="Alice",
                    last_name="Johnson",
                ),
                User(
                    id="uid-carol",
                    email="carol@example.com",
                    first_name="Carol",
                    last_name="Davis",
                ),
            ]
        )
        await session.commit()
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
