"""SQLAlchemy User profile model."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class User(Base):
    """Profile row for an account held by the identity provider.

    ``id`` is the provider's uid, so a provider account without a row here
    has not finished onboarding.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, doc="Identity provider uid")
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("ix_users_email", "email"),)

    def __repr__(self) -> str:
        return f"<User id={self.id!r} email={self.email!r}>"
