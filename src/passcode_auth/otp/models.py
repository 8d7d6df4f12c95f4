"""Value objects for one-time passcode challenges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OtpPurpose(str, Enum):
    """The flow a challenge was issued for; only that flow may consume it."""

    REGISTRATION = "registration"
    FORGOT_PASSWORD = "forgot-password"
    PASSWORD_RESET = "password-reset"
    EMAIL_RESET = "email-reset"

    @property
    def label(self) -> str:
        """Human-readable name used in log lines and email subjects."""
        return self.value.replace("-", " ")


@dataclass(frozen=True, eq=False)
class Challenge:
    """A stored passcode awaiting verification.

    Instances are immutable and compared by identity: a re-issue for the
    same ``(identity, purpose)`` creates a new object, which is what lets a
    failed issuance roll back only the challenge it inserted itself.
    """

    identity: str
    purpose: OtpPurpose
    code: str
    issued_at: datetime
    expires_at: datetime

    @property
    def key(self) -> tuple[str, OtpPurpose]:
        return (self.identity, self.purpose)

    def is_expired(self, now: datetime) -> bool:
        """Expiry is exclusive: the challenge is dead at ``expires_at`` itself."""
        return now >= self.expires_at
