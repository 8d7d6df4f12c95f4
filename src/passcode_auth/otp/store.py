"""Challenge store — one outstanding challenge per (identity, purpose)."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from passcode_auth.otp.models import Challenge, OtpPurpose

logger = logging.getLogger(__name__)


class ChallengeStore(Protocol):
    """Port the OTP manager depends on.

    Implementations must make ``put``, ``take`` and ``remove`` atomic with
    respect to each other.  An expiring cache (Redis, memcached) can sit
    behind this interface without touching :class:`OtpManager`.
    """

    def put(self, challenge: Challenge) -> None:
        """Store *challenge*, replacing whatever held its slot."""

    def take(self, identity: str, purpose: OtpPurpose) -> Challenge | None:
        """Remove and return the challenge for the slot, expired or not."""

    def remove(
        self,
        identity: str,
        purpose: OtpPurpose,
        expected: Challenge | None = None,
    ) -> bool:
        """Delete the slot; with *expected*, only if it still holds that object."""


class InMemoryChallengeStore:
    """Lock-guarded dict keyed by ``(identity, purpose)``.

    Nothing is swept in the background: an expired entry stays until it is
    taken or overwritten.  The keyspace is bounded by active users, so the
    leftovers are small.
    """

    def __init__(self) -> None:
        self._challenges: dict[tuple[str, OtpPurpose], Challenge] = {}
        self._lock = threading.Lock()

    def put(self, challenge: Challenge) -> None:
        with self._lock:
            replaced = self._challenges.get(challenge.key)
            self._challenges[challenge.key] = challenge
        if replaced is not None:
            logger.debug(
                "Replaced outstanding %s OTP for %s",
                challenge.purpose.label,
                challenge.identity,
            )

    def take(self, identity: str, purpose: OtpPurpose) -> Challenge | None:
        with self._lock:
            return self._challenges.pop((identity, purpose), None)

    def remove(
        self,
        identity: str,
        purpose: OtpPurpose,
        expected: Challenge | None = None,
    ) -> bool:
        key = (identity, purpose)
        with self._lock:
            current = self._challenges.get(key)
            if current is None:
                return False
            if expected is not None and current is not expected:
                return False
            del self._challenges[key]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)
