"""OTP lifecycle manager — issuance and verification of one-time passcodes.

Per ``(identity, purpose)`` slot the lifecycle is::

    Absent ──issue──▶ Pending ──verify/overwrite──▶ Absent

``verify`` always consumes the slot: a correct code, a wrong code and an
expired code all leave it empty, so every failed attempt requires a fresh
``issue``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from passcode_auth.otp.errors import DeliveryError, VerificationResult, VerifyOutcome
from passcode_auth.otp.models import Challenge, OtpPurpose
from passcode_auth.otp.passcode import generate_passcode
from passcode_auth.otp.store import ChallengeStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=15)


class OtpDelivery(Protocol):
    """Side channel that carries the passcode to the user."""

    async def deliver(
        self,
        identity: str,
        code: str,
        human_expiry: str,
        purpose: OtpPurpose,
    ) -> None:
        """Send *code* to *identity*; raise :class:`DeliveryError` on failure."""


def utc_now() -> datetime:
    return datetime.now(UTC)


class OtpManager:
    """Issues and verifies purpose-bound, single-use passcodes.

    Parameters
    ----------
    store:
        Where outstanding challenges live.  Exclusively owned by this manager.
    delivery:
        Collaborator that sends the code; the only await point in ``issue``.
    generator:
        Zero-argument callable producing a code.  Defaults to a 5-digit one.
    clock:
        Returns the current aware datetime.  Tests pass a controllable one.
    ttl:
        Challenge lifetime, measured from issuance.
    expiry_timezone:
        IANA zone used to render the expiry time shown to the user.
    """

    def __init__(
        self,
        store: ChallengeStore,
        delivery: OtpDelivery,
        *,
        generator: Callable[[], str] | None = None,
        clock: Callable[[], datetime] = utc_now,
        ttl: timedelta = DEFAULT_TTL,
        expiry_timezone: str = "UTC",
    ) -> None:
        self._store = store
        self._delivery = delivery
        self._generate = generator or generate_passcode
        self._clock = clock
        self._ttl = ttl
        self._tz = ZoneInfo(expiry_timezone)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    # ── Issuance ─────────────────────────────────────────

    async def issue(self, identity: str, purpose: OtpPurpose) -> None:
        """Create a challenge for the slot and hand its code to delivery.

        Any earlier challenge for the same slot is discarded.  If delivery
        fails the new challenge is removed again and :class:`DeliveryError`
        is raised, leaving the slot free for an immediate retry.
        """
        issued_at = self._clock()
        challenge = Challenge(
            identity=identity,
            purpose=purpose,
            code=self._generate(),
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )
        self._store.put(challenge)
        logger.info("OTP stored for %s with purpose: %s", identity, purpose.value)

        try:
            await self._delivery.deliver(
                identity,
                challenge.code,
                self.human_expiry(challenge.expires_at),
                purpose,
            )
        except DeliveryError:
            self._rollback(challenge)
            raise
        except Exception as exc:
            self._rollback(challenge)
            raise DeliveryError(identity, purpose, str(exc)) from exc

        logger.info("%s OTP sent successfully to %s", purpose.label.capitalize(), identity)

    def _rollback(self, challenge: Challenge) -> None:
        # A concurrent issue may already own the slot; leave its challenge alone.
        removed = self._store.remove(challenge.identity, challenge.purpose, expected=challenge)
        logger.error(
            "Failed to send %s OTP to %s (rolled back: %s)",
            challenge.purpose.label,
            challenge.identity,
            removed,
        )

    def human_expiry(self, expires_at: datetime) -> str:
        """Render *expires_at* as wall-clock time, e.g. ``"3:07 PM"``."""
        local = expires_at.astimezone(self._tz)
        hour = local.hour % 12 or 12
        return f"{hour}:{local:%M %p}"

    # ── Verification ─────────────────────────────────────

    def verify(self, identity: str, purpose: OtpPurpose, code: str) -> VerificationResult:
        """Check *code* against the slot, consuming it whatever the outcome."""
        challenge = self._store.take(identity, purpose)

        if challenge is None:
            logger.warning("OTP verification failed: No OTP found for %s", identity)
            return VerificationResult(VerifyOutcome.NOT_FOUND, identity, purpose)

        if challenge.is_expired(self._clock()):
            logger.warning("OTP verification failed: Expired OTP for %s", identity)
            return VerificationResult(VerifyOutcome.EXPIRED, identity, purpose)

        if challenge.purpose is not purpose:
            logger.warning(
                "OTP verification failed: Purpose mismatch for %s. Expected: %s, Got: %s",
                identity,
                challenge.purpose.value,
                purpose.value,
            )
            return VerificationResult(VerifyOutcome.PURPOSE_MISMATCH, identity, purpose)

        if challenge.code != code:
            logger.warning("OTP verification failed: Invalid code for %s", identity)
            return VerificationResult(VerifyOutcome.INVALID_CODE, identity, purpose)

        logger.info(
            "OTP verified successfully for %s with purpose of %s", identity, purpose.value
        )
        return VerificationResult(VerifyOutcome.VERIFIED, identity, purpose)
