"""Verification outcomes and OTP error types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from passcode_auth.otp.models import OtpPurpose


class VerifyOutcome(Enum):
    """Every way a verification attempt can end."""

    VERIFIED = "OTP verified successfully."
    NOT_FOUND = "No OTP found for this email. Please request a new one."
    EXPIRED = "OTP has expired. Please request a new one."
    PURPOSE_MISMATCH = "Invalid OTP context. Please use the correct verification flow."
    INVALID_CODE = "Invalid OTP code. Please check and try again."

    @property
    def message(self) -> str:
        return self.value


@dataclass(frozen=True)
class VerificationResult:
    """Value object returned by :meth:`OtpManager.verify`.

    Expected business outcomes (not found, expired, wrong code) are values,
    not exceptions. Check :attr:`ok` before acting on the result.
    """

    outcome: VerifyOutcome
    identity: str
    purpose: OtpPurpose

    @property
    def ok(self) -> bool:
        return self.outcome is VerifyOutcome.VERIFIED

    @property
    def message(self) -> str:
        return self.outcome.message


class OtpError(Exception):
    """Base class for OTP engine failures."""


class DeliveryError(OtpError):
    """The passcode could not be handed to the delivery channel.

    The challenge has been rolled back when this is raised, so the caller
    may retry issuance straight away.
    """

    def __init__(self, identity: str, purpose: OtpPurpose, reason: str = "") -> None:
        self.identity = identity
        self.purpose = purpose
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Failed to deliver {purpose.label} OTP to {identity}{detail}")
