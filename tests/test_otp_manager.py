"""Tests for the OTP lifecycle manager — issuance, verification and their races."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock

import pytest

from passcode_auth.otp.errors import DeliveryError, VerificationResult, VerifyOutcome
from passcode_auth.otp.manager import OtpManager
from passcode_auth.otp.models import Challenge, OtpPurpose

REG = OtpPurpose.REGISTRATION
FORGOT = OtpPurpose.FORGOT_PASSWORD


def _codes(*codes: str):
    it = iter(codes)
    return lambda: next(it)


# ──────────────────────────────────────────────────────────
# Issuance
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_issue_hands_code_to_delivery(manager, delivery):
    await manager.issue("a@x.com", REG)

    assert len(delivery.sent) == 1
    identity, code, human_expiry, purpose = delivery.sent[0]
    assert identity == "a@x.com"
    assert purpose is REG
    assert len(code) == 5 and code.isdigit()
    # 06:52 UTC + 15 min, rendered in Asia/Manila (UTC+8)
    assert human_expiry == "3:07 PM"


@pytest.mark.asyncio
async def test_issue_returns_nothing_to_caller(manager):
    assert await manager.issue("a@x.com", REG) is None


@pytest.mark.asyncio
async def test_issue_stores_challenge_with_fixed_lifetime(store, delivery, clock):
    manager = OtpManager(store, delivery, clock=clock)
    await manager.issue("a@x.com", REG)

    challenge = store.take("a@x.com", REG)
    assert challenge.issued_at == clock.now
    assert challenge.expires_at - challenge.issued_at == manager.ttl


# ──────────────────────────────────────────────────────────
# Concrete scenarios
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_verify_success_then_single_use(store, delivery, clock):
    manager = OtpManager(store, delivery, generator=_codes("04821"), clock=clock)
    await manager.issue("a@x.com", REG)

    result = manager.verify("a@x.com", REG, "04821")
    assert result == VerificationResult(VerifyOutcome.VERIFIED, "a@x.com", REG)
    assert result.ok

    again = manager.verify("a@x.com", REG, "04821")
    assert again.outcome is VerifyOutcome.NOT_FOUND
    assert not again.ok


@pytest.mark.asyncio
async def test_verify_after_sixteen_minutes_is_expired(store, delivery, clock):
    manager = OtpManager(store, delivery, generator=_codes("99999"), clock=clock)
    await manager.issue("b@x.com", FORGOT)

    clock.advance(minutes=16)
    assert manager.verify("b@x.com", FORGOT, "99999").outcome is VerifyOutcome.EXPIRED


# ──────────────────────────────────────────────────────────
# Slot semantics
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_reissue_invalidates_previous_code(store, delivery, clock):
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)
    await manager.issue("a@x.com", REG)
    await manager.issue("a@x.com", REG)

    result = manager.verify("a@x.com", REG, "11111")
    assert not result.ok
    assert result.outcome is VerifyOutcome.INVALID_CODE


@pytest.mark.asyncio
async def test_reissue_second_code_verifies_and_first_is_gone(store, delivery, clock):
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)
    await manager.issue("a@x.com", REG)
    await manager.issue("a@x.com", REG)

    assert len(store) == 1
    assert manager.verify("a@x.com", REG, "22222").ok
    assert manager.verify("a@x.com", REG, "11111").outcome is VerifyOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_codes_do_not_cross_identities(store, delivery, clock):
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)
    await manager.issue("a@x.com", REG)
    await manager.issue("b@x.com", REG)

    assert manager.verify("b@x.com", REG, "11111").outcome is VerifyOutcome.INVALID_CODE
    assert manager.verify("a@x.com", REG, "11111").ok


@pytest.mark.asyncio
async def test_identity_with_no_challenge_for_any_purpose(manager, delivery):
    await manager.issue("a@x.com", REG)
    for purpose in OtpPurpose:
        result = manager.verify("b@x.com", purpose, delivery.last_code)
        assert result.outcome is VerifyOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_codes_do_not_cross_purposes(manager, delivery):
    await manager.issue("a@x.com", REG)
    code = delivery.last_code

    assert manager.verify("a@x.com", FORGOT, code).outcome is VerifyOutcome.NOT_FOUND
    # The registration challenge is untouched by the other purpose's lookup.
    assert manager.verify("a@x.com", REG, code).ok


@pytest.mark.asyncio
async def test_wrong_code_burns_the_slot(manager, delivery):
    await manager.issue("a@x.com", REG)
    code = delivery.last_code
    wrong = "00000" if code != "00000" else "11111"

    assert manager.verify("a@x.com", REG, wrong).outcome is VerifyOutcome.INVALID_CODE
    assert manager.verify("a@x.com", REG, code).outcome is VerifyOutcome.NOT_FOUND


def test_never_issued_is_not_found(manager):
    result = manager.verify("ghost@x.com", REG, "12345")
    assert result.outcome is VerifyOutcome.NOT_FOUND
    assert result.message == "No OTP found for this email. Please request a new one."


# ──────────────────────────────────────────────────────────
# Expiry boundary
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_just_before_expiry_verifies(manager, delivery, clock):
    await manager.issue("a@x.com", REG)
    clock.advance(minutes=14, seconds=59)
    assert manager.verify("a@x.com", REG, delivery.last_code).ok


@pytest.mark.asyncio
async def test_at_expiry_instant_is_expired(manager, delivery, clock):
    await manager.issue("a@x.com", REG)
    clock.advance(minutes=15)
    assert manager.verify("a@x.com", REG, delivery.last_code).outcome is VerifyOutcome.EXPIRED


@pytest.mark.asyncio
async def test_expired_then_not_found(manager, delivery, clock):
    await manager.issue("a@x.com", REG)
    code = delivery.last_code
    clock.advance(minutes=15, milliseconds=1)

    assert manager.verify("a@x.com", REG, code).outcome is VerifyOutcome.EXPIRED
    assert manager.verify("a@x.com", REG, code).outcome is VerifyOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_expired_check_wins_over_wrong_code(manager, clock):
    await manager.issue("a@x.com", REG)
    clock.advance(hours=1)
    result = manager.verify("a@x.com", REG, "not-it")
    assert result.outcome is VerifyOutcome.EXPIRED


# ──────────────────────────────────────────────────────────
# Purpose guard for stores that do not key by purpose
# ──────────────────────────────────────────────────────────
class _IdentityKeyedStore:
    """Store that ignores purpose in its key, holding one challenge per identity."""

    def __init__(self) -> None:
        self._by_identity: dict[str, Challenge] = {}

    def put(self, challenge):
        self._by_identity[challenge.identity] = challenge

    def take(self, identity, purpose):
        return self._by_identity.pop(identity, None)

    def remove(self, identity, purpose, expected=None):
        current = self._by_identity.get(identity)
        if current is None or (expected is not None and current is not expected):
            return False
        del self._by_identity[identity]
        return True


@pytest.mark.asyncio
async def test_purpose_mismatch_with_identity_keyed_store(delivery, clock):
    manager = OtpManager(_IdentityKeyedStore(), delivery, clock=clock)
    await manager.issue("a@x.com", REG)

    result = manager.verify("a@x.com", FORGOT, delivery.last_code)
    assert result.outcome is VerifyOutcome.PURPOSE_MISMATCH
    assert result.message == "Invalid OTP context. Please use the correct verification flow."
    assert manager.verify("a@x.com", REG, delivery.last_code).outcome is VerifyOutcome.NOT_FOUND


# ──────────────────────────────────────────────────────────
# Delivery failure and rollback
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_delivery_error_rolls_back_and_key_is_retryable(store, clock):
    delivery = AsyncMock()
    delivery.deliver.side_effect = [DeliveryError("a@x.com", REG, "smtp down"), None]
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)

    with pytest.raises(DeliveryError):
        await manager.issue("a@x.com", REG)
    assert len(store) == 0

    await manager.issue("a@x.com", REG)
    assert manager.verify("a@x.com", REG, "22222").ok


@pytest.mark.asyncio
async def test_unexpected_delivery_exception_is_wrapped(store, clock):
    delivery = AsyncMock()
    delivery.deliver.side_effect = ConnectionResetError("peer reset")
    manager = OtpManager(store, delivery, clock=clock)

    with pytest.raises(DeliveryError) as excinfo:
        await manager.issue("a@x.com", REG)

    assert isinstance(excinfo.value.__cause__, ConnectionResetError)
    assert excinfo.value.purpose is REG
    assert len(store) == 0


@pytest.mark.asyncio
async def test_failed_delivery_restores_nothing_from_before(store, clock):
    delivery = AsyncMock()
    delivery.deliver.side_effect = [None, DeliveryError("a@x.com", REG)]
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)

    await manager.issue("a@x.com", REG)
    with pytest.raises(DeliveryError):
        await manager.issue("a@x.com", REG)

    # The earlier challenge was overwritten by the failed issue and is gone.
    assert manager.verify("a@x.com", REG, "11111").outcome is VerifyOutcome.NOT_FOUND


class _GatedDelivery:
    """First delivery blocks until released, then fails; later ones succeed."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls = 0

    async def deliver(self, identity, code, human_expiry, purpose):
        self.calls += 1
        if self.calls == 1:
            await self.release.wait()
            raise DeliveryError(identity, purpose, "timed out")


@pytest.mark.asyncio
async def test_rollback_spares_a_concurrent_newer_challenge(store, clock):
    delivery = _GatedDelivery()
    manager = OtpManager(store, delivery, generator=_codes("11111", "22222"), clock=clock)

    slow = asyncio.create_task(manager.issue("a@x.com", REG))
    await asyncio.sleep(0)
    await manager.issue("a@x.com", REG)

    delivery.release.set()
    with pytest.raises(DeliveryError):
        await slow

    assert manager.verify("a@x.com", REG, "22222").ok


# ──────────────────────────────────────────────────────────
# Concurrent verification
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_concurrent_verifications_succeed_at_most_once(manager, delivery):
    await manager.issue("a@x.com", REG)
    code = delivery.last_code

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: manager.verify("a@x.com", REG, code), range(8)))

    outcomes = [r.outcome for r in results]
    assert outcomes.count(VerifyOutcome.VERIFIED) == 1
    assert outcomes.count(VerifyOutcome.NOT_FOUND) == 7

