"""Tests for the EmailService OTP delivery."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from passcode_auth.otp.errors import DeliveryError
from passcode_auth.otp.models import OtpPurpose
from passcode_auth.services.email_service import EmailService, render_otp_html


@pytest.fixture
def smtp_send():
    with patch(
        "passcode_auth.services.email_service.aiosmtplib.send", new_callable=AsyncMock
    ) as send:
        yield send


@pytest.mark.asyncio
async def test_deliver_sends_code_and_expiry(smtp_send):
    await EmailService().deliver("a@x.com", "04821", "3:07 PM", OtpPurpose.REGISTRATION)

    smtp_send.assert_awaited_once()
    msg = smtp_send.await_args.args[0]
    assert msg["To"] == "a@x.com"
    assert "authentication" in msg["Subject"]

    plain = msg.get_body(preferencelist=("plain",)).get_content()
    assert "04821" in plain
    assert "3:07 PM" in plain


@pytest.mark.asyncio
async def test_subject_depends_on_purpose(smtp_send):
    service = EmailService()
    for purpose in OtpPurpose:
        await service.deliver("a@x.com", "12345", "3:07 PM", purpose)

    subjects = [call.args[0]["Subject"] for call in smtp_send.await_args_list]
    assert len(set(subjects)) == len(OtpPurpose)
    assert any("Password Reset" in s for s in subjects)


@pytest.mark.asyncio
async def test_smtp_failure_raises_delivery_error(smtp_send):
    smtp_send.side_effect = aiosmtplib.SMTPConnectError("connection refused")

    with pytest.raises(DeliveryError) as excinfo:
        await EmailService().deliver("a@x.com", "12345", "3:07 PM", OtpPurpose.FORGOT_PASSWORD)

    assert excinfo.value.identity == "a@x.com"
    assert excinfo.value.purpose is OtpPurpose.FORGOT_PASSWORD


@pytest.mark.asyncio
async def test_network_failure_raises_delivery_error(smtp_send):
    smtp_send.side_effect = OSError("network unreachable")

    with pytest.raises(DeliveryError):
        await EmailService().deliver("a@x.com", "12345", "3:07 PM", OtpPurpose.EMAIL_RESET)


def test_html_renders_one_cell_per_digit():
    html = render_otp_html("Use this code.", "04821", "3:07 PM", "Nurtura")
    assert html.count("<td") == 5
    assert ">0</td>" in html
    assert "3:07 PM" in html
