"""Email service — delivers one-time passcodes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import formataddr

import aiosmtplib

from passcode_auth.config import settings
from passcode_auth.otp.errors import DeliveryError
from passcode_auth.otp.models import OtpPurpose

logger = logging.getLogger(__name__)

# Subject line and the sentence explaining what the code is for.
_OTP_COPY: dict[OtpPurpose, tuple[str, str]] = {
    OtpPurpose.REGISTRATION: (
        "OTP for your {app} authentication",
        "To finish creating your {app} account, please use the One Time Password (OTP) below.",
    ),
    OtpPurpose.FORGOT_PASSWORD: (
        "Password Reset OTP for {app}",
        "To reset your {app} account password, please use the One Time Password (OTP) below. "
        "Enter this code in the password reset page to proceed.",
    ),
    OtpPurpose.PASSWORD_RESET: (
        "Change Password OTP for {app}",
        "To change the password of your {app} account, please use the One Time Password (OTP) below.",
    ),
    OtpPurpose.EMAIL_RESET: (
        "Email Change OTP for {app}",
        "To confirm this new email address for your {app} account, please use the "
        "One Time Password (OTP) below.",
    ),
}

_DIGIT_CELL = (
    '<td style="background-color:#F3F5F3;color:#10241B;font-size:18px;font-weight:bold;'
    'padding:6px 10px;border-radius:6px;border:1px solid #E0E4E0;text-align:center;'
    'min-width:28px;">{digit}</td>'
)


def render_otp_html(intro: str, code: str, expiry_time: str, app_name: str) -> str:
    """HTML body showing the code one digit per cell."""
    cells = "".join(_DIGIT_CELL.format(digit=d) for d in code)
    return (
        '<div style="font-family:Arial,sans-serif;font-size:14px;color:#333333;">'
        f"<p>{intro}</p>"
        f'<table cellspacing="6" cellpadding="0" border="0"><tr>{cells}</tr></table>'
        f"<p>This code is valid until <strong>{expiry_time}</strong>. "
        "Do not share it with anyone.</p>"
        f"<p>{app_name} will never contact you about this email or ask for any login "
        "codes or links. Beware of phishing scams.</p>"
        "</div>"
    )


class EmailService:
    """Sends transactional emails using the configured SMTP server.

    Implements the OTP delivery contract: :meth:`deliver` either returns
    normally or raises :class:`DeliveryError`.
    """

    async def deliver(
        self,
        identity: str,
        code: str,
        human_expiry: str,
        purpose: OtpPurpose,
    ) -> None:
        """Email *code* to *identity* using the copy for *purpose*."""
        subject_tpl, intro_tpl = _OTP_COPY[purpose]
        subject = subject_tpl.format(app=settings.app_name)
        intro = intro_tpl.format(app=settings.app_name)

        msg = self._new_message(identity, subject)
        msg.set_content(
            f"{intro}\n\n"
            f"    {code}\n\n"
            f"This code is valid until {human_expiry}. Do not share it with anyone.\n\n"
            f"The {settings.app_name} Team"
        )
        msg.add_alternative(
            render_otp_html(intro, code, human_expiry, settings.app_name),
            subtype="html",
        )

        logger.info("Sending %s OTP email to %s", purpose.label, identity)
        try:
            await self._send(msg)
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise DeliveryError(identity, purpose, str(exc)) from exc
        logger.info("%s OTP email sent to %s", purpose.label.capitalize(), identity)

    @staticmethod
    def _new_message(to_email: str, subject: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((settings.email_from_name, settings.email_from))
        msg["To"] = to_email
        return msg

    @staticmethod
    async def _send(msg: EmailMessage) -> None:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            start_tls=settings.smtp_start_tls,
        )
