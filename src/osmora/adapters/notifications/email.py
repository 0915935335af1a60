"""SMTP delivery of one-time codes and account notices."""

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import structlog

from osmora.core.auth.notifier import AuthNotifier

logger = structlog.get_logger()

SMTPS_PORT = 465

_HTML_LAYOUT = """\
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h2 style="color: #667eea;">{title}</h2>
    {content}
    <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
    <p style="color: #666; font-size: 12px;">
        This is an automated email from {brand}. Please do not reply.
    </p>
</body>
</html>
"""

_CODE_BLOCK = """\
<div style="background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;
text-align: center; font-size: 32px; letter-spacing: 8px; font-weight: bold;">{code}</div>"""

_TEXT_FOOTER = "\n---\nThis is an automated email from {brand}. Please do not reply.\n"


@dataclass
class EmailConfig:
    """SMTP connection and sender settings."""

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "noreply@osmora.xyz"
    from_name: str = "OSMORA AI"
    use_tls: bool = True
    timeout: float = 30


class EmailNotifier:
    """AuthNotifier that sends multipart (HTML + text) email over SMTP."""

    def __init__(self, config: EmailConfig):
        """Initialize the email notifier.

        Args:
            config: SMTP settings.
        """
        self.config = config

    def send(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        """Deliver one message. Blocking; callers on the loop use a thread.

        Returns:
            True if the server accepted the message, False on SMTP, socket
            or address encoding errors (which are logged).
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
        msg["To"] = ", ".join(to_emails)
        # Clients render the last part they understand, so HTML goes last
        if body_text:
            msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))

        try:
            with self._connect() as server:
                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                # send_message negotiates SMTPUTF8 for non-ASCII addresses
                server.send_message(msg, self.config.from_email, to_emails)
        except (smtplib.SMTPException, OSError, UnicodeError) as e:
            logger.error("email_error", to=to_emails, subject=subject, error=str(e))
            return False

        logger.info("email_sent", to=to_emails, subject=subject)
        return True

    def _connect(self) -> smtplib.SMTP:
        host, port, timeout = self.config.smtp_host, self.config.smtp_port, self.config.timeout
        if port == SMTPS_PORT:
            return smtplib.SMTP_SSL(host, port, timeout=timeout)
        server = smtplib.SMTP(host, port, timeout=timeout)
        if self.config.use_tls:
            try:
                server.starttls()
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server

    async def _deliver(self, email: str, subject: str, title: str, html: str, text: str) -> bool:
        brand = self.config.from_name
        body_html = _HTML_LAYOUT.format(title=escape(title), content=html, brand=escape(brand))
        body_text = f"{title}\n\n{text}\n{_TEXT_FOOTER.format(brand=brand)}"
        return await asyncio.to_thread(self.send, [email], subject, body_html, body_text)

    async def send_verification_code(self, email: str, code: str, ttl_hours: int) -> bool:
        """Send the email verification code."""
        html = f"""
    <p>Thanks for signing up. Enter this code to verify your email address:</p>
    {_CODE_BLOCK.format(code=escape(code))}
    <p><strong>This code will expire in {ttl_hours} hours.</strong></p>
    <p>If you didn't create this account, please ignore this email.</p>"""
        text = (
            f"Your verification code is: {code}\n\n"
            f"This code will expire in {ttl_hours} hours.\n"
            "If you didn't create this account, please ignore this email."
        )
        return await self._deliver(
            email, f"{self.config.from_name} - Verify Your Email", "Verify Your Email", html, text
        )

    async def send_reset_code(self, email: str, code: str, ttl_minutes: int) -> bool:
        """Send the password reset code."""
        html = f"""
    <p>We received a request to reset your password. Your one-time code is:</p>
    {_CODE_BLOCK.format(code=escape(code))}
    <p><strong>This code will expire in {ttl_minutes} minutes.</strong></p>
    <p>If you didn't request a password reset, you can ignore this email.
    Your password will not change.</p>"""
        text = (
            f"Your one-time code is: {code}\n\n"
            f"This code will expire in {ttl_minutes} minutes.\n"
            "If you didn't request a password reset, you can ignore this email."
        )
        return await self._deliver(
            email, f"{self.config.from_name} - Password Reset Code", "Password Reset", html, text
        )

    async def send_welcome(self, email: str, name: str) -> bool:
        """Send the welcome email after verification."""
        html = f"""
    <p>Hello {escape(name)},</p>
    <p>Your account has been verified. You can now log in and start
    exploring our AI services.</p>"""
        text = (
            f"Hello {name},\n\n"
            "Your account has been verified. "
            "You can now log in and start exploring our AI services."
        )
        title = f"Welcome to {self.config.from_name}"
        return await self._deliver(email, title, title, html, text)


# Verify we implement the protocol
_notifier: AuthNotifier = EmailNotifier(EmailConfig(smtp_host=""))
