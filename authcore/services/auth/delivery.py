"""
Delivery of one-time codes to users.

Handles:
- Composing the message for each code purpose (OTP, reset, verification)
- SMTP delivery with retries for transient failures
- In-memory outbox for development and tests

Channels implement the ``CodeDeliveryChannel`` protocol. The credential
service never knows which channel is in use; ``create_app()`` picks SMTP
when it is configured and the outbox otherwise.
"""

import logging
import smtplib
import threading
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol, runtime_checkable

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from authcore.config import Settings
from authcore.services.auth.tokens import TokenPurpose
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    """Where a code goes. At least one of email / telephone is set."""
    user_id: str
    username: str
    email: str | None = None
    telephone: str | None = None


@dataclass(frozen=True)
class DeliveryMessage:
    purpose: TokenPurpose
    subject: str
    text_body: str
    html_body: str
    code: str
    link: str | None = None


@runtime_checkable
class CodeDeliveryChannel(Protocol):
    """
    Protocol for code delivery channels.

    ``send`` returns only once the message is handed off; any failure is
    raised as ServiceError(INTERNAL). ``can_reach`` tells callers up front
    whether ``send`` has an address it can use for the recipient.
    """

    def can_reach(self, recipient: Recipient) -> bool:
        ...

    def send(self, recipient: Recipient, message: DeliveryMessage) -> None:
        ...


# =============================================================================
# MESSAGE COMPOSITION
# =============================================================================

_SUBJECTS = {
    TokenPurpose.OTP_CHALLENGE: "Your sign-in code",
    TokenPurpose.PASSWORD_RESET: "Reset your password",
    TokenPurpose.EMAIL_VERIFY: "Verify your account",
}

_INTROS = {
    TokenPurpose.OTP_CHALLENGE: "Use the code below to sign in.",
    TokenPurpose.PASSWORD_RESET: "You requested to reset your password.",
    TokenPurpose.EMAIL_VERIFY: "Please verify your account.",
}


def _format_lifetime(seconds: int) -> str:
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = max(1, seconds // 60)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def compose_message(
    app_name: str,
    purpose: TokenPurpose,
    code: str,
    ttl_seconds: int,
    link: str | None = None,
) -> DeliveryMessage:
    """
    Build the subject and bodies for a code delivery.

    Args:
        app_name: Product name shown in the subject
        purpose: Code purpose (selects the wording)
        code: Plaintext one-time code
        ttl_seconds: Code lifetime, shown to the user
        link: Optional frontend link embedding a signed link token

    Returns:
        DeliveryMessage ready for any channel
    """
    lifetime = _format_lifetime(ttl_seconds)
    intro = _INTROS[purpose]
    subject = f"{_SUBJECTS[purpose]} - {app_name}"

    text_lines = [intro, "", f"Your code: {code}"]
    html_link = ""
    if link:
        text_lines += ["", "Or visit this link:", link]
        html_link = f'<p>Or use this link: <a href="{link}">{link}</a></p>'
    text_lines += ["", f"This code expires in {lifetime}.",
                   "If you didn't request this, you can safely ignore this message."]

    html_body = f"""
        <html>
        <body>
            <p>{intro}</p>
            <p>Your code: <strong>{code}</strong></p>
            {html_link}
            <p>This code expires in {lifetime}.</p>
            <p>If you didn't request this, you can safely ignore this message.</p>
        </body>
        </html>
        """

    return DeliveryMessage(
        purpose=purpose,
        subject=subject,
        text_body="\n".join(text_lines),
        html_body=html_body,
        code=code,
        link=link,
    )


# =============================================================================
# CHANNELS
# =============================================================================

class SmtpDeliveryChannel:
    """
    Sends codes by email over SMTP (STARTTLS + login).

    Connection-level failures are retried with exponential backoff; anything
    still failing afterwards surfaces as ServiceError(INTERNAL).
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 8
    RETRY_MULTIPLIER: int = 1

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        from_name: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from = f"{from_name} <{from_email}>"
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpDeliveryChannel":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
            timeout_seconds=settings.smtp_timeout_seconds,
        )

    def can_reach(self, recipient: Recipient) -> bool:
        """Email only; a telephone number is not an SMTP address."""
        return bool(recipient.email)

    def send(self, recipient: Recipient, message: DeliveryMessage) -> None:
        if not recipient.email:
            logger.error(f"Cannot deliver {message.purpose.value} code to user {recipient.user_id}: no email address")
            raise ServiceError.internal("code_delivery", cause="no_email")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self._from
        msg["To"] = recipient.email
        msg.attach(MIMEText(message.text_body, "plain"))
        msg.attach(MIMEText(message.html_body, "html"))

        try:
            self._send_with_retry(msg)
        except OSError as e:  # smtplib errors subclass OSError
            logger.error(f"Failed to send {message.purpose.value} message to user {recipient.user_id}: {e}")
            raise ServiceError.internal("code_delivery", cause=type(e).__name__) from e

        logger.info(f"Sent {message.purpose.value} message to user {recipient.user_id}")

    def _send_with_retry(self, msg: MIMEMultipart) -> None:
        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            # Authentication and recipient refusals are permanent
            retry=retry_if_exception_type(
                (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, ConnectionError, TimeoutError)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> None:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                server.login(self._username, self._password)
                server.send_message(msg)

        _inner()


class InMemoryDeliveryChannel:
    """
    Keeps delivered messages in a process-local outbox.

    Used when SMTP is not configured (development) and in tests, where the
    outbox is how a test reads the code a user would have received. Codes
    are written to the log only in development, at DEBUG level.
    """

    def __init__(self, log_codes: bool = False) -> None:
        self._log_codes = log_codes
        self._lock = threading.Lock()
        self._sent: list[tuple[Recipient, DeliveryMessage]] = []

    def can_reach(self, recipient: Recipient) -> bool:
        return bool(recipient.email or recipient.telephone)

    def send(self, recipient: Recipient, message: DeliveryMessage) -> None:
        with self._lock:
            self._sent.append((recipient, message))
        logger.info(f"Queued {message.purpose.value} message for user {recipient.user_id} in outbox")
        if self._log_codes:
            logger.debug(f"Outbox {message.purpose.value} code for {recipient.username}: {message.code}")

    @property
    def messages(self) -> list[tuple[Recipient, DeliveryMessage]]:
        with self._lock:
            return list(self._sent)

    def latest(self, purpose: TokenPurpose, username: str | None = None) -> DeliveryMessage | None:
        """Most recent message for ``purpose`` (optionally for one user)."""
        with self._lock:
            for recipient, message in reversed(self._sent):
                if message.purpose is purpose and (username is None or recipient.username == username):
                    return message
        return None

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()


def create_delivery_channel(settings: Settings) -> CodeDeliveryChannel:
    """Pick SMTP when configured, the in-memory outbox otherwise."""
    if settings.is_email_configured:
        logger.info(f"Code delivery via SMTP ({settings.smtp_host}:{settings.smtp_port})")
        return SmtpDeliveryChannel.from_settings(settings)
    logger.warning("SMTP not configured, codes are kept in the in-memory outbox")
    return InMemoryDeliveryChannel(log_codes=settings.environment == "development")
