"""SMTP delivery of digest summaries."""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

from notice_digest.core.errors import AuthError, TransientExternalError

if TYPE_CHECKING:
    from notice_digest.core.config import SmtpSettings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    """Outgoing plain-text or HTML message.

    Attributes:
        to: Recipient address
        subject: Subject line
        body: Message body
        html: Whether body contains HTML content
    """

    to: str
    subject: str
    body: str
    html: bool = False


class SmtpError(TransientExternalError):
    """Raised when SMTP connection or sending fails."""


class SmtpClient:
    """SMTP client with context manager connection handling.

    Supports both STARTTLS and implicit SSL connections.

    Example:
        >>> with SmtpClient(settings) as client:
        ...     client.send(OutgoingMessage(to="ops@example.com", ...))
    """

    def __init__(self, settings: SmtpSettings, *, timeout: float = 30.0) -> None:
        self._settings = settings
        self._timeout = timeout
        self._connection: smtplib.SMTP | None = None

    def __enter__(self) -> SmtpClient:
        """Enter context manager, establishing connection."""
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        """Exit context manager, closing connection."""
        self.disconnect()

    def connect(self) -> None:
        """Establish the SMTP connection and authenticate.

        Raises:
            AuthError: If the server rejects the credentials
            SmtpError: If connecting fails
        """
        if not self._settings.host:
            raise SmtpError("SMTP host not configured")

        LOGGER.info(
            "Connecting to SMTP server %s:%d", self._settings.host, self._settings.port
        )
        try:
            if self._settings.use_tls:
                self._connection = smtplib.SMTP(
                    self._settings.host, self._settings.port, timeout=self._timeout
                )
                self._connection.starttls()
            else:
                self._connection = smtplib.SMTP_SSL(
                    self._settings.host, self._settings.port, timeout=self._timeout
                )

            if self._settings.username and self._settings.password:
                LOGGER.debug("Authenticating as %s", self._settings.username)
                self._connection.login(self._settings.username, self._settings.password)
        except smtplib.SMTPAuthenticationError as exc:
            LOGGER.error("SMTP authentication failed: %s", exc)
            raise AuthError(f"SMTP authentication failed: {exc}") from exc
        except smtplib.SMTPException as exc:
            LOGGER.error("SMTP error: %s", exc)
            raise SmtpError(f"SMTP error: {exc}") from exc
        except OSError as exc:
            LOGGER.error("Network error connecting to SMTP server: %s", exc)
            raise SmtpError(f"Network error: {exc}") from exc

    def disconnect(self) -> None:
        """Close the SMTP connection gracefully."""
        if self._connection:
            try:
                self._connection.quit()
            except smtplib.SMTPException as exc:
                LOGGER.warning("Error closing SMTP connection: %s", exc)
            finally:
                self._connection = None

    def send(self, message: OutgoingMessage) -> None:
        """Send ``message`` over the open connection."""
        if not self._connection:
            raise SmtpError("Not connected to SMTP server")

        try:
            refused = self._connection.send_message(self._build_mime_message(message))
        except smtplib.SMTPException as exc:
            LOGGER.error("Failed to send message: %s", exc)
            raise SmtpError(f"Failed to send message: {exc}") from exc
        if refused:
            raise SmtpError(f"Some recipients were refused: {refused}")
        LOGGER.info("Message sent to %s: %s", message.to, message.subject)

    def _build_mime_message(self, message: OutgoingMessage) -> MIMEMultipart:
        mime_msg = MIMEMultipart("alternative")
        from_address = self._settings.username or ""
        if self._settings.from_name:
            from_address = f"{self._settings.from_name} <{self._settings.username}>"

        mime_msg["From"] = from_address
        mime_msg["To"] = message.to
        mime_msg["Subject"] = message.subject
        subtype = "html" if message.html else "plain"
        mime_msg.attach(MIMEText(message.body, subtype, "utf-8"))
        return mime_msg


class SmtpDigestDelivery:
    """Send digest summaries through a short-lived SMTP connection."""

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings

    def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver one plain-text summary to ``recipient``."""
        with SmtpClient(self._settings) as client:
            client.send(OutgoingMessage(to=recipient, subject=subject, body=body))


__all__ = ["OutgoingMessage", "SmtpClient", "SmtpDigestDelivery", "SmtpError"]
