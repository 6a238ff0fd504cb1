"""Mail dispatcher: build one message and hand it to the configured transport."""

from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .logger import get_logger
from .prometheus import MailMetrics
from .transport import MailTransport, TransportError

NOT_CONFIGURED_MESSAGE = "Email service is not configured on the server"


class ConfigurationError(RuntimeError):
    """Raised when a send is attempted while no transport was resolved."""

    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE):
        super().__init__(message)
        self.code = "email_not_configured"


@dataclass(frozen=True)
class DispatchResult:
    """Tagged outcome of one send: a message id on success, an error otherwise."""

    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, message_id: str) -> "DispatchResult":
        return cls(ok=True, message_id=message_id)

    @classmethod
    def failure(cls, error: str) -> "DispatchResult":
        return cls(ok=False, error=error)


def text_to_html(body: str) -> str:
    """Turn line breaks into ``<br>`` tags; nothing else is escaped."""
    return body.replace("\n", "<br>")


class MailDispatcher:
    """Send single messages from the fixed relay sender."""

    def __init__(
        self,
        transport: MailTransport | None,
        sender: str | None,
        *,
        metrics: MailMetrics | None = None,
        logger=None,
        log_delivery_activity: bool = False,
    ):
        self.transport = transport
        self.sender = sender
        self.metrics = metrics or MailMetrics()
        self.logger = logger or get_logger("MailRelay.dispatcher")
        self._log_delivery_activity = log_delivery_activity

    @property
    def configured(self) -> bool:
        return self.transport is not None

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        """Build a text message with an HTML alternative derived from ``body``."""
        msg = EmailMessage()
        if self.sender:
            msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)
        msg.add_alternative(text_to_html(body), subtype="html")
        return msg

    async def send(self, recipient: str, subject: str, body: str) -> DispatchResult:
        """Submit one message; provider failures come back as a failed result.

        Raises:
            ConfigurationError: no transport was resolved at startup.
        """
        if self.transport is None:
            raise ConfigurationError()
        if self._log_delivery_activity:
            self.logger.info("Attempting delivery to %s (subject=%r)", recipient, subject)
        try:
            message = self.build_message(recipient, subject, body)
        except ValueError as exc:
            # Header values containing line breaks are refused by the email package.
            self.metrics.inc_error()
            return DispatchResult.failure(str(exc))
        try:
            message_id = await self.transport.send(message)
        except TransportError as exc:
            self.metrics.inc_error()
            self.logger.warning("Delivery to %s failed: %s", recipient, exc)
            return DispatchResult.failure(str(exc))
        self.metrics.inc_sent()
        self.logger.info("Email sent: %s", message_id)
        return DispatchResult.success(message_id)

    async def release(self) -> None:
        """Return transport resources held by the calling request."""
        if self.transport is not None:
            await self.transport.release()
