"""Mail transports: the single capability the relay needs from a provider.

A transport takes a fully built :class:`~email.message.EmailMessage`, hands
it to the provider and returns the provider-assigned message id. Any
provider-side failure is raised as :class:`TransportError` carrying the
provider's text.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid, parseaddr

import aiosmtplib

from .config import TransportConfig
from .logger import get_logger
from .smtp_pool import SMTPPool

logger = get_logger("MailRelay.transport")


class TransportError(RuntimeError):
    """Raised when the provider rejects a message or cannot be reached."""

    def __init__(self, message: str, smtp_code: int | None = None):
        super().__init__(message)
        self.smtp_code = smtp_code


class MailTransport(ABC):
    """Interface implemented by every provider transport."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str:
        """Deliver ``message`` and return the provider message id."""

    async def release(self) -> None:
        """Give back resources held for the calling task."""

    async def close(self) -> None:
        """Release every resource; called once on shutdown."""


def _describe_error(exc: BaseException) -> str:
    text = str(exc)
    if text:
        return text
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "Connection timed out"
    return exc.__class__.__name__


class SMTPTransport(MailTransport):
    """Deliver messages over SMTP with :mod:`aiosmtplib`.

    Connections come from an :class:`SMTPPool` so consecutive sends of the
    same request reuse one authenticated session.
    """

    def __init__(self, config: TransportConfig, pool: SMTPPool | None = None, send_timeout: float = 30.0):
        self.config = config
        self.pool = pool or SMTPPool()
        self.send_timeout = send_timeout

    def _ensure_message_id(self, message: EmailMessage) -> str:
        message_id = message.get("Message-ID")
        if message_id:
            return message_id
        _, sender = parseaddr(message.get("From", ""))
        domain = sender.rpartition("@")[2] or None
        message_id = make_msgid(domain=domain)
        message["Message-ID"] = message_id
        return message_id

    async def send(self, message: EmailMessage) -> str:
        message_id = self._ensure_message_id(message)
        try:
            smtp = await self.pool.get_connection(self.config)
            async with asyncio.timeout(self.send_timeout):
                await smtp.send_message(message)
        except aiosmtplib.SMTPResponseException as exc:
            await self.pool.discard()
            raise TransportError(exc.message or _describe_error(exc), smtp_code=exc.code) from exc
        except (aiosmtplib.SMTPException, asyncio.TimeoutError, OSError, ValueError) as exc:
            await self.pool.discard()
            raise TransportError(_describe_error(exc)) from exc
        return message_id

    async def release(self) -> None:
        await self.pool.discard()

    async def close(self) -> None:
        await self.pool.close_all()
