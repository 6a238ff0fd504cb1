"""Asyncio-friendly pool of authenticated SMTP connections.

A batch runs inside one request task, so connections are kept per task: the
items of a batch reuse the same session while concurrent requests never
share one.
"""

import asyncio
import time
from typing import Dict, Tuple

import aiosmtplib

from .config import TransportConfig
from .logger import get_logger

logger = get_logger("MailRelay.smtp")


class SMTPPool:
    """Reuse SMTP connections per task to reduce connection overhead."""

    def __init__(self, ttl: int = 300):
        """Create a pool with the given time-to-live, in seconds."""
        self.ttl = ttl
        self.pool: Dict[int, Tuple[aiosmtplib.SMTP, float, TransportConfig]] = {}
        self.lock = asyncio.Lock()

    async def _connect(self, config: TransportConfig) -> aiosmtplib.SMTP:
        """Open a new SMTP connection and authenticate if needed."""
        # Implicit TLS (port 465) disables STARTTLS; plain ports upgrade when the server offers it.
        smtp = aiosmtplib.SMTP(
            hostname=config.host,
            port=config.port,
            use_tls=config.use_tls,
            start_tls=False if config.use_tls else None,
            timeout=config.timeout,
        )

        async def _do_connect():
            await smtp.connect()
            if config.user and config.password:
                await smtp.login(config.user, config.password)

        try:
            await asyncio.wait_for(_do_connect(), timeout=config.timeout + 5.0)
        except Exception:
            # Not pooled yet, so nothing else would ever close it.
            smtp.close()
            raise
        logger.debug("Opened SMTP connection to %s:%s", config.host, config.port)
        return smtp

    async def _is_alive(self, smtp: aiosmtplib.SMTP) -> bool:
        """Return ``True`` when the connection responds correctly to NOOP."""
        try:
            code, _ = await asyncio.wait_for(smtp.noop(), timeout=5.0)
            return code == 250
        except Exception:
            return False

    async def _close(self, smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except Exception as exc:
            logger.debug("Ignoring error while closing SMTP connection: %s", exc)

    async def get_connection(self, config: TransportConfig) -> aiosmtplib.SMTP:
        """Return a pooled connection bound to the calling task."""
        task_id = id(asyncio.current_task())

        async with self.lock:
            entry = self.pool.get(task_id)

        if entry:
            smtp, last_used, params = entry
            fresh_enough = (time.time() - last_used) < self.ttl
            if params == config and fresh_enough and await self._is_alive(smtp):
                async with self.lock:
                    self.pool[task_id] = (smtp, time.time(), params)
                return smtp
            async with self.lock:
                self.pool.pop(task_id, None)
            await self._close(smtp)

        smtp = await self._connect(config)
        async with self.lock:
            self.pool[task_id] = (smtp, time.time(), config)
        return smtp

    async def discard(self) -> None:
        """Drop the connection of the calling task, e.g. after a failed send."""
        task_id = id(asyncio.current_task())
        async with self.lock:
            entry = self.pool.pop(task_id, None)
        if entry:
            await self._close(entry[0])

    async def close_all(self) -> None:
        """Close every pooled connection; used on shutdown."""
        async with self.lock:
            items = list(self.pool.values())
            self.pool.clear()
        for smtp, _last_used, _params in items:
            await self._close(smtp)
