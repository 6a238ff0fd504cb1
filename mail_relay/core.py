"""Lifecycle owner of the relay's collaborators.

:class:`MailRelayCore` is built once at startup from :class:`RelaySettings`
and handed to :func:`mail_relay.api.create_app`. It owns the only process
wide state: the resolved transport and the rate limiter counters.
"""

from __future__ import annotations

from typing import Optional

from .batch import BatchProcessor
from .config import RelaySettings, TransportConfig, resolve_transport
from .dispatcher import MailDispatcher
from .logger import get_logger
from .prometheus import MailMetrics
from .rate_limit import RateLimiter
from .transport import MailTransport, SMTPTransport


class MailRelayCore:
    """Wire transport, dispatcher, batch processor, limiter and metrics together."""

    def __init__(
        self,
        settings: RelaySettings | None = None,
        *,
        transport: Optional[MailTransport] = None,
        rate_limiter: Optional[RateLimiter] = None,
        metrics: Optional[MailMetrics] = None,
        logger=None,
    ):
        """Resolve the transport unless one is injected and build the collaborators."""
        self.settings = settings or RelaySettings()
        self.logger = logger or get_logger()
        self.metrics = metrics or MailMetrics()

        self.transport_config: TransportConfig | None = None
        if transport is None:
            self.transport_config = resolve_transport(self.settings)
            if self.transport_config is not None:
                transport = SMTPTransport(self.transport_config)
        self.transport = transport

        self.rate_limiter = rate_limiter or RateLimiter(
            points=self.settings.rate_limit_points,
            duration=self.settings.rate_limit_duration,
        )
        self.dispatcher = MailDispatcher(
            self.transport,
            self.settings.sender,
            metrics=self.metrics,
            log_delivery_activity=self.settings.log_delivery_activity,
        )
        self.batch = BatchProcessor(
            self.dispatcher,
            delay=self.settings.batch_delay_ms / 1000.0,
        )

    @property
    def email_configured(self) -> bool:
        return self.dispatcher.configured

    @property
    def max_batch_size(self) -> int:
        return max(0, self.settings.max_batch_size)

    async def start(self) -> None:
        """Log the effective configuration."""
        if self.transport_config is not None:
            self.logger.info("Mail transport configured: %r", self.transport_config)
        elif self.transport is None:
            self.logger.warning("Mail transport not configured; send requests will be rejected")
        if self.transport is not None and not self.settings.sender:
            self.logger.warning("No sender address configured (FROM_EMAIL); messages will carry no From header")
        self.logger.info(
            "Rate limit: %d requests per %.0fs per client; batch delay %dms",
            self.rate_limiter.points,
            self.rate_limiter.duration,
            self.settings.batch_delay_ms,
        )

    async def stop(self) -> None:
        """Close transport resources."""
        if self.transport is not None:
            await self.transport.close()
