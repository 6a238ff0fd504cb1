"""Settings loader and transport resolution for the mail relay.

Options are read from an INI file (default: ``config.ini``) and fall back to
environment variables, then to built-in defaults.

Environment variables:
  RELAY_CONFIG - Path to the INI file (default: config.ini)
  SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS, SMTP_TIMEOUT
  GMAIL_USER, GMAIL_APP_PASSWORD - Gmail shortcut credentials
  FROM_EMAIL - Sender address (default: GMAIL_USER, then SMTP_USER)
  HOST, PORT - Listen address (default: 0.0.0.0:3000)
  RELAY_CORS_ORIGINS - Comma separated list of allowed origins
  RELAY_SECURITY_HEADERS - Add security headers to responses (default: true)
  RELAY_RATE_LIMIT_POINTS - Requests admitted per window (default: 10)
  RELAY_RATE_LIMIT_DURATION - Window length in seconds (default: 60)
  RELAY_BATCH_DELAY_MS - Pause between batch sends (default: 500)
  RELAY_MAX_BATCH_SIZE - Largest accepted batch, 0 for no limit (default: 0)
  RELAY_LOG_LEVEL - Logging level (default: INFO)
  RELAY_LOG_DELIVERY_ACTIVITY - Log every delivery attempt (default: false)

Config file sections/keys:
  [smtp] host, port, secure, user, password, timeout
  [gmail] user, app_password
  [mail] from_email
  [server] host, port, cors_origins, security_headers
  [rate_limit] points, duration
  [batch] delay_ms, max_size
  [logging] level, delivery_activity
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .logger import get_logger

logger = get_logger("MailRelay.config")

GMAIL_HOST = "smtp.gmail.com"
GMAIL_PORT = 465

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5500",
    "http://127.0.0.1:5500",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]


@dataclass(frozen=True)
class TransportConfig:
    """How to reach the upstream mail provider; immutable once resolved."""

    host: str
    port: int
    use_tls: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 10.0
    service: str = "smtp"

    def __repr__(self) -> str:
        masked = "***" if self.password else None
        return (
            f"TransportConfig(service={self.service!r}, host={self.host!r}, port={self.port}, "
            f"use_tls={self.use_tls}, user={self.user!r}, password={masked!r})"
        )


@dataclass
class RelaySettings:
    """Flat view of every option the relay understands."""

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_secure: Optional[bool] = None
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout: float = 10.0
    gmail_user: Optional[str] = None
    gmail_app_password: Optional[str] = None
    from_email: Optional[str] = None
    http_host: str = "0.0.0.0"
    http_port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    security_headers: bool = True
    rate_limit_points: int = 10
    rate_limit_duration: float = 60.0
    batch_delay_ms: int = 500
    max_batch_size: int = 0
    log_level: str = "INFO"
    log_delivery_activity: bool = False

    @property
    def sender(self) -> Optional[str]:
        """Fixed ``From`` address used for every outgoing message."""
        return self.from_email or self.gmail_user or self.smtp_user


def _parse_bool(value: Optional[str], default: Optional[bool]) -> Optional[bool]:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def load_settings(
    config_path: str | os.PathLike | None = None,
    environ: Mapping[str, str] | None = None,
) -> RelaySettings:
    """Build :class:`RelaySettings` from the INI file and the environment.

    An option present in the INI file wins over its environment variable.
    A missing INI file is not an error: the environment alone is enough.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("RELAY_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    parser.read(path)

    def get(section: str, option: str, env_name: str | None = None) -> str | None:
        # Blank values count as unset in both sources.
        if parser.has_option(section, option):
            value = parser.get(section, option).strip()
            if value:
                return value
        if env_name is None:
            return None
        value = env.get(env_name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def get_int(section: str, option: str, env_name: str, default: int) -> int:
        value = get(section, option, env_name)
        return default if value is None else int(value)

    def get_float(section: str, option: str, env_name: str, default: float) -> float:
        value = get(section, option, env_name)
        return default if value is None else float(value)

    origins_raw = get("server", "cors_origins", "RELAY_CORS_ORIGINS")
    if origins_raw is None:
        cors_origins = list(DEFAULT_CORS_ORIGINS)
    else:
        cors_origins = [item.strip() for item in origins_raw.split(",") if item.strip()]

    settings = RelaySettings(
        smtp_host=get("smtp", "host", "SMTP_HOST"),
        smtp_port=get_int("smtp", "port", "SMTP_PORT", 587),
        smtp_secure=_parse_bool(get("smtp", "secure", "SMTP_SECURE"), None),
        smtp_user=get("smtp", "user", "SMTP_USER"),
        smtp_password=get("smtp", "password", "SMTP_PASS"),
        smtp_timeout=get_float("smtp", "timeout", "SMTP_TIMEOUT", 10.0),
        gmail_user=get("gmail", "user", "GMAIL_USER"),
        gmail_app_password=get("gmail", "app_password", "GMAIL_APP_PASSWORD"),
        from_email=get("mail", "from_email", "FROM_EMAIL"),
        http_host=get("server", "host", "HOST") or "0.0.0.0",
        http_port=get_int("server", "port", "PORT", 3000),
        cors_origins=cors_origins,
        security_headers=bool(_parse_bool(get("server", "security_headers", "RELAY_SECURITY_HEADERS"), True)),
        rate_limit_points=get_int("rate_limit", "points", "RELAY_RATE_LIMIT_POINTS", 10),
        rate_limit_duration=get_float("rate_limit", "duration", "RELAY_RATE_LIMIT_DURATION", 60.0),
        batch_delay_ms=get_int("batch", "delay_ms", "RELAY_BATCH_DELAY_MS", 500),
        max_batch_size=get_int("batch", "max_size", "RELAY_MAX_BATCH_SIZE", 0),
        log_level=(get("logging", "level", "RELAY_LOG_LEVEL") or "INFO").upper(),
        log_delivery_activity=bool(
            _parse_bool(get("logging", "delivery_activity", "RELAY_LOG_DELIVERY_ACTIVITY"), False)
        ),
    )
    if settings.rate_limit_points < 1:
        raise ValueError("rate limit points must be a positive integer")
    if settings.rate_limit_duration <= 0:
        raise ValueError("rate limit duration must be positive")
    if settings.batch_delay_ms < 0:
        raise ValueError("batch delay cannot be negative")
    return settings


def resolve_transport(settings: RelaySettings) -> TransportConfig | None:
    """Pick the transport described by ``settings``.

    An explicit SMTP host wins over the Gmail shortcut. ``None`` means the
    relay is unconfigured: it still starts, but every send is rejected.
    """
    if settings.smtp_host:
        use_tls = settings.smtp_secure
        if use_tls is None:
            use_tls = settings.smtp_port == 465
        return TransportConfig(
            host=settings.smtp_host,
            port=settings.smtp_port,
            use_tls=use_tls,
            user=settings.smtp_user,
            password=settings.smtp_password,
            timeout=settings.smtp_timeout,
        )
    if settings.gmail_user and settings.gmail_app_password:
        return TransportConfig(
            host=GMAIL_HOST,
            port=GMAIL_PORT,
            use_tls=True,
            user=settings.gmail_user,
            password=settings.gmail_app_password,
            timeout=settings.smtp_timeout,
            service="gmail",
        )
    logger.warning("No email configuration found. Emails will not be sent.")
    return None
