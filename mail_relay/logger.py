"""Logging helpers for the mail relay.

Handlers, level and format are configured once by the entry point
(:func:`mail_relay.server.configure_logging`); modules only ask for a named
logger.
"""

import logging


def get_logger(name: str = "MailRelay") -> logging.Logger:
    """Return the :class:`logging.Logger` bound to ``name``."""
    return logging.getLogger(name)
