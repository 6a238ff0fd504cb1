"""HTTP relay for transactional email.

The relay accepts single messages or ordered batches over a small JSON API,
forwards them one at a time to an SMTP provider (or the Gmail shortcut) and
reports a result per message. Callers are rate limited per network address.

Example:
    Building the application by hand::

        from mail_relay.api import create_app
        from mail_relay.config import load_settings
        from mail_relay.core import MailRelayCore

        app = create_app(MailRelayCore(load_settings()))
"""
