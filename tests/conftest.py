"""Shared test doubles for the mail relay test-suite."""

from __future__ import annotations

from email.message import EmailMessage
from typing import Dict, List

import pytest

from mail_relay.transport import MailTransport, TransportError


class DummyTransport(MailTransport):
    """In-memory transport that records messages and fails on demand."""

    def __init__(self):
        self.sent: List[EmailMessage] = []
        self.fail_for: Dict[str, str] = {}
        self.raise_error: Exception | None = None
        self.released = 0
        self.closed = False

    async def send(self, message: EmailMessage) -> str:
        if self.raise_error is not None:
            raise self.raise_error
        recipient = message["To"]
        if recipient in self.fail_for:
            raise TransportError(self.fail_for[recipient])
        self.sent.append(message)
        return f"<msg-{len(self.sent)}@relay.test>"

    async def release(self) -> None:
        self.released += 1

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def transport():
    return DummyTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
