"""Shared fixtures for apebot tests."""

import pytest

from apebot.event import Event


class FakeProvider:
    """In-memory provider recording every send() call."""

    def __init__(self):
        self.sent = []

    async def send(self, to, message):
        self.sent.append((to, message))


class Recorder:
    """Sync handler object recording its invocations."""

    def __init__(self):
        self.calls = []

    def handle_event(self, event, args):
        self.calls.append((event, list(args)))


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def recorder_factory():
    return Recorder


@pytest.fixture
def make_event(provider):
    """Build an Event directly, bypassing address parsing."""
    def _make(text, addressed=True, channel="#test", nick="alice"):
        parts = text.split()
        return Event(
            command=parts[0] if parts else "",
            args=tuple(parts[1:]),
            channel=channel,
            text=text,
            nick=nick,
            is_directly_addressed=addressed,
            provider=provider,
        )
    return _make
