"""Tests for provider dispatch and failure isolation."""

import asyncio
import threading
from unittest.mock import patch

import pytest

from apebot.bot import Bot
from apebot.event import Event
from apebot.providers.base import BaseProvider


class StubProvider(BaseProvider):
    name = "stub"

    def __init__(self, bot):
        super().__init__(bot)
        self.sent = []

    async def send(self, to, message):
        self.sent.append((to, message))

    async def run(self):
        pass


def _event(provider, text):
    return Event.parse(text, provider, channel="#c", always_addressed=True)


@pytest.mark.asyncio
async def test_failing_handler_does_not_affect_other_events():
    bot = Bot()

    @bot.command("boom")
    async def boom(event, args):
        raise RuntimeError("kaboom")

    @bot.command("ping")
    async def ping(event, args):
        await event.reply("pong")

    provider = StubProvider(bot)
    with patch("apebot.providers.base.logger") as mock_logger:
        provider.dispatch(_event(provider, "boom"))
        provider.dispatch(_event(provider, "ping"))
        await provider.drain()
        await asyncio.sleep(0)

    assert provider.sent == [("#c", "pong")]
    mock_logger.error.assert_called_once()
    args, kwargs = mock_logger.error.call_args
    assert args[0] == "handler_failed"
    assert kwargs["exc_type"] == "RuntimeError"
    assert provider.pending == 0


@pytest.mark.asyncio
async def test_slow_handler_does_not_block_dispatch():
    bot = Bot()
    release = asyncio.Event()

    @bot.command("slow")
    async def slow(event, args):
        await release.wait()
        await event.reply("slow done")

    @bot.command("fast")
    async def fast(event, args):
        await event.reply("fast done")

    provider = StubProvider(bot)
    provider.dispatch(_event(provider, "slow"))
    fast_task = provider.dispatch(_event(provider, "fast"))
    await fast_task

    assert provider.sent == [("#c", "fast done")]
    assert provider.pending == 1

    release.set()
    await provider.drain()
    assert provider.sent[-1] == ("#c", "slow done")


@pytest.mark.asyncio
async def test_blocking_sync_handler_does_not_block_dispatch():
    bot = Bot()
    release = threading.Event()
    order = []

    @bot.command("slow")
    def slow(event, args):
        release.wait(5)
        order.append("slow")

    @bot.command("fast")
    async def fast(event, args):
        order.append("fast")

    provider = StubProvider(bot)
    provider.dispatch(_event(provider, "slow"))
    await asyncio.sleep(0)
    await provider.dispatch(_event(provider, "fast"))

    assert order == ["fast"]

    release.set()
    await provider.drain()
    assert order == ["fast", "slow"]


@pytest.mark.asyncio
async def test_stop_cancels_in_flight_tasks():
    bot = Bot()

    @bot.command("hang")
    async def hang(event, args):
        await asyncio.Event().wait()

    provider = StubProvider(bot)
    task = provider.dispatch(_event(provider, "hang"))
    await asyncio.sleep(0)

    with patch("apebot.providers.base.logger") as mock_logger:
        await provider.stop()

    assert task.cancelled()
    mock_logger.error.assert_not_called()
