"""Tests for the stdin/stdout provider."""

import io

import pytest

from apebot.bot import Bot
from apebot.exceptions import SendError
from apebot.providers.terminal import CHANNEL, NICK, PROMPT, TerminalProvider


def _make_bot():
    bot = Bot()

    @bot.command("ping")
    async def ping(event, args):
        await event.reply("pong")

    @bot.pattern(r"^weather in (\w+)$")
    async def weather(event, args):
        await event.reply(f"It is sunny in {args[1]}.")

    return bot


def test_new_event_uses_stdin_channel_and_nick():
    provider = TerminalProvider(Bot(), "ape", stdin=io.StringIO(), stdout=io.StringIO())

    event = provider.new_event("ape: ping now")

    assert event.channel == CHANNEL
    assert event.nick == NICK
    assert event.is_directly_addressed is True
    assert event.command == "ping"
    assert event.args == ("now",)


def test_always_addressed_mode():
    provider = TerminalProvider(
        Bot(), "ape", always_addressed=True, stdin=io.StringIO(), stdout=io.StringIO()
    )
    assert provider.new_event("ping").is_directly_addressed is True


@pytest.mark.asyncio
async def test_send_writes_channel_prefixed_line():
    out = io.StringIO()
    provider = TerminalProvider(Bot(), "ape", stdin=io.StringIO(), stdout=out)

    await provider.send("#stdin", "hello")

    assert out.getvalue() == "#stdin: hello\n"


@pytest.mark.asyncio
async def test_send_to_closed_stream_raises_send_error():
    out = io.StringIO()
    out.close()
    provider = TerminalProvider(Bot(), "ape", stdin=io.StringIO(), stdout=out)

    with pytest.raises(SendError) as excinfo:
        await provider.send("#stdin", "hello")
    assert excinfo.value.destination == "#stdin"


@pytest.mark.asyncio
async def test_run_processes_lines_until_eof():
    stdin = io.StringIO("ape: ping\nhello there\nweather in Paris\n\nape: unknown\n")
    out = io.StringIO()
    provider = TerminalProvider(_make_bot(), "ape", stdin=stdin, stdout=out)

    await provider.run()

    output = out.getvalue()
    assert "#stdin: pong\n" in output
    assert "#stdin: It is sunny in Paris.\n" in output
    assert output.count("#stdin: ") == 2
    assert output.startswith(PROMPT)
    assert provider.running is False
    assert provider.pending == 0
