"""Tests for the built-in command handlers."""

from unittest.mock import MagicMock, patch

import pytest

from apebot.bot import Bot
from apebot.commands import (
    BUILTIN_COMMANDS,
    BaseCommandHandler,
    BotContext,
    CoreCommandHandler,
    make_unknown_command_handler,
    register_commands,
)
from apebot.commands.core import format_duration


@pytest.fixture
def core_bot():
    bot = Bot()
    ctx = BotContext(bot=bot)
    register_commands(bot, CoreCommandHandler(ctx))
    return bot, ctx


def test_core_commands_match_builtin_names(core_bot):
    bot, _ = core_bot
    assert bot.command_names == BUILTIN_COMMANDS


@pytest.mark.asyncio
async def test_ping_replies_pong(core_bot, make_event, provider):
    bot, _ = core_bot
    await bot.handle_event(make_event("ping"))
    assert provider.sent == [("#test", "pong")]


@pytest.mark.asyncio
async def test_echo_joins_args(core_bot, make_event, provider):
    bot, _ = core_bot
    await bot.handle_event(make_event("echo  hello   world"))
    assert provider.sent == [("#test", "hello world")]


@pytest.mark.asyncio
async def test_echo_without_args_shows_usage(core_bot, make_event, provider):
    bot, _ = core_bot
    await bot.handle_event(make_event("echo"))
    assert provider.sent == [("#test", "Usage: echo <text>")]


@pytest.mark.asyncio
async def test_help_lists_commands_and_plugin_help(core_bot, make_event, provider):
    bot, ctx = core_bot
    ctx.plugin_loader = MagicMock()
    ctx.plugin_loader.get_all_help.return_value = ["weather in <city> - today's weather"]

    await bot.handle_event(make_event("help"))

    assert provider.sent == [(
        "#test",
        "Commands: echo, help, ping, uptime\nweather in <city> - today's weather",
    )]


@pytest.mark.asyncio
async def test_uptime_reports_elapsed_time(core_bot, make_event, provider):
    bot, ctx = core_bot
    with patch("apebot.commands.core.time") as mock_time:
        mock_time.monotonic.return_value = ctx.started_at + 65
        await bot.handle_event(make_event("uptime"))
    assert provider.sent == [("#test", "up 1m 5s")]


@pytest.mark.parametrize("seconds, expected", [
    (0, "0s"),
    (5.9, "5s"),
    (3600, "1h 0m 0s"),
    (2 * 86400 + 3 * 3600 + 4 * 60 + 5, "2d 3h 4m 5s"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.asyncio
async def test_unknown_command_reply_substitutes_command(make_event, provider):
    bot = Bot()
    bot.set_default(make_unknown_command_handler("No idea what '{command}' means."))

    await bot.handle_event(make_event("dance now"))

    assert provider.sent == [("#test", "No idea what 'dance' means.")]


def test_register_commands_logs_conflicts():
    class Other(BaseCommandHandler):
        def get_commands(self):
            async def ping(event, args):
                pass
            return {"ping": ping}

    bot = Bot()
    ctx = BotContext(bot=bot)
    register_commands(bot, CoreCommandHandler(ctx))

    with patch("apebot.commands.base.logger") as mock_logger:
        register_commands(bot, Other(ctx))

    mock_logger.warning.assert_called_once_with(
        "command_handler_conflict", command="ping", handler="Other"
    )
    assert bot.get_command("ping").func.__name__ == "ping"


def test_base_handler_help_defaults_to_empty():
    class Empty(BaseCommandHandler):
        def get_commands(self):
            return {}

    assert Empty(BotContext(bot=Bot())).get_help_lines() == ""
