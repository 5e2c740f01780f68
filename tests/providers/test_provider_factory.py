"""Tests for selecting a provider from config."""

from unittest.mock import MagicMock

import pytest

from apebot.bot import Bot
from apebot.exceptions import ConfigurationError
from apebot.providers import LineProvider, SlackProvider, TerminalProvider, create_provider


def _config(**overrides):
    config = MagicMock()
    config.provider = "terminal"
    config.bot_name = "ape"
    config.always_addressed = False
    config.slack_token = ""
    config.slack_api_url = "https://slack.com/api"
    config.line_channel_id = "1441301333"
    config.line_channel_secret = ""
    config.line_mid = "u0bot"
    config.line_host = "127.0.0.1"
    config.line_port = 9000
    config.line_api_url = "https://line.test/v1/events"
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def test_terminal_provider():
    bot = Bot()
    provider = create_provider(_config(always_addressed=True), bot)
    assert isinstance(provider, TerminalProvider)
    assert provider.bot is bot
    assert provider.my_name == "ape"
    assert provider.always_addressed is True


def test_slack_provider_requires_token():
    with pytest.raises(ConfigurationError) as excinfo:
        create_provider(_config(provider="slack"), Bot())
    assert excinfo.value.setting_name == "slack.token"

    provider = create_provider(_config(provider="slack", slack_token="xoxb-1"), Bot())
    assert isinstance(provider, SlackProvider)
    assert provider.token == "xoxb-1"


def test_line_provider_requires_secret():
    with pytest.raises(ConfigurationError):
        create_provider(_config(provider="line"), Bot())

    provider = create_provider(_config(provider="line", line_channel_secret="s"), Bot())
    assert isinstance(provider, LineProvider)
    assert (provider.host, provider.port) == ("127.0.0.1", 9000)
    assert provider.api_url == "https://line.test/v1/events"


def test_unknown_provider():
    with pytest.raises(ConfigurationError, match="irc"):
        create_provider(_config(provider="irc"), Bot())
