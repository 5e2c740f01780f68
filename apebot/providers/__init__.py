"""Chat transports for apebot.

Each provider parses platform input into Events, dispatches them to a
bot one task per message, and implements ``send`` for replies.
"""

from ..exceptions import ConfigurationError
from ..handler import Handler
from .base import BaseProvider, log_task_exception
from .line import LineProvider
from .slack import SlackProvider
from .terminal import TerminalProvider

__all__ = [
    "BaseProvider",
    "LineProvider",
    "SlackProvider",
    "TerminalProvider",
    "create_provider",
    "log_task_exception",
]


def create_provider(config, bot: Handler) -> BaseProvider:
    """Build the provider selected by ``config.provider``.

    Raises:
        ConfigurationError: Unknown provider or missing credentials.
    """
    name = config.provider
    if name == "terminal":
        return TerminalProvider(bot, config.bot_name, always_addressed=config.always_addressed)
    if name == "slack":
        if not config.slack_token:
            raise ConfigurationError("Slack token is not configured", setting_name="slack.token")
        return SlackProvider(bot, config.slack_token, api_url=config.slack_api_url)
    if name == "line":
        if not config.line_channel_secret:
            raise ConfigurationError(
                "LINE channel secret is not configured", setting_name="line.channel_secret"
            )
        return LineProvider(
            bot,
            config.line_channel_id,
            config.line_channel_secret,
            config.line_mid,
            host=config.line_host,
            port=config.line_port,
            api_url=config.line_api_url,
        )
    raise ConfigurationError(f"Unknown provider: {name}", setting_name="provider")
