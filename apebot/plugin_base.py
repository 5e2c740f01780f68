"""Plugin base class and types for apebot extensibility."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Sequence, Union

import structlog

from .handler import Handler, HandlerCallable


@dataclass
class MessagePattern:
    """A prioritized pattern route contributed by a plugin.

    Plugin patterns are added to the Bot sorted by priority, so a
    lower number is checked earlier (first match wins).

    Attributes:
        priority: Lower numbers are checked first (0-99).
        pattern: Regular expression searched in the message text.
        handler: ``(event, captures)`` handler, sync or async.
        description: Human-readable label for logging.
    """
    priority: int
    pattern: Union[str, Pattern[str]]
    handler: Union[Handler, HandlerCallable]
    description: str = ""

    @property
    def compiled(self) -> Pattern[str]:
        return re.compile(self.pattern) if isinstance(self.pattern, str) else self.pattern


class PluginContext:
    """Interface exposed to plugins for interacting with the bot.

    Plugins receive this in their constructor. They should never
    import the provider modules directly; replies go through
    ``event.reply``.
    """

    def __init__(
        self,
        plugin_name: str,
        settings: dict,
        data_dir: Path,
        bot_name: str = "",
    ):
        self.plugin_name = plugin_name
        # Only expose the plugin's own config section, not full settings
        self._plugin_settings = (settings.get("plugins") or {}).get(plugin_name) or {}
        self.data_dir = data_dir
        self.bot_name = bot_name
        self.logger = structlog.get_logger("apebot.plugins").bind(plugin=plugin_name)

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read a value from plugins.<plugin_name>.<key> in settings.yaml."""
        return self._plugin_settings.get(key, default)

    def get_env(self, key: str) -> Optional[str]:
        """Read an environment variable."""
        return os.environ.get(key)

    @property
    def enabled(self) -> bool:
        """Whether this plugin is enabled in config (default True)."""
        return self._plugin_settings.get("enabled", True)


class ApePlugin:
    """Base class for all apebot plugins.

    Subclass this and override the methods you need.
    Place your plugin in plugins/<name>/plugin.py.
    """

    name: str = ""
    description: str = ""
    version: str = "1.0.0"

    def __init__(self, ctx: PluginContext):
        self.ctx = ctx

    def commands(self) -> Dict[str, HandlerCallable]:
        """Return {command_name: handler} to register as commands.

        Handler signature: async (event, args: Sequence[str]) -> None
        """
        return {}

    def message_patterns(self) -> List[MessagePattern]:
        """Return pattern routes for messages the plugin reacts to
        whether or not the bot is addressed.
        """
        return []

    async def on_start(self) -> None:
        """Called before the provider starts receiving messages."""
        pass

    async def on_stop(self) -> None:
        """Called during shutdown. Clean up resources."""
        pass

    def help_lines(self) -> Sequence[str]:
        """Return one-line descriptions for the plugin's commands."""
        return []
