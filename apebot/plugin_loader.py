"""Plugin discovery, loading, and lifecycle management."""

import importlib.util
import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from .bot import Bot
from .commands.base import BUILTIN_COMMANDS
from .exceptions import PluginError
from .handler import Handler, as_handler
from .plugin_base import ApePlugin, MessagePattern, PluginContext

logger = structlog.get_logger("apebot.plugins")

_COMMAND_NAME = re.compile(r"^[a-z][a-z0-9_-]*$")


class PluginLoader:
    """Discovers, loads, and manages the lifecycle of apebot plugins.

    Args:
        plugins_dir: Directory holding ``<name>/plugin.py`` plugins.
        settings: Full settings dict; each plugin sees only its own
            ``plugins.<name>`` section.
        data_dir: Directory plugins may write to.
        bot_name: Name the bot answers to, exposed to plugins.
        allowlist: If given, only these plugin directory names load.
    """

    def __init__(
        self,
        plugins_dir: Path,
        settings: dict,
        data_dir: Path,
        bot_name: str = "",
        allowlist: Optional[List[str]] = None,
    ):
        self.plugins_dir = plugins_dir
        self.allowlist = allowlist
        self._settings = settings
        self._data_dir = data_dir
        self._bot_name = bot_name
        self.plugins: List[ApePlugin] = []
        self._commands: Dict[str, Handler] = {}
        self._patterns: List[MessagePattern] = []

    def discover_and_load(self) -> None:
        """Scan plugins_dir for plugin.py files and load them."""
        if not self.plugins_dir.is_dir():
            logger.info("plugin_loader_no_dir", path=str(self.plugins_dir))
            return

        allowlist = self.allowlist
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("plugin_allowlist_invalid_type", type=type(allowlist).__name__)
            allowlist = None

        for plugin_dir in sorted(self.plugins_dir.iterdir()):
            if not plugin_dir.is_dir():
                continue
            plugin_file = plugin_dir / "plugin.py"
            if not plugin_file.is_file():
                continue

            plugin_name = plugin_dir.name

            if allowlist is not None and plugin_name not in allowlist:
                logger.warning(
                    "plugin_blocked_not_in_allowlist",
                    plugin=plugin_name,
                    allowlist=allowlist,
                )
                continue

            try:
                self._load_plugin(plugin_name, plugin_file)
            except Exception as e:
                logger.error(
                    "plugin_load_failed",
                    plugin=plugin_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info(
            "plugin_loader_complete",
            plugins_loaded=len(self.plugins),
            commands=len(self._commands),
            patterns=len(self._patterns),
        )

    def _load_plugin(self, plugin_name: str, plugin_file: Path) -> None:
        """Load a single plugin from its plugin.py file.

        Raises:
            PluginError: The module has no ApePlugin subclass.
        """
        plugin_config = (self._settings.get("plugins") or {}).get(plugin_name, {})
        if isinstance(plugin_config, dict) and plugin_config.get("enabled") is False:
            logger.info("plugin_skipped_disabled", plugin=plugin_name)
            return

        module_name = f"apebot_plugins.{plugin_name}.plugin"
        spec = importlib.util.spec_from_file_location(module_name, plugin_file)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        plugin_cls = None
        for attr in module.__dict__.values():
            if (
                isinstance(attr, type)
                and issubclass(attr, ApePlugin)
                and attr is not ApePlugin
            ):
                plugin_cls = attr
                break

        if plugin_cls is None:
            raise PluginError("no ApePlugin subclass found", plugin=plugin_name)

        ctx = PluginContext(
            plugin_name=plugin_name,
            settings=self._settings,
            data_dir=self._data_dir / plugin_name,
            bot_name=self._bot_name,
        )
        plugin = plugin_cls(ctx)

        # Bad regexes and non-callable handlers reject the whole plugin
        patterns = [
            replace(matcher, pattern=matcher.compiled, handler=as_handler(matcher.handler))
            for matcher in plugin.message_patterns()
        ]
        commands = {name: as_handler(handler) for name, handler in plugin.commands().items()}
        self.plugins.append(plugin)

        for cmd_name, handler in commands.items():
            if not _COMMAND_NAME.match(cmd_name):
                logger.warning("plugin_invalid_command_name", command=cmd_name, plugin=plugin_name)
                continue
            if cmd_name in BUILTIN_COMMANDS:
                logger.warning("plugin_builtin_override_blocked", command=cmd_name, plugin=plugin_name)
                continue
            if cmd_name in self._commands:
                logger.warning("plugin_command_conflict", command=cmd_name, plugin=plugin_name)
                continue
            self._commands[cmd_name] = handler

        self._patterns.extend(patterns)

        logger.info(
            "plugin_loaded",
            plugin=plugin_name,
            version=plugin.version,
            commands=list(commands),
        )

    def register(self, bot: Bot) -> None:
        """Add every plugin command and pattern to ``bot``.

        Patterns are appended in priority order after any routes the
        bot already has.
        """
        for cmd_name, handler in self._commands.items():
            bot.add_command(cmd_name, handler)
        for matcher in self.get_sorted_patterns():
            bot.add_pattern_route(matcher.compiled, matcher.handler)
            logger.debug(
                "plugin_pattern_registered",
                pattern=matcher.compiled.pattern,
                priority=matcher.priority,
                description=matcher.description,
            )

    async def start_all(self) -> None:
        """Call on_start() on all loaded plugins."""
        for plugin in self.plugins:
            try:
                await plugin.on_start()
                logger.info("plugin_started", plugin=plugin.name or type(plugin).__name__)
            except Exception as e:
                logger.error(
                    "plugin_start_failed",
                    plugin=plugin.name or type(plugin).__name__,
                    error=str(e),
                )

    async def stop_all(self) -> None:
        """Call on_stop() on all loaded plugins (reverse order)."""
        for plugin in reversed(self.plugins):
            try:
                await plugin.on_stop()
                logger.info("plugin_stopped", plugin=plugin.name or type(plugin).__name__)
            except Exception as e:
                logger.error(
                    "plugin_stop_failed",
                    plugin=plugin.name or type(plugin).__name__,
                    error=str(e),
                )

    def get_all_commands(self) -> Dict[str, Handler]:
        """Return merged command dict from all plugins."""
        return dict(self._commands)

    def get_sorted_patterns(self) -> List[MessagePattern]:
        """Return all patterns sorted by priority (lower first, stable)."""
        return sorted(self._patterns, key=lambda m: m.priority)

    def get_all_help(self) -> List[str]:
        """Return merged help lines from all plugins."""
        lines: List[str] = []
        for plugin in self.plugins:
            lines.extend(plugin.help_lines())
        return lines
