"""Base classes for grouping command handlers.

Command handlers are grouped into classes that extend
BaseCommandHandler and are then registered on a Bot with
register_commands(). Each command is an ordinary handler:
``async (event, args) -> None``.

Key classes:
    BotContext: Dependency container shared by all handler groups.
    BaseCommandHandler: ABC that handler groups must implement.

Constants:
    BUILTIN_COMMANDS: Frozenset of reserved command names that
        plugins are not allowed to override.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional, Sequence

import structlog

from ..event import Event

if TYPE_CHECKING:
    from ..bot import Bot
    from ..config import Config
    from ..plugin_loader import PluginLoader

logger = structlog.get_logger("apebot.commands")

# Single source of truth for builtin command names.
# plugin_loader.py imports this to block plugin overrides.
BUILTIN_COMMANDS = frozenset({"help", "ping", "echo", "uptime"})

CommandHandler = Callable[[Event, Sequence[str]], Awaitable[None]]


@dataclass
class BotContext:
    """Dependency container for command handlers."""

    bot: "Bot"
    config: Optional["Config"] = None
    plugin_loader: Optional["PluginLoader"] = None
    started_at: float = field(default_factory=time.monotonic)


class BaseCommandHandler(ABC):
    """Abstract base class for command handler groups.

    Subclasses implement get_commands() to return a dict mapping
    command names to async handlers.

    Args:
        ctx: Shared BotContext dependency container.
    """

    def __init__(self, ctx: BotContext):
        self.ctx = ctx

    @abstractmethod
    def get_commands(self) -> Dict[str, CommandHandler]:
        """Return {command_name: async_handler} mapping.

        Handler signature: async (event: Event, args: Sequence[str]) -> None
        """
        ...

    def get_help_lines(self) -> str:
        """Return help text section for this handler group."""
        return ""


def register_commands(bot: "Bot", handler: BaseCommandHandler) -> None:
    """Register every command of ``handler`` on ``bot``.

    A name that is already registered is replaced; the replacement is
    logged so accidental clashes between handler groups show up.
    """
    existing = bot.command_names
    for cmd_name, method in handler.get_commands().items():
        if cmd_name in existing:
            logger.warning(
                "command_handler_conflict",
                command=cmd_name,
                handler=type(handler).__name__,
            )
        bot.add_command(cmd_name, method)
