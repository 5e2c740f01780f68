"""Command handler framework for apebot.

Provides the BaseCommandHandler ABC, the BotContext dependency
container, and the built-in core commands.
"""

from .base import BUILTIN_COMMANDS, BaseCommandHandler, BotContext, register_commands
from .core import CoreCommandHandler, make_unknown_command_handler

__all__ = [
    "BaseCommandHandler",
    "BotContext",
    "BUILTIN_COMMANDS",
    "CoreCommandHandler",
    "make_unknown_command_handler",
    "register_commands",
]
