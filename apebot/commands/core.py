"""Core command handler for apebot.

Handles: help, ping, echo, uptime. Also builds the optional reply
used as the Bot's default handler for unknown commands.
"""

from __future__ import annotations

import time
from typing import Sequence

import structlog

from ..event import Event
from .base import BaseCommandHandler, CommandHandler

logger = structlog.get_logger("apebot.commands")


def format_duration(seconds: float) -> str:
    """Render a duration as e.g. ``2d 3h 4m 5s``."""
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


class CoreCommandHandler(BaseCommandHandler):
    """Handles core bot commands."""

    def get_commands(self):
        return {
            "help": self.handle_help,
            "ping": self.handle_ping,
            "echo": self.handle_echo,
            "uptime": self.handle_uptime,
        }

    def get_help_lines(self) -> str:
        return (
            "help - list commands\n"
            "ping - check the bot is alive\n"
            "echo <text> - repeat text back\n"
            "uptime - time since startup"
        )

    async def handle_help(self, event: Event, args: Sequence[str]) -> None:
        """List every command registered on the bot.

        Chat usage::

            ape: help
        """
        lines = ["Commands: " + ", ".join(sorted(self.ctx.bot.command_names))]
        if self.ctx.plugin_loader is not None:
            lines.extend(self.ctx.plugin_loader.get_all_help())
        await event.reply("\n".join(lines))

    async def handle_ping(self, event: Event, args: Sequence[str]) -> None:
        await event.reply("pong")

    async def handle_echo(self, event: Event, args: Sequence[str]) -> None:
        """Reply with the arguments joined by single spaces.

        Chat usage::

            ape: echo hello world
        """
        if not args:
            await event.reply("Usage: echo <text>")
            return
        await event.reply(" ".join(args))

    async def handle_uptime(self, event: Event, args: Sequence[str]) -> None:
        elapsed = time.monotonic() - self.ctx.started_at
        await event.reply(f"up {format_duration(elapsed)}")


def make_unknown_command_handler(template: str) -> CommandHandler:
    """Build a default handler that replies with ``template``.

    ``{command}`` in the template is replaced with the command name.
    """
    async def handle_unknown(event: Event, args: Sequence[str]) -> None:
        logger.debug("unknown_command", command=event.command)
        await event.reply(template.replace("{command}", event.command))

    return handle_unknown
