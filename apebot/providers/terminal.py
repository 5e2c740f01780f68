"""Interactive terminal provider.

Reads one message per line from stdin and prints replies to stdout.
Messages are addressed to the bot with a ``<name>:`` prefix, e.g.
``ape: ping``.
"""

import asyncio
import sys
import threading
from typing import Optional, TextIO

import structlog

from ..event import Event
from ..exceptions import SendError
from ..handler import Handler
from .base import BaseProvider

logger = structlog.get_logger("apebot.providers.terminal")

CHANNEL = "#stdin"
NICK = "stdin"
PROMPT = "> "


class TerminalProvider(BaseProvider):
    """Line-oriented stdin/stdout transport.

    Args:
        bot: Handler receiving events.
        my_name: Name the bot answers to.
        always_addressed: Treat every line as addressed to the bot.
        stdin: Input stream (default sys.stdin).
        stdout: Output stream (default sys.stdout).
    """

    name = "terminal"

    def __init__(
        self,
        bot: Handler,
        my_name: str,
        *,
        always_addressed: bool = False,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        super().__init__(bot)
        self.my_name = my_name
        self.always_addressed = always_addressed
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.running = False

    async def send(self, to: str, message: str) -> None:
        try:
            self.stdout.write(f"{to}: {message}\n")
            self.stdout.flush()
        except (OSError, ValueError) as e:
            raise SendError(str(e), destination=to, module="providers.terminal") from e

    def new_event(self, line: str) -> Event:
        """Parse one input line into an Event."""
        return Event.parse(
            line,
            self,
            channel=CHANNEL,
            nick=NICK,
            names=(self.my_name,),
            always_addressed=self.always_addressed,
        )

    def _read_lines(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        """Blocking reader run in a daemon thread; None marks EOF."""
        try:
            for line in iter(self.stdin.readline, ""):
                loop.call_soon_threadsafe(queue.put_nowait, line)
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            # Event loop already closed during shutdown
            return

    async def run(self) -> None:
        """Read lines until EOF or stop()."""
        self.running = True
        queue: asyncio.Queue = asyncio.Queue()
        reader = threading.Thread(
            target=self._read_lines,
            args=(asyncio.get_running_loop(), queue),
            name="apebot-stdin",
            daemon=True,
        )
        reader.start()
        logger.info("terminal_started", name=self.my_name)
        while self.running:
            self.stdout.write(PROMPT)
            self.stdout.flush()
            line = await queue.get()
            if line is None:
                logger.info("terminal_eof")
                await self.drain()
                break
            self.dispatch(self.new_event(line.rstrip("\n")))
        self.running = False

    async def stop(self) -> None:
        self.running = False
        await super().stop()
