"""Common provider machinery.

A provider turns transport input into Events and hands each one to
its bot in a separate asyncio task, so a slow or failing handler
never blocks the receive loop or other messages.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Coroutine, Set

import structlog

from ..event import Event
from ..handler import Handler, invoke

logger = structlog.get_logger("apebot.providers")


def log_task_exception(task: asyncio.Task):
    """Log exceptions from dispatch tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error(
            "handler_failed",
            error=str(exc),
            exc_type=type(exc).__name__,
            exc_info=exc,
        )


class BaseProvider(ABC):
    """Base class for chat transports.

    Subclasses implement send() and run(). Inbound messages are passed
    to dispatch(), which schedules ``bot.handle_event(event, None)``.

    Args:
        bot: Handler that receives every event, normally a Bot.
    """

    name: str = ""

    def __init__(self, bot: Handler):
        self.bot = bot
        self._tasks: Set[asyncio.Task] = set()

    @abstractmethod
    async def send(self, to: str, message: str) -> None:
        """Deliver ``message`` to ``to``. Raises SendError on failure."""
        ...

    @abstractmethod
    async def run(self) -> None:
        """Receive messages until stopped or the input ends."""
        ...

    async def stop(self) -> None:
        """Cancel in-flight dispatch tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def drain(self) -> None:
        """Wait until no tracked task is left, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run ``coro`` as a tracked task whose failure is logged."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)
        return task

    def dispatch(self, event: Event) -> asyncio.Task:
        """Hand ``event`` to the bot in its own task and return the task."""
        return self.spawn(invoke(self.bot, event, None))

    @property
    def pending(self) -> int:
        """Number of dispatch tasks still running."""
        return len(self._tasks)
