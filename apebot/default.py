"""Process-wide default Bot.

Small programs can register handlers at module level instead of
passing a Bot around::

    import apebot

    @apebot.command("ping")
    async def ping(event, args):
        await event.reply("pong")

Every function here delegates to the Bot returned by
get_default_bot(), which is created on first use. Registration
follows the same rules as the Bot methods (routes append, commands
and the default handler are replaced). Register during startup,
from a single thread, before providers start dispatching.
"""

import threading
from typing import Callable, Optional, Sequence

from .bot import Bot, HandlerLike, PatternLike, Route
from .event import Event
from .handler import HandlerCallable

_default_bot: Optional[Bot] = None
_lock = threading.Lock()


def get_default_bot() -> Bot:
    """Get or create the process-wide Bot."""
    global _default_bot
    if _default_bot is None:
        with _lock:
            if _default_bot is None:
                _default_bot = Bot()
    return _default_bot


def add_pattern_route(pattern: PatternLike, handler: HandlerLike) -> Route:
    return get_default_bot().add_pattern_route(pattern, handler)


def add_command(name: str, handler: HandlerLike) -> None:
    get_default_bot().add_command(name, handler)


def set_default(handler: Optional[HandlerLike]) -> None:
    get_default_bot().set_default(handler)


def pattern(regex: PatternLike) -> Callable[[HandlerCallable], HandlerCallable]:
    return get_default_bot().pattern(regex)


def command(name: str) -> Callable[[HandlerCallable], HandlerCallable]:
    return get_default_bot().command(name)


def fallback() -> Callable[[HandlerCallable], HandlerCallable]:
    return get_default_bot().fallback()


async def handle_event(event: Event, extra_args: Optional[Sequence[str]] = None) -> None:
    """Dispatch ``event`` through the default Bot."""
    await get_default_bot().handle_event(event, extra_args)
