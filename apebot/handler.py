"""Handler capability.

A handler is anything that can process an Event plus a list of
arguments. Two shapes are accepted everywhere a handler is expected:

    - a plain function ``fn(event, args)``, sync or async, which is
      wrapped in HandlerFunc;
    - any object with a ``handle_event(event, args)`` method, which
      is used as-is (a Bot is itself such an object).

Synchronous handlers run in a worker thread via asyncio.to_thread,
so they must not touch the event loop; reply from an async handler.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Union, runtime_checkable

from .event import Event

HandlerCallable = Callable[[Event, Sequence[str]], Union[None, Awaitable[None]]]


@runtime_checkable
class Handler(Protocol):
    """Processes an event. Return values are ignored."""

    def handle_event(self, event: Event, args: Sequence[str]) -> Any:
        ...


class HandlerFunc:
    """Adapts a plain function to the Handler capability."""

    def __init__(self, func: HandlerCallable):
        self.func = func

    async def handle_event(self, event: Event, args: Sequence[str]) -> None:
        await _call(self.func, event, args)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"HandlerFunc({name})"


def as_handler(obj: Union[Handler, HandlerCallable]) -> Handler:
    """Return ``obj`` as a Handler, wrapping plain callables.

    Raises:
        TypeError: ``obj`` is neither a Handler nor callable.
    """
    if isinstance(obj, Handler):
        return obj
    if callable(obj):
        return HandlerFunc(obj)
    raise TypeError(f"expected a handler or callable, got {type(obj).__name__}")


async def _call(func: Callable[..., Any], event: Event, args: Sequence[str]) -> None:
    """Await coroutine functions; run plain callables in a worker thread."""
    if inspect.iscoroutinefunction(func):
        await func(event, args)
        return
    result = await asyncio.to_thread(func, event, args)
    if inspect.isawaitable(result):
        await result


async def invoke(handler: Handler, event: Event, args: Optional[Sequence[str]]) -> None:
    """Run ``handler`` without blocking the event loop.

    Coroutine ``handle_event`` methods are awaited directly; synchronous
    ones run in a worker thread so a slow handler never stalls other
    messages.
    """
    await _call(handler.handle_event, event, list(args) if args is not None else [])
