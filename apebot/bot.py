"""Event dispatch for apebot.

The Bot owns three registration structures and routes every inbound
Event to at most one handler:

    1. Pattern routes, scanned in registration order. The first
       pattern that matches ``event.text`` wins and its handler gets
       the whole match followed by the capture groups. This applies
       whether or not the bot was addressed.
    2. Commands, consulted only for directly addressed events, keyed
       by ``event.command`` and invoked with ``event.args``.
    3. The default handler, used for addressed events whose command
       is unknown.

Anything else is dropped silently. Registering a command name or the
default handler a second time replaces the earlier handler.

Registration is expected to happen during startup. Late registration
is still safe: writers hold a lock and publish a new snapshot of the
route tuple or command dict, and dispatch reads each structure once.

Key classes:
    Route: A compiled pattern paired with a handler.
    Dispatch: The routing decision for one event.
    Bot: Registration API plus the handle_event entry point.
"""

import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional, Pattern, Sequence, Tuple, Union

import structlog

from .event import Event
from .handler import Handler, HandlerCallable, as_handler, invoke

logger = structlog.get_logger("apebot.bot")

PatternLike = Union[str, Pattern[str]]
HandlerLike = Union[Handler, HandlerCallable]
DropHook = Callable[[Event, str], None]

# Reasons passed to the on_drop hook
DROP_NOT_ADDRESSED = "not_addressed"
DROP_UNKNOWN_COMMAND = "unknown_command"


@dataclass(frozen=True)
class Route:
    """A pattern route.

    Attributes:
        pattern: Compiled regular expression, searched (not anchored)
            against the full event text.
        handler: Handler invoked with the match captures.
    """
    pattern: Pattern[str]
    handler: Handler

    def match(self, text: str) -> Optional[List[str]]:
        """Return [whole match, group 1, ...] or None.

        Groups that did not participate in the match become "".
        """
        m = self.pattern.search(text)
        if m is None:
            return None
        return [m.group(0)] + [g if g is not None else "" for g in m.groups()]


class Dispatch(NamedTuple):
    """Which handler an event resolves to, and with what arguments."""
    handler: Handler
    args: List[str]
    path: str  # "pattern", "command" or "default"


class Bot:
    """Routes events to pattern, command, and default handlers.

    Args:
        on_drop: Optional hook called as ``on_drop(event, reason)``
            whenever an event is dropped without invoking a handler.
    """

    def __init__(self, on_drop: Optional[DropHook] = None):
        self._lock = threading.Lock()
        self._routes: Tuple[Route, ...] = ()
        self._commands: Dict[str, Handler] = {}
        self._default: Optional[Handler] = None
        self.on_drop = on_drop

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_pattern_route(self, pattern: PatternLike, handler: HandlerLike) -> Route:
        """Append a pattern route. Earlier routes take precedence."""
        route = Route(
            pattern=re.compile(pattern) if isinstance(pattern, str) else pattern,
            handler=as_handler(handler),
        )
        with self._lock:
            self._routes = self._routes + (route,)
        logger.debug("pattern_route_added", pattern=route.pattern.pattern, position=len(self._routes))
        return route

    def add_command(self, name: str, handler: HandlerLike) -> None:
        """Register ``handler`` for command ``name``.

        A later registration for the same name replaces the earlier one.
        """
        handler = as_handler(handler)
        with self._lock:
            replaced = name in self._commands
            commands = dict(self._commands)
            commands[name] = handler
            self._commands = commands
        if replaced:
            logger.debug("command_handler_replaced", command=name)

    def set_default(self, handler: Optional[HandlerLike]) -> None:
        """Set the handler for addressed events with an unknown command.

        Passing None clears the slot, so unknown commands are dropped.
        """
        handler = as_handler(handler) if handler is not None else None
        with self._lock:
            self._default = handler

    def pattern(self, pattern: PatternLike) -> Callable[[HandlerCallable], HandlerCallable]:
        """Decorator form of add_pattern_route."""
        def decorator(func: HandlerCallable) -> HandlerCallable:
            self.add_pattern_route(pattern, func)
            return func
        return decorator

    def command(self, name: str) -> Callable[[HandlerCallable], HandlerCallable]:
        """Decorator form of add_command."""
        def decorator(func: HandlerCallable) -> HandlerCallable:
            self.add_command(name, func)
            return func
        return decorator

    def fallback(self) -> Callable[[HandlerCallable], HandlerCallable]:
        """Decorator form of set_default."""
        def decorator(func: HandlerCallable) -> HandlerCallable:
            self.set_default(func)
            return func
        return decorator

    @property
    def routes(self) -> Tuple[Route, ...]:
        """Registered pattern routes in evaluation order."""
        return self._routes

    @property
    def command_names(self) -> frozenset:
        """All registered command names."""
        return frozenset(self._commands)

    @property
    def default_handler(self) -> Optional[Handler]:
        return self._default

    def get_command(self, name: str) -> Optional[Handler]:
        """Look up the handler registered for a command name."""
        return self._commands.get(name)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def resolve(self, event: Event) -> Optional[Dispatch]:
        """Decide which handler ``event`` goes to, without invoking it."""
        text = event.text
        for route in self._routes:
            captures = route.match(text)
            if captures is not None:
                return Dispatch(route.handler, captures, "pattern")

        if not event.is_directly_addressed:
            return None

        handler = self._commands.get(event.command)
        if handler is not None:
            return Dispatch(handler, list(event.args), "command")

        default = self._default
        if default is not None:
            return Dispatch(default, list(event.args), "default")
        return None

    async def handle_event(self, event: Event, extra_args: Optional[Sequence[str]] = None) -> None:
        """Route ``event`` to at most one handler and run it.

        ``extra_args`` is accepted so a Bot can itself be used as a
        handler; routing computes its own arguments and ignores it.
        Handler exceptions propagate to the caller unchanged.
        """
        dispatch = self.resolve(event)
        if dispatch is None:
            self._dropped(
                event,
                DROP_UNKNOWN_COMMAND if event.is_directly_addressed else DROP_NOT_ADDRESSED,
            )
            return
        logger.debug(
            "message_routing",
            routing_path=dispatch.path,
            command=event.command if dispatch.path != "pattern" else None,
            handler=repr(dispatch.handler),
        )
        await invoke(dispatch.handler, event, dispatch.args)

    def _dropped(self, event: Event, reason: str) -> None:
        logger.debug("event_dropped", reason=reason, channel=event.channel)
        if self.on_drop is not None:
            self.on_drop(event, reason)
