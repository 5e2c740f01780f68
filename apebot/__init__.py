"""apebot: a small chat-bot dispatch core.

Providers turn chat input into Events; a Bot routes each Event to at
most one handler by pattern, by command, or to a default handler.

The explicit Bot instance is the primary API. The module-level
functions re-exported here operate on a lazily created process-wide
Bot for programs that do not want to pass one around.
"""

from .bot import Bot, Dispatch, Route
from .default import (
    add_command,
    add_pattern_route,
    command,
    fallback,
    get_default_bot,
    handle_event,
    pattern,
    set_default,
)
from .event import Event, Provider, strip_address, tokenize
from .exceptions import ApeError, ProviderError, SendError
from .handler import Handler, HandlerFunc, as_handler

__all__ = [
    "ApeError",
    "Bot",
    "Dispatch",
    "Event",
    "Handler",
    "HandlerFunc",
    "Provider",
    "ProviderError",
    "Route",
    "SendError",
    "add_command",
    "add_pattern_route",
    "as_handler",
    "command",
    "fallback",
    "get_default_bot",
    "handle_event",
    "pattern",
    "set_default",
    "strip_address",
    "tokenize",
]
