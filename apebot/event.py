"""Inbound message events.

An Event is the immutable view of one message that a provider hands
to the Bot. Providers build events with Event.parse(), which applies
the shared address-stripping and whitespace tokenization rules so
that every transport produces the same command/args split.

Key classes:
    Provider: Protocol every transport satisfies (an async send).
    Event: Frozen dataclass describing one parsed message.

Key functions:
    tokenize: Split text into (command, args) on runs of whitespace.
    strip_address: Detect and remove a "<name>:" address prefix.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Tuple, runtime_checkable

_WHITESPACE = re.compile(r"\s+")


@runtime_checkable
class Provider(Protocol):
    """Outbound half of a chat transport.

    ``send`` raises SendError when the message cannot be delivered.
    """

    async def send(self, to: str, message: str) -> None:
        ...


def tokenize(text: str) -> Tuple[str, Tuple[str, ...]]:
    """Split trimmed text into a command and its arguments.

    Whitespace runs collapse: ``"foo bar  baz"`` gives
    ``("foo", ("bar", "baz"))``. Empty text gives ``("", ())``.
    """
    parts = _WHITESPACE.split(text.strip())
    return parts[0], tuple(parts[1:])


def strip_address(text: str, names: Iterable[str]) -> Tuple[bool, str]:
    """Check whether text starts with ``<name>:`` for one of ``names``.

    Only the first colon is considered, and only when something
    precedes it. Names compare case-insensitively after trimming.

    Returns:
        (addressed, remaining_text). When not addressed the text is
        returned unchanged.
    """
    colon = text.find(":")
    if colon <= 0:
        return False, text
    target = text[:colon].strip().casefold()
    for name in names:
        if name and target == name.casefold():
            return True, text[colon + 1:]
    return False, text


@dataclass(frozen=True)
class Event:
    """One parsed inbound message.

    Attributes:
        command: First token of ``text`` ("" for empty text).
        args: Remaining tokens of ``text``.
        channel: Transport-specific channel identifier or name.
        text: Message text after address stripping and trimming.
        nick: Sender display name, "" when the transport has none.
        is_directly_addressed: True when the bot was addressed by name,
            or always for single-user transports.
        provider: The transport that produced the event. Not owned.
        destination: Reply target when it differs from ``channel``
            (e.g. a Slack channel id behind a channel name).
    """

    command: str
    args: Tuple[str, ...]
    channel: str
    text: str
    nick: str
    is_directly_addressed: bool
    provider: Provider = field(repr=False, compare=False)
    destination: Optional[str] = None

    @classmethod
    def parse(
        cls,
        raw_text: str,
        provider: Provider,
        *,
        channel: str,
        nick: str = "",
        names: Iterable[str] = (),
        always_addressed: bool = False,
        destination: Optional[str] = None,
    ) -> "Event":
        """Build an Event from raw message text.

        Args:
            raw_text: Message exactly as received from the transport.
            provider: Transport used by reply().
            channel: Channel identifier exposed to handlers.
            nick: Sender display name.
            names: Names the bot answers to in a ``<name>:`` prefix.
            always_addressed: Mark the event addressed regardless of
                prefix (webhook and other one-to-one transports). The
                prefix is still stripped when present.
            destination: Reply target, defaults to ``channel``.
        """
        addressed, text = strip_address(raw_text, names)
        text = text.strip()
        command, args = tokenize(text)
        return cls(
            command=command,
            args=args,
            channel=channel,
            text=text,
            nick=nick,
            is_directly_addressed=addressed or always_addressed,
            provider=provider,
            destination=destination,
        )

    async def reply(self, message: str) -> None:
        """Send ``message`` back to where this event came from.

        Raises:
            SendError: The provider could not deliver the message.
        """
        to = self.destination if self.destination is not None else self.channel
        await self.provider.send(to, message)
