"""Exception hierarchy for apebot.

Errors are classified with an ErrorCategory so providers can decide
whether a failure is worth retrying (a dropped websocket) or not (a
rejected token).

Note that the dispatch core has no exceptions of its own: pattern
matching and command lookup cannot fail, and handler failures are
never translated by the Bot.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (timeout, connection drop)
    PERMANENT = "permanent"          # Not worth retrying (bad token, bad payload)
    INFRASTRUCTURE = "infrastructure"  # Missing config, environment issues


class ApeError(Exception):
    """Base exception for all apebot errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry decisions.
        module: Originating module name (e.g. "providers.slack").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Provider exceptions
# ---------------------------------------------------------------------------

class ProviderError(ApeError):
    """Error raised by a chat transport (connect, auth, API call)."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "providers", **context
        )


class SendError(ProviderError):
    """A provider could not deliver an outbound message.

    Raised from ``Provider.send`` and therefore from ``Event.reply``.

    Attributes:
        destination: The channel or user the message was addressed to.
    """

    def __init__(
        self,
        message: str = "",
        *,
        destination: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.destination = destination
        super().__init__(message, category=category, module=module, **context)


class SignatureError(ProviderError):
    """An inbound webhook body failed signature verification."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "providers.line", **context
        )


# ---------------------------------------------------------------------------
# Configuration and plugin exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(ApeError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


class PluginError(ApeError):
    """A plugin could not be loaded."""

    def __init__(
        self,
        message: str = "",
        *,
        plugin: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.plugin = plugin
        super().__init__(
            message, category=category, module=module or "plugins", **context
        )
