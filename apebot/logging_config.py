"""Logging setup for apebot.

structlog renders every event through stdlib ``logging``, so one record
reaches the console and the rotating files below::

    root                      stderr console
    apebot                    logs/apebot.log (everything)
    apebot.bot                logs/bot.log
    apebot.providers          logs/providers.log
    apebot.providers.<name>   logs/providers.log, tagged with the provider
    apebot.plugins            logs/plugins.log
    apebot.commands           logs/commands.log

``logging.subsystem_levels`` takes either a subsystem (``providers``) or a
single provider (``providers.slack``), so one transport can be turned up
to DEBUG without flooding the others.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import structlog

SUBSYSTEMS = ("bot", "providers", "plugins", "commands")

LOGGER_PREFIX = "apebot"

_REDACTED = "***REDACTED***"

_SECRET_PATTERNS = (
    re.compile(r"xox[abposr]-[a-zA-Z0-9-]{10,}"),
    re.compile(r"xapp-[a-zA-Z0-9-]{10,}"),
    re.compile(r"Bearer\s+[a-zA-Z0-9_./-]{20,}"),
)

# LINE signs webhooks with the channel secret; both are secret at any length
_SECRET_KEYS = frozenset({"token", "channel_secret", "secret", "signature"})


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        for pattern in _SECRET_PATTERNS:
            value = pattern.sub(_REDACTED, value)
        return value
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that redacts Slack tokens and LINE secrets.

    Non-empty values under a secret key are replaced outright; anything
    else is searched for token-shaped substrings, including inside
    lists, tuples and dicts.
    """
    for key, value in event_dict.items():
        if key in _SECRET_KEYS and value:
            event_dict[key] = _REDACTED
        else:
            event_dict[key] = _scrub(value)
    return event_dict


class LogSettings(NamedTuple):
    log_dir: Path
    level: int
    overrides: Dict[str, int]
    max_bytes: int
    backup_count: int
    cache_loggers: bool

    @classmethod
    def from_config(cls, config=None) -> "LogSettings":
        """Settings from a Config, or bootstrap defaults when there is none yet."""
        if config is None:
            return cls(
                log_dir=Path(__file__).parent.parent / "logs",
                level=logging.INFO,
                overrides={},
                max_bytes=10 * 1024 * 1024,
                backup_count=5,
                cache_loggers=False,
            )
        level = _level(config.logging_level, logging.INFO)
        return cls(
            log_dir=config.log_dir,
            level=level,
            overrides={
                name: _level(value, level)
                for name, value in (config.logging_subsystem_levels or {}).items()
            },
            max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
            backup_count=config.logging_backup_count,
            cache_loggers=True,
        )


def _level(name: Any, default: int) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


# Runs for structlog events and for records from other libraries (aiohttp)
_SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    sanitize_secrets,
]


def _formatter(colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def _rotating_handler(path: Path, level: int, settings: LogSettings) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(_formatter(colors=False))
    return handler


def _reset(name: Optional[str], level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = True
    return logger


def _ensure_log_dir(log_dir: Path) -> bool:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(
            f"WARNING: Cannot create log directory {log_dir}: {exc}. "
            "Falling back to console-only logging.",
            file=sys.stderr,
        )
        return False
    return True


def _wire_stdlib(settings: LogSettings) -> None:
    # stdout belongs to the terminal provider
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(settings.level)
    console.setFormatter(_formatter(colors=sys.stderr.isatty()))
    _reset(None, logging.DEBUG).addHandler(console)

    to_files = _ensure_log_dir(settings.log_dir)
    combined = _reset(LOGGER_PREFIX, settings.level)
    if to_files:
        combined.addHandler(
            _rotating_handler(settings.log_dir / "apebot.log", logging.DEBUG, settings)
        )

    for subsystem in SUBSYSTEMS:
        level = settings.overrides.get(subsystem, settings.level)
        logger = _reset(f"{LOGGER_PREFIX}.{subsystem}", level)
        if to_files:
            # NOTSET lets a DEBUG override on one provider reach the file
            logger.addHandler(
                _rotating_handler(settings.log_dir / f"{subsystem}.log", logging.NOTSET, settings)
            )

    for name, level in settings.overrides.items():
        if "." in name:
            logging.getLogger(f"{LOGGER_PREFIX}.{name}").setLevel(level)


def _configure_structlog(settings: LogSettings) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS[:-1],
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )


def setup_logging(config=None) -> None:
    """Configure structlog and the stdlib handlers.

    Called twice by ``main``: first without a config so startup is
    logged, then with the loaded Config. Only the second call caches
    bound loggers, so loggers created during bootstrap pick up the final
    levels.
    """
    settings = LogSettings.from_config(config)
    _wire_stdlib(settings)
    _configure_structlog(settings)
