"""Configuration management for apebot.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
defaults for the bot identity, each provider, plugins, and logging.
Secrets (tokens, channel secrets) are read from the environment
first so they can stay out of settings.yaml.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger("apebot.bot")

PROVIDERS = ("terminal", "slack", "line")

DEFAULT_SLACK_API_URL = "https://slack.com/api"
DEFAULT_LINE_API_URL = "https://trialbot-api.line.me/v1/events"


class Config:
    """Central configuration manager for apebot.

    Loads settings.yaml and .env from the config directory. Read-only
    after __init__.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = config_dir

        env_file = config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _section(self, name: str) -> dict:
        section = self.settings.get(name) or {}
        if not isinstance(section, dict):
            logger.error("config_section_invalid_type", section=name, type=type(section).__name__)
            return {}
        return section

    def validate(self):
        """Validate critical settings at startup.

        Logs warnings/errors but does not raise; the provider factory
        raises ConfigurationError if the bot cannot start at all.
        """
        provider = self.provider
        if provider not in PROVIDERS:
            logger.error("config_unknown_provider", provider=provider, valid=list(PROVIDERS))
        if provider == "slack" and not self.slack_token:
            logger.error("config_missing_setting", key="slack.token", env="SLACK_TOKEN")
        if provider == "line":
            for key, value in (
                ("line.channel_id", self.line_channel_id),
                ("line.channel_secret", self.line_channel_secret),
                ("line.mid", self.line_mid),
            ):
                if not value:
                    logger.error("config_missing_setting", key=key)
        port = self._section("line").get("port")
        if port is not None and (not isinstance(port, int) or not 0 < port < 65536):
            logger.error("config_invalid_value", key="line.port", value=port, valid="1-65535")

    # --- Bot identity ---

    @property
    def bot_name(self) -> str:
        """Name the bot answers to in ``<name>:`` prefixes. Env APEBOT_NAME wins."""
        return os.environ.get("APEBOT_NAME") or self.settings.get("bot_name", "ape")

    @property
    def provider(self) -> str:
        """Which transport to run (terminal, slack, line). Env APEBOT_PROVIDER wins."""
        value = os.environ.get("APEBOT_PROVIDER") or self.settings.get("provider", "terminal")
        return str(value).lower()

    @property
    def always_addressed(self) -> bool:
        """Treat every terminal message as addressed to the bot (default False)."""
        return bool(self.settings.get("always_addressed", False))

    @property
    def unknown_command_reply(self) -> Optional[str]:
        """Reply for addressed messages with an unknown command.

        Unset by default, in which case unknown commands are ignored.
        ``{command}`` in the text is replaced with the command name.
        """
        return self.settings.get("unknown_command_reply")

    # --- Slack ---

    @property
    def slack_token(self) -> str:
        """Slack bot token. Env SLACK_TOKEN takes precedence."""
        return os.environ.get("SLACK_TOKEN") or self._section("slack").get("token", "")

    @property
    def slack_api_url(self) -> str:
        return self._section("slack").get("api_url", DEFAULT_SLACK_API_URL)

    # --- LINE ---

    @property
    def line_channel_id(self) -> str:
        return os.environ.get("LINE_CHANNEL_ID") or str(self._section("line").get("channel_id", ""))

    @property
    def line_channel_secret(self) -> str:
        return os.environ.get("LINE_CHANNEL_SECRET") or self._section("line").get("channel_secret", "")

    @property
    def line_mid(self) -> str:
        return os.environ.get("LINE_MID") or self._section("line").get("mid", "")

    @property
    def line_host(self) -> str:
        """Webhook listen host (default 0.0.0.0)."""
        return self._section("line").get("host", "0.0.0.0")

    @property
    def line_port(self) -> int:
        """Webhook listen port (default 8080)."""
        return self._section("line").get("port", 8080)

    @property
    def line_api_url(self) -> str:
        return self._section("line").get("api_url", DEFAULT_LINE_API_URL)

    # --- Plugins ---

    @property
    def plugins_dir(self) -> Path:
        """Directory scanned for plugins/<name>/plugin.py."""
        configured = self.settings.get("plugins_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "plugins"

    @property
    def plugin_allowlist(self) -> Optional[List[str]]:
        """If set, only these plugin directory names are loaded."""
        return self.settings.get("plugin_allowlist")

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        return self._section("logging").get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Log level overrides by subsystem or provider, e.g. {"providers.slack": "DEBUG"}."""
        return self._section("logging").get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        return self._section("logging").get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        return self._section("logging").get("backup_count", 5)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
