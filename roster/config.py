"""Configuration management - loads roster.yaml and environment overrides."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from roster.models import RosterSettings


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


# Environment variable -> (section, key). A section of None means top level.
ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "DEFAULT_ROLE_ID": (None, "default_role_id"),
    "DISCORD_GUILD_ID": (None, "guild_id"),
    "NOTIFICATION_CHANNEL_ID": (None, "notification_channel_id"),
    "DISCORD_BOT_TOKEN": ("discord", "bot_token"),
    "STORE_BACKEND": ("store", "backend"),
    "MONGO_URI": ("store", "mongo_uri"),
    "PUBSUB_PROJECT_ID": ("pubsub", "project_id"),
}


def apply_env_overrides(raw_config: dict[str, Any], environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Overlay deployment values and secrets from the environment.

    Args:
        raw_config: Parsed YAML mapping (modified in place)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The updated mapping
    """
    environ = os.environ if environ is None else environ
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if not value:
            continue
        target = raw_config if section is None else raw_config.setdefault(section, {})
        target[key] = value
    return raw_config


class Config:
    """Service configuration loader.

    Loads roster.yaml and provides validated access to:
    - the default role and notification channel
    - store backend settings
    - sweep schedule and warning windows
    - Pub/Sub and chat platform API settings
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to roster.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/roster.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[RosterSettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/roster.yaml")

    def _load_config(self) -> None:
        """Load, overlay and validate roster.yaml."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/roster.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")
        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self._config_path}")

        try:
            self._settings = RosterSettings(**apply_env_overrides(raw_config))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @property
    def settings(self) -> RosterSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def default_role_id(self) -> str:
        return self.settings.default_role_id

    @property
    def notification_channel_id(self) -> Optional[str]:
        return self.settings.notification_channel_id

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def get_settings() -> RosterSettings:
    """Shortcut for the validated settings of the global configuration."""
    return get_config().settings


def reload_config() -> None:
    """Reload global configuration from disk."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()
