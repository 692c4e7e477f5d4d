"""
Bot Configuration
=================

Dataclass configuration loaded from YAML, with ``.env`` and
environment variable overrides.

Priority (highest first):
1. WABOT_* environment variables (``.env`` is loaded first)
2. Custom config path
3. ~/.wabot/config.yaml
4. Built-in defaults
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .commands import DEFAULT_ABOUT_TEXT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = "~/.wabot"
DEFAULT_CONFIG_FILE = "config.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class BotConfig:
    """
    Main bot configuration.

    Loaded from ~/.wabot/config.yaml or a custom path.
    """

    auth_dir: str = "auth_info"
    print_qr: bool = True
    reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_attempts: Optional[int] = None
    about_text: str = DEFAULT_ABOUT_TEXT
    log_level: str = "INFO"
    debug: bool = False

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay must be >= 0")
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")

    @classmethod
    def default(cls) -> "BotConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "auth_dir": self.auth_dir,
            "print_qr": self.print_qr,
            "reconnect": self.reconnect,
            "reconnect_delay": self.reconnect_delay,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "about_text": self.about_text,
            "log_level": self.log_level,
            "debug": self.debug,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BotConfig":
        """Create from dictionary. Unknown keys are ignored."""
        max_attempts = data.get("max_reconnect_attempts")
        return cls(
            auth_dir=str(data.get("auth_dir", "auth_info")),
            print_qr=bool(data.get("print_qr", True)),
            reconnect=bool(data.get("reconnect", True)),
            reconnect_delay=float(data.get("reconnect_delay", 1.0)),
            max_reconnect_attempts=int(max_attempts) if max_attempts is not None else None,
            about_text=data.get("about_text", DEFAULT_ABOUT_TEXT),
            log_level=data.get("log_level", "INFO"),
            debug=bool(data.get("debug", False)),
        )


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect WABOT_* overrides from the environment."""
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    if environ.get("WABOT_AUTH_DIR"):
        overrides["auth_dir"] = environ["WABOT_AUTH_DIR"]
    if environ.get("WABOT_PRINT_QR"):
        overrides["print_qr"] = _env_bool(environ["WABOT_PRINT_QR"])
    if environ.get("WABOT_RECONNECT"):
        overrides["reconnect"] = _env_bool(environ["WABOT_RECONNECT"])
    if environ.get("WABOT_RECONNECT_DELAY"):
        overrides["reconnect_delay"] = float(environ["WABOT_RECONNECT_DELAY"])
    if environ.get("WABOT_MAX_RECONNECT_ATTEMPTS"):
        overrides["max_reconnect_attempts"] = int(environ["WABOT_MAX_RECONNECT_ATTEMPTS"])
    if environ.get("WABOT_LOG_LEVEL"):
        overrides["log_level"] = environ["WABOT_LOG_LEVEL"]
    if environ.get("WABOT_DEBUG"):
        overrides["debug"] = _env_bool(environ["WABOT_DEBUG"])

    return overrides


class ConfigLoader:
    """
    Configuration loader for the bot.

    Loads from:
    1. Custom path (if provided)
    2. ~/.wabot/config.yaml
    3. Default configuration
    """

    def __init__(self, config_path: Optional[str] = None, use_env: bool = True):
        """
        Initialize config loader.

        Args:
            config_path: Optional custom config file path
            use_env: Apply .env / WABOT_* overrides on top of the file
        """
        self.config_path = config_path
        self.use_env = use_env
        self._config: Optional[BotConfig] = None

    @property
    def config_dir(self) -> Path:
        """Get configuration directory."""
        return Path(os.path.expanduser(DEFAULT_CONFIG_DIR))

    @property
    def default_config_file(self) -> Path:
        """Get default config file path."""
        return self.config_dir / DEFAULT_CONFIG_FILE

    def load(self) -> BotConfig:
        """
        Load configuration.

        Returns:
            BotConfig instance
        """
        if self._config is not None:
            return self._config

        data = self._read_data()

        if self.use_env:
            load_dotenv()
            data.update(env_overrides())

        self._config = BotConfig.from_dict(data)
        return self._config

    def _read_data(self) -> Dict[str, Any]:
        if self.config_path:
            config_file = Path(self.config_path)
            if config_file.exists():
                logger.info(f"Loaded config from: {config_file}")
                return self._load_from_file(config_file)
            logger.warning(f"Config file not found: {config_file}")

        if self.default_config_file.exists():
            logger.info(f"Loaded config from: {self.default_config_file}")
            return self._load_from_file(self.default_config_file)

        logger.info("Using default configuration")
        return {}

    def _load_from_file(self, path: Path) -> Dict[str, Any]:
        """
        Read raw settings from a YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Settings dict (empty when the file cannot be parsed)
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"YAML parse error in {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Config in {path} must be a mapping, got {type(data).__name__}")
            return {}
        return data

    def save(self, config: Optional[BotConfig] = None, path: Optional[Path] = None) -> Path:
        """
        Save configuration to file.

        Args:
            config: Configuration to save (default: current config)
            path: Path to save to (default: default config file)
        """
        config = config or self._config or BotConfig.default()
        path = Path(path) if path else self.default_config_file

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        logger.info(f"Saved config to: {path}")
        return path
