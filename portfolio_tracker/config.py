# config.py
import argparse
from dataclasses import MISSING, dataclass, fields
import logging
import os
from pathlib import Path
from typing import Any, get_type_hints

import yaml

from portfolio_tracker.utils.type_utils import convert_type


logger: logging.Logger = logging.getLogger(__name__)

ENV_VARIABLE = "PORTFOLIO_TRACKER_ENV"


def get_env() -> str:
    # Tests always run against the test config; otherwise read the env variable, default 'prod'
    is_test_environment: bool = bool(os.getenv("PYTEST_CURRENT_TEST"))
    env: str = "test" if is_test_environment else os.getenv(ENV_VARIABLE, "prod").lower()
    logger.debug(f"Using environment: {env}")
    return env


@dataclass
class AppConfig:
    db_path: Path
    log_config_path: Path
    log_file_path: Path
    log_level: str
    yf_max_requests: int
    yf_request_interval_seconds: int
    yf_cache_path: Path
    max_history_days: int = 3650
    materialize_on_read: bool = True


class ConfigLoader:
    """Load and manage application configuration from multiple sources."""

    @staticmethod
    def _find_config_directory() -> Path:
        """Find a valid configuration directory from several possible locations."""
        possible_config_dirs: list[Path] = [
            Path("config"),  # Current directory
            Path.home() / ".portfolio-tracker" / "config",  # User's home directory
            Path("/etc/portfolio-tracker/config"),  # System-wide config
            Path(__file__).parent.parent / "config",  # Source checkout
        ]

        for directory in possible_config_dirs:
            if directory.exists():
                logger.debug(f"Using config directory: {directory}")
                return directory

        logger.warning("No config directory found, using 'config'")
        return Path("config")

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            logger.debug(f"Config file not found: {path}")
            return {}
        with open(path, "r") as f:
            try:
                return yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {path}: {e}") from e

    @staticmethod
    def _load_merged_yaml(
        env: str, config_dir: Path | None = None, file: Path | None = None
    ) -> dict[str, Any]:
        """Get appropriate config files as a dict, merging nested items."""
        directory: Path = config_dir or ConfigLoader._find_config_directory()

        base_config: dict[str, Any] = ConfigLoader._load_yaml(directory / "config.base.yaml")
        env_config: dict[str, Any] = ConfigLoader._load_yaml(directory / f"config.{env}.yaml")

        merged_config: dict[str, Any] = ConfigLoader._deep_merge(
            ConfigLoader._get_default_config(), base_config
        )
        if not base_config and not env_config:
            logger.warning("No config files found. Using built-in defaults.")
        merged_config = ConfigLoader._deep_merge(merged_config, env_config)

        if file:
            merged_config = ConfigLoader._deep_merge(merged_config, ConfigLoader._load_yaml(file))

        return merged_config

    @staticmethod
    def _get_default_config() -> dict[str, Any]:
        """Return sensible default configuration values if no config files exist."""
        return {
            "db_path": "portfolio_tracker.db",
            "log_config_path": "config/logging_config.yaml",
            "log_file_path": "logs/portfolio_tracker.log",
            "log_level": "INFO",
            "yf_max_requests": 2,
            "yf_request_interval_seconds": 5,
            "yf_cache_path": ".cache/yfinance",
            "max_history_days": 3650,
            "materialize_on_read": True,
        }

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries. Values in `override` take precedence."""
        result: dict[str, Any] = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _dict_to_config(data: dict[str, Any], config_class: type[AppConfig]) -> AppConfig:
        """Build the config object from a dict, coercing values to the declared field types."""
        type_hints: dict[str, Any] = get_type_hints(config_class)
        init_args: dict[str, Any] = {}

        for field in fields(config_class):
            name: str = field.name
            expected_type = type_hints.get(name, Any)
            value = data.get(name, MISSING)

            if value is MISSING:
                if field.default is not MISSING:
                    value = field.default
                else:
                    raise ValueError(f"Missing required config value: '{name}'")

            try:
                init_args[name] = convert_type(value, expected_type)
            except (TypeError, ValueError) as e:
                raise TypeError(
                    f"Invalid type for '{name}': expected {expected_type}, got {type(value)}. Error: {e}"
                ) from e

        return config_class(**init_args)

    @staticmethod
    def load_app_config(
        env: str | None = None,
        overrides: dict[str, Any] | None = None,
        config_file: Path | None = None,
    ) -> AppConfig:
        """
        Builds an AppConfig object with smart environment detection.

        The configuration is loaded in this order of precedence:
        1. Default built-in values
        2. Base config file (config.base.yaml)
        3. Environment-specific config file (config.{env}.yaml)
        4. Custom config file (if specified)
        5. CLI argument overrides

        Args:
            env: Environment name; detected with get_env() when omitted
            overrides: Optional dictionary of configuration overrides (typically from CLI)
            config_file: Optional path to a specific config file to use

        Returns:
            An AppConfig object with the merged configuration
        """
        env = env or get_env()
        merged_config: dict[str, Any] = ConfigLoader._load_merged_yaml(env, file=config_file)

        if overrides:
            merged_config = ConfigLoader._deep_merge(merged_config, overrides)

        config: AppConfig = ConfigLoader._dict_to_config(merged_config, AppConfig)
        ConfigLoader._validate(config)
        return config

    @staticmethod
    def _validate(config: AppConfig) -> None:
        """Reject limits that would stall price requests or history reports."""
        for name in ("yf_max_requests", "yf_request_interval_seconds", "max_history_days"):
            if getattr(config, name) <= 0:
                raise ValueError(f"Config value '{name}' must be positive")

    @staticmethod
    def args_to_overrides(args: argparse.Namespace) -> dict[str, Any]:
        """Convert argparse Namespace to a dictionary of config overrides."""
        config_names: set[str] = {field.name for field in fields(AppConfig)}
        return {k: v for k, v in vars(args).items() if k in config_names and v is not None}
