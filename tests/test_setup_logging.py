import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from portfolio_tracker.utils.setup_logging import PACKAGE_LOGGER, setup_logging

SHIPPED_LOGGING_CONFIG = Path(__file__).parent.parent / "config" / "logging_config.yaml"


@pytest.fixture
def logging_config(tmp_path) -> Path:
    """Copy of the shipped logging config, so tests may edit it."""
    config_path = tmp_path / "logging_config.yaml"
    config_path.write_text(SHIPPED_LOGGING_CONFIG.read_text())
    return config_path


@pytest.fixture
def restore_loggers():
    """Undo a real dictConfig call so later tests see the default logging setup."""
    names = [PACKAGE_LOGGER, "db", "yfinance"]
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    for name in names:
        named = logging.getLogger(name)
        for handler in list(named.handlers):
            named.removeHandler(handler)
            handler.close()
        named.propagate = True
        named.setLevel(logging.NOTSET)


def test_shipped_config_routes_package_logs(logging_config, tmp_path):
    with patch("logging.config.dictConfig") as dict_config:
        setup_logging(logging_config, "INFO", tmp_path / "tracker.log")

    config = dict_config.call_args[0][0]
    assert config["loggers"][PACKAGE_LOGGER]["handlers"] == ["console", "file"]
    assert config["loggers"][PACKAGE_LOGGER]["propagate"] is False


def test_log_file_path_redirects_file_handlers(logging_config, tmp_path):
    log_file: Path = tmp_path / "nested" / "dir" / "tracker.log"

    with patch("logging.config.dictConfig") as dict_config:
        setup_logging(logging_config, "INFO", log_file)

    handlers = dict_config.call_args[0][0]["handlers"]
    assert handlers["file"]["filename"] == str(log_file)
    assert "filename" not in handlers["console"]
    assert log_file.parent.is_dir()


def test_level_override_applied(logging_config, tmp_path, restore_loggers):
    log_file = tmp_path / "tracker.log"

    setup_logging(logging_config, "debug", log_file)
    logging.getLogger(f"{PACKAGE_LOGGER}.services").debug("valuation recomputed")
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()

    assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG
    assert "valuation recomputed" in log_file.read_text()


def test_invalid_level_keeps_yaml_levels(logging_config, tmp_path):
    with (
        patch("logging.config.dictConfig") as dict_config,
        patch("logging.warning") as warning,
    ):
        setup_logging(logging_config, "LOUD", tmp_path / "tracker.log")

    dict_config.assert_called_once()
    assert "Invalid log level 'LOUD'" in warning.call_args[0][0]


def test_missing_config_falls_back_to_basic_config(tmp_path):
    with (
        patch("logging.basicConfig") as basic_config,
        patch("logging.error") as error,
        patch("builtins.print"),
    ):
        setup_logging(tmp_path / "absent.yaml", "INFO")

    basic_config.assert_called_once()
    assert "Failed to load logging config" in error.call_args[0][0]


def test_rejected_config_falls_back_to_basic_config(logging_config, tmp_path):
    config = yaml.safe_load(logging_config.read_text())
    config["handlers"]["console"]["class"] = "logging.NoSuchHandler"
    logging_config.write_text(yaml.dump(config))

    with (
        patch("logging.basicConfig") as basic_config,
        patch("logging.error") as error,
        patch("builtins.print"),
    ):
        setup_logging(logging_config, "INFO", tmp_path / "tracker.log")

    basic_config.assert_called_once()
    assert "Invalid logging configuration" in error.call_args[0][0]
