import argparse
from dataclasses import dataclass, field
from typing import ClassVar

from portfolio_tracker.config import AppConfig, ConfigLoader
from portfolio_tracker.utils.parser_utils import add_config_options


class TestParserUtils:
    """Tests for the parser_utils module."""

    def test_add_config_options(self):
        """Test adding config options to an ArgumentParser."""

        @dataclass
        class SampleConfig:
            str_option: str
            int_option: int
            bool_option: bool
            _private_field: str = field(default="private")  # Should be skipped
            CLASS_VAR: ClassVar[str] = "class-var"  # Should be skipped

        parser = argparse.ArgumentParser()
        add_config_options(parser, SampleConfig)

        args = parser.parse_args([])

        assert args.str_option is None
        assert args.int_option is None
        assert args.bool_option is None
        assert not hasattr(args, "_private_field")
        assert not hasattr(args, "CLASS_VAR")

    def test_bool_options_accept_negation(self):
        parser = argparse.ArgumentParser()
        add_config_options(parser, AppConfig)

        assert parser.parse_args(["--materialize-on-read"]).materialize_on_read is True
        assert parser.parse_args(["--no-materialize-on-read"]).materialize_on_read is False

    def test_add_config_options_from_app_config(self):
        """Test adding config options from the actual AppConfig class."""
        parser = argparse.ArgumentParser()
        add_config_options(parser, AppConfig)

        args = parser.parse_args(["--db-path", "other.db", "--max-history-days", "30"])

        assert args.db_path == "other.db"
        assert args.max_history_days == "30"
        assert args.log_level is None

    def test_only_passed_options_become_overrides(self):
        parser = argparse.ArgumentParser()
        add_config_options(parser, AppConfig)
        _ = parser.add_argument("--config-file")

        args = parser.parse_args(["--log-level", "ERROR", "--config-file", "x.yaml"])

        assert ConfigLoader.args_to_overrides(args) == {"log_level": "ERROR"}
