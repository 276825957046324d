"""Utilities for working with argument parsers."""

import argparse
from dataclasses import fields
from typing import Any, ClassVar, get_origin, get_type_hints

from portfolio_tracker.config import AppConfig


def add_config_options(
    parser: argparse.ArgumentParser | argparse._ArgumentGroup,
    config_class: type[Any] = AppConfig,
) -> None:
    """
    Dynamically add configuration options to a parser based on a dataclass.

    Every option defaults to None so that only values the user actually passed
    end up as config overrides.

    Args:
        parser: The argument parser (or group) to add options to
        config_class: The dataclass to extract fields from (default: AppConfig)
    """
    type_hints: dict[str, Any] = get_type_hints(config_class)
    for field in fields(config_class):
        field_type = type_hints.get(field.name, str)
        # Skip private fields and ClassVars
        if field.name.startswith("_") or get_origin(field_type) is ClassVar:
            continue

        arg_name: str = f"--{field.name.replace('_', '-')}"  # eg. db_path -> --db-path
        help_text: str = f"Override {field.name} configuration value"

        if field_type is bool:
            # --materialize-on-read / --no-materialize-on-read
            _ = parser.add_argument(
                arg_name,
                dest=field.name,
                action=argparse.BooleanOptionalAction,
                default=None,
                help=help_text,
            )
            continue

        # Accept all as strings, ConfigLoader converts them
        _ = parser.add_argument(
            arg_name,
            dest=field.name,
            type=str,
            default=None,
            metavar=getattr(field_type, "__name__", "value").upper(),
            help=help_text,
        )
