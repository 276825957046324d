"""
Portfolio Tracker CLI

Records fund transactions and dividends against portfolio holdings, refreshes
daily closing prices from Yahoo Finance, and reports portfolio value over time.
"""

import argparse
import importlib
import logging
import pkgutil
import sys
from pathlib import Path
from typing import Any

import portfolio_tracker.commands
from portfolio_tracker.commands.base import Command, CommandRegistry
from portfolio_tracker.config import AppConfig, ConfigLoader, get_env
from portfolio_tracker.container import ServiceContainer
from portfolio_tracker.db import Database
from portfolio_tracker.utils.parser_utils import add_config_options
from portfolio_tracker.utils.setup_logging import setup_logging

logger = logging.getLogger(__name__)

DEV_ENVIRONMENTS = ("dev", "test")


def load_commands() -> None:
    """Import every command module so its command registers itself."""
    for module in pkgutil.iter_modules(portfolio_tracker.commands.__path__):
        if module.name != "base":
            _ = importlib.import_module(f"portfolio_tracker.commands.{module.name}")


def create_parser(env: str) -> argparse.ArgumentParser:
    """Build the CLI parser: global config overrides plus one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="portfolio-tracker",
        description="Portfolio Tracker CLI",
        epilog="Use 'portfolio-tracker COMMAND --help' for more information on a command.",
    )

    global_group = parser.add_argument_group("Global Options")
    if env in DEV_ENVIRONMENTS:
        _ = global_group.add_argument(
            "--env",
            choices=["dev", "test", "prod"],
            help="Environment whose config file to load (development only)",
        )
    add_config_options(global_group)
    _ = global_group.add_argument(
        "--config-file", type=str, help="Config file to load instead of the environment's"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    for command_class in CommandRegistry.get_commands().values():
        command_class.setup_parser(subparsers)
    return parser


def _load_config(args: argparse.Namespace, env: str) -> AppConfig:
    if env in DEV_ENVIRONMENTS and getattr(args, "env", None):
        env = args.env
    overrides: dict[str, Any] = ConfigLoader.args_to_overrides(args)
    config_file: Path | None = Path(args.config_file) if args.config_file else None
    return ConfigLoader.load_app_config(env=env, overrides=overrides, config_file=config_file)


def run_command(command_class: type[Command], config: AppConfig, args: argparse.Namespace) -> int:
    """Open the database, wire the services and run one command against them."""
    with Database(config.db_path) as db:
        db.create_tables_if_not_exists()
        container = ServiceContainer(config, db)
        return command_class(config, db, container).execute(args)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point for the portfolio-tracker CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    load_commands()
    env: str = get_env()
    parser = create_parser(env)
    args: argparse.Namespace = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config: AppConfig = _load_config(args, env)
    except (OSError, TypeError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_config_path, config.log_level, config.log_file_path)
    logger.debug(f"Running '{args.command}' against {config.db_path}")

    command_class: type[Command] | None = CommandRegistry.get(args.command)
    if command_class is None:
        print(f"Error: Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return run_command(command_class, config, args)
    except Exception as e:
        logger.error(f"Unhandled exception in '{args.command}': {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
