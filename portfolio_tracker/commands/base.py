"""CLI command base class, the command registry and shared argument types."""

import argparse
import logging
from abc import ABC, abstractmethod
from datetime import date

from portfolio_tracker.config import AppConfig
from portfolio_tracker.container import ServiceContainer
from portfolio_tracker.db import Database
from portfolio_tracker.utils.type_utils import convert_type

logger = logging.getLogger(__name__)


def iso_date(value: str) -> date:
    """argparse type for YYYY-MM-DD arguments."""
    try:
        return convert_type(value, date)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


class Command(ABC):
    """A CLI subcommand bound to the application's config, database and services."""

    name: str
    help: str

    def __init__(self, config: AppConfig, db: Database, container: ServiceContainer):
        self.config: AppConfig = config
        self.db: Database = db
        self.container: ServiceContainer = container

    @classmethod
    def add_parser(cls, subparser) -> argparse.ArgumentParser:
        """Create this command's parser under the top-level subparsers."""
        return subparser.add_parser(cls.name, help=cls.help, description=cls.help)

    @classmethod
    @abstractmethod
    def setup_parser(cls, subparser) -> None:
        """
        Add the command and its arguments to the CLI.

        Args:
            subparser: The top-level subparsers action
        """

    @abstractmethod
    def execute(self, args: argparse.Namespace) -> int:
        """
        Run the command.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """

    def fail(self, message: str, exc_info: bool = False) -> int:
        """Report a failure to the log and to the user; returns exit code 1."""
        logger.error(f"{self.name}: {message}", exc_info=exc_info)
        print(f"Error: {message}")
        return 1


class CommandRegistry:
    """Commands by CLI name, filled in by the `@CommandRegistry.register` decorator."""

    _commands: dict[str, type[Command]] = {}

    @classmethod
    def register(cls, command_class: type[Command]) -> type[Command]:
        existing: type[Command] | None = cls._commands.get(command_class.name)
        if existing is not None and existing is not command_class:
            raise ValueError(
                f"Command name '{command_class.name}' is already used by {existing.__name__}"
            )
        cls._commands[command_class.name] = command_class
        return command_class

    @classmethod
    def get(cls, name: str) -> type[Command] | None:
        return cls._commands.get(name)

    @classmethod
    def get_commands(cls) -> dict[str, type[Command]]:
        return dict(cls._commands)
