from dataclasses import asdict
from datetime import date, datetime
from enum import Enum
from sqlite3 import Row
from typing import Any, TypeVar

# Generic type for any model class
T = TypeVar("T")


def _is_date_key(key: str) -> bool:
    return key.endswith("_date") or key == "date"


class ModelFactory:
    """Factory class to convert between domain models and database rows"""

    @staticmethod
    def create_from_row(model_class: type[T], row: Row) -> T:
        """Create a model instance from a database row dictionary"""
        # Copy the row to avoid modifying the original
        processed_data: dict[str, Any] = dict(row)

        # Process date fields
        for key, value in processed_data.items():
            if isinstance(value, str) and _is_date_key(key):
                try:
                    processed_data[key] = datetime.strptime(value, "%Y-%m-%d").date()
                except ValueError:
                    # Not a valid date format, keep as is
                    pass
        return model_class(**processed_data)

    @staticmethod
    def create_list_from_rows(model_class: type[T], rows: list[Row]) -> list[T]:
        """Create a list of model instances from database rows"""
        return [ModelFactory.create_from_row(model_class, row) for row in rows]

    @staticmethod
    def to_params(model: Any) -> dict[str, Any]:
        """Flatten a dataclass into named SQL parameters (ISO dates, plain enum values)."""
        params: dict[str, Any] = asdict(model)
        for key, value in params.items():
            if isinstance(value, date):
                params[key] = value.isoformat()
            elif isinstance(value, Enum):
                params[key] = value.value
            elif isinstance(value, bool):
                params[key] = int(value)
        return params
