from datetime import date
from pathlib import Path

import pytest

from portfolio_tracker.utils.type_utils import convert_type


class TestConvertType:
    @pytest.mark.parametrize(
        "value, expected_type, expected",
        [
            ("42", int, 42),
            ("1.5", float, 1.5),
            ("DEBUG", str, "DEBUG"),
            ("data/db.sqlite", Path, Path("data/db.sqlite")),
            ("2024-02-29", date, date(2024, 2, 29)),
            (date(2024, 1, 1), date, date(2024, 1, 1)),
        ],
    )
    def test_simple_conversions(self, value, expected_type, expected):
        assert convert_type(value, expected_type) == expected

    @pytest.mark.parametrize("value", ["true", "Yes", "1", "on", True, 1])
    def test_truthy_bools(self, value):
        assert convert_type(value, bool) is True

    @pytest.mark.parametrize("value", ["false", "No", "0", "off", False, 0])
    def test_falsy_bools(self, value):
        assert convert_type(value, bool) is False

    def test_invalid_bool(self):
        with pytest.raises(ValueError):
            _ = convert_type("maybe", bool)

    def test_none_passes_through(self):
        assert convert_type(None, int) is None

    def test_optional_union(self):
        assert convert_type("7", int | None) == 7

    def test_union_falls_through_to_next_type(self):
        assert convert_type("abc", int | str) == "abc"

    def test_invalid_int(self):
        with pytest.raises(ValueError, match="expected int"):
            _ = convert_type("not-a-number", int)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            _ = convert_type("31/12/2024", date)
