"""Tests for reportgen.rendering.formatting.format_value."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from reportgen.core.tables import ABSENT
from reportgen.rendering.formatting import format_value


class TestFormatValue:
    """Display formatting of cells and parameters."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (ABSENT, ""),
            (Decimal("1234.5"), "1,234.50"),
            (1234567.891, "1,234,567.89"),
            (Decimal("-0.5"), "-0.50"),
            (42, "42"),
            (True, "True"),
            ("טקסט", "טקסט"),
            (date(2024, 3, 1), "01/03/2024"),
            (datetime(2024, 12, 31, 23, 59), "31/12/2024"),
            (time(8, 30), "08:30:00"),
        ],
    )
    def test_formats(self, value, expected):
        assert format_value(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("0.125"), "0.13"),
            (Decimal("2.675"), "2.68"),
            (Decimal("-0.125"), "-0.13"),
            (Decimal("1234.005"), "1,234.01"),
            (0.125, "0.13"),
            (2.675, "2.68"),
            (1e30, "1,000,000,000,000,000,000,000,000,000,000.00"),
        ],
    )
    def test_halves_round_away_from_zero(self, value, expected):
        assert format_value(value) == expected

    def test_non_finite_floats(self):
        assert format_value(float("inf")) == "inf"
        assert format_value(float("nan")) == "nan"

    def test_falsy_values_are_not_blank(self):
        assert format_value(0) == "0"
        assert format_value(False) == "False"
        assert format_value(Decimal("0")) == "0.00"
