"""Unit tests for postal code normalization."""

import pytest

from quote_routing.services.routing.normalizer import normalize_postal_code


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1870", "1870"),
        ("  1870  ", "1870"),
        ("B1871ABC", "1871"),
        ("b1871abc", "1871"),
        ("CP 1824 Lanus", "1824"),
        ("12345", "1234"),
        ("1870 / 1871", "1870"),
    ],
)
def test_extracts_first_four_digit_run(raw, expected):
    assert normalize_postal_code(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "ABC", "12", "1-2-3-4", "B18A71"])
def test_returns_none_without_four_digit_run(raw):
    assert normalize_postal_code(raw) is None


def test_accepts_numeric_input():
    assert normalize_postal_code(1870) == "1870"
