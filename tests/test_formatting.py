"""Tests for output formatting helpers."""

import pytest

from jgoogle.formatting import clean, format_date, format_size


@pytest.mark.parametrize(
    "num_bytes, expected",
    [
        (0, "0 B"),
        (-5, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (3 * 1024 * 1024, "3 MB"),
        (5 * 1024**4, "5120 GB"),
    ],
)
def test_format_size(num_bytes, expected):
    assert format_size(num_bytes) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05T14:30:00.000Z", "2024-03-05 14:30"),
        ("2024-03-05T16:30:00+02:00", "2024-03-05 14:30"),
        ("Tue, 5 Mar 2024 14:30:00 +0000", "2024-03-05 14:30"),
        ("2024-03-05", "2024-03-05 00:00"),
        ("not a date", "not a date"),
        ("", ""),
    ],
)
def test_format_date(value, expected):
    assert format_date(value) == expected


def test_clean_flattens_whitespace():
    assert clean("a\tb\nc") == "a b c"
    assert clean(None) == ""
