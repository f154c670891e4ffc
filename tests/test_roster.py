"""Roster parsing and validation tests."""

import pytest

from varspeed.lib.exceptions import (
    ConfigurationError,
    DuplicateIdentifierError,
    EmptyRosterError,
    InvalidIdentifierError,
    RosterFormatError,
    RosterSizeError,
)
from varspeed.lib.roster import build_roster, load_roster, parse_roster


def test_build_roster_keeps_order():
    roster = build_roster([5, 3, 8, 1, 9])

    assert roster.ids == (5, 3, 8, 1, 9)
    assert roster.size == 5
    assert roster.minimum == 1


def test_duplicates_rejected():
    with pytest.raises(DuplicateIdentifierError) as exc_info:
        build_roster([4, 4, 1])

    assert exc_info.value.duplicates == [4]
    assert exc_info.value.field == "ids"


@pytest.mark.parametrize("size", [0, -3])
def test_non_positive_size_rejected(size):
    with pytest.raises(EmptyRosterError):
        build_roster([1, 2], size=size)


def test_empty_list_rejected():
    with pytest.raises(EmptyRosterError):
        build_roster([])


def test_too_few_identifiers_rejected():
    with pytest.raises(RosterSizeError) as exc_info:
        build_roster([1, 2], size=3)

    assert exc_info.value.expected == 3
    assert exc_info.value.received == 2
    assert "3 UIDs are expected" in exc_info.value.message


def test_extra_identifiers_ignored():
    roster = build_roster([1, 2, 3, 2], size=3)
    assert roster.ids == (1, 2, 3)


@pytest.mark.parametrize("value", [-1, 2.5, "3", True])
def test_invalid_identifiers_rejected(value):
    with pytest.raises(InvalidIdentifierError):
        build_roster([1, value])


def test_parse_roster_text():
    roster = parse_roster("5\n5 3 8 1 9\n")
    assert roster.ids == (5, 3, 8, 1, 9)


def test_parse_roster_ids_over_several_lines():
    roster = parse_roster("\n4\n4 7\n  2 6  \n")
    assert roster.ids == (4, 7, 2, 6)


@pytest.mark.parametrize(
    "text",
    ["", "   \n", "five\n1 2 3 4 5", "3\n1 two 3"],
)
def test_parse_roster_malformed(text):
    with pytest.raises(RosterFormatError):
        parse_roster(text)


def test_parse_roster_short_line():
    with pytest.raises(RosterSizeError):
        parse_roster("4\n1 2 3")


def test_load_roster_file(tmp_path):
    path = tmp_path / "input.txt"
    path.write_text("4\n100 0 50 25\n", encoding="utf-8")

    assert load_roster(path).ids == (100, 0, 50, 25)


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        load_roster(tmp_path / "missing.txt")

    assert exc_info.value.field == "roster_file"
