"""Roster parsing and validation.

A roster is the ordered list of process identifiers that forms the ring.
Everything here runs before any process exists, so every problem surfaces as
a ``ConfigurationError`` and the election never starts on bad input.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable

from varspeed.lib.exceptions import (
    ConfigurationError,
    DuplicateIdentifierError,
    EmptyRosterError,
    InvalidIdentifierError,
    RosterFormatError,
    RosterSizeError,
)
from varspeed.lib.models import Roster

logger = logging.getLogger(__name__)


def build_roster(ids: Iterable[int], size: int | None = None) -> Roster:
    """
    Validate identifiers and build a roster.

    Args:
        ids: Identifiers in ring order
        size: Declared ring size. Defaults to the number of identifiers.
            Identifiers beyond it are ignored.

    Returns:
        Validated Roster

    Raises:
        EmptyRosterError: If the ring size is below 1
        RosterSizeError: If fewer identifiers than ``size`` are given
        InvalidIdentifierError: If an identifier is negative or not an integer
        DuplicateIdentifierError: If an identifier repeats
    """
    values = list(ids)
    if size is None:
        size = len(values)

    if size <= 0:
        raise EmptyRosterError(size)

    if len(values) < size:
        raise RosterSizeError(size, len(values))

    if len(values) > size:
        logger.warning(f"Ignoring {len(values) - size} identifiers beyond ring size {size}")
        values = values[:size]

    for value in values:
        # bool is an int subclass but never a meaningful identifier
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidIdentifierError(
                f"Identifier must be an integer, got {value!r}",
                field="ids",
                value=value,
            )
        if value < 0:
            raise InvalidIdentifierError(
                f"Identifier must be non-negative, got {value}",
                field="ids",
                value=value,
            )

    duplicates = sorted(v for v, count in Counter(values).items() if count > 1)
    if duplicates:
        raise DuplicateIdentifierError(duplicates)

    return Roster(ids=tuple(values))


def parse_roster(text: str) -> Roster:
    """
    Parse roster text.

    The first non-blank line holds the ring size N. The identifiers follow,
    separated by whitespace, on the next line (or spread over the remaining
    lines).

    Example:
        5
        5 3 8 1 9
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise RosterFormatError("Roster is empty", field="size")

    try:
        size = int(lines[0])
    except ValueError:
        raise RosterFormatError(
            f"Ring size must be an integer, got {lines[0]!r}",
            field="size",
            value=lines[0],
        )

    tokens = " ".join(lines[1:]).split()
    try:
        ids = [int(token) for token in tokens]
    except ValueError as e:
        raise RosterFormatError(f"Identifiers must be integers: {e}", field="ids")

    return build_roster(ids, size=size)


def load_roster(path: Path | str) -> Roster:
    """Read and parse a roster file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read roster file {path}: {e}",
            field="roster_file",
            value=str(path),
        )

    logger.info(f"Loaded roster from {path}")
    return parse_roster(text)
