"""Identifiers and naming rules for stored tables.

These value objects keep raw integers and user-supplied names from leaking
into storage code without the checks the on-disk format depends on.
"""

from __future__ import annotations

from typing import NewType

RowId = NewType("RowId", int)
"""Primary key of a row. Every table keys its rows by an integer ``id`` column."""

Offset = NewType("Offset", int)
"""Byte position of a record's first byte (its tombstone flag) within a table file."""

# Integers are stored as fixed-width signed 64-bit values
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1

PRIMARY_KEY_COLUMN = "id"

_UNSAFE_SEQUENCES = ("..", "/", "\\")


def sanitize_name(name: str) -> str:
    """Strip path-traversal sequences from a database or table name.

    Example:
        >>> sanitize_name("../etc/passwd")
        'etcpasswd'
    """
    for sequence in _UNSAFE_SEQUENCES:
        name = name.replace(sequence, "")
    return name


def is_storable_name(name: str) -> bool:
    """Check that a sanitized name can be used as a file system component."""
    return bool(name) and name.strip(".") != "" and name == name.strip()


def table_file_name(table_name: str) -> str:
    """Return the file name backing a table inside its database directory."""
    return f"{sanitize_name(table_name)}.tbl"
