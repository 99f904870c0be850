"""Value objects - identifiers and naming rules."""

from mini_rdbms.domain.value_objects.identifiers import (
    INT_MAX,
    INT_MIN,
    PRIMARY_KEY_COLUMN,
    Offset,
    RowId,
    is_storable_name,
    sanitize_name,
    table_file_name,
)

__all__ = [
    "INT_MAX",
    "INT_MIN",
    "PRIMARY_KEY_COLUMN",
    "Offset",
    "RowId",
    "is_storable_name",
    "sanitize_name",
    "table_file_name",
]
