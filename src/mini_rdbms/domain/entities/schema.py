"""Schema model: column, table and row definitions.

The table schema is the single source of truth for two things:
    - the order and types of the fields in an on-disk record
    - how a literal from command text becomes a typed value

Every table has exactly one Integer column named ``id``. It is the primary
key, it is always the first column, and it can never be reassigned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Mapping, Union

from mini_rdbms.domain.errors import SchemaValidationError, TypeMismatchError
from mini_rdbms.domain.value_objects import INT_MAX, INT_MIN, PRIMARY_KEY_COLUMN, RowId

Value = Union[int, str]
"""A typed column value: int for Integer columns, str for Text columns."""

_INTEGER_LITERAL = re.compile(r"[+-]?\d+")


class ColumnType(Enum):
    """Declared column types."""

    INTEGER = "int"
    TEXT = "string"

    @classmethod
    def from_name(cls, name: str) -> ColumnType:
        """Resolve a type name from command text (case-insensitive)."""
        try:
            return _TYPE_ALIASES[name.upper()]
        except KeyError:
            raise SchemaValidationError(
                f"Unsupported column type '{name}' (expected int or string)"
            ) from None


_TYPE_ALIASES: dict[str, ColumnType] = {
    "INT": ColumnType.INTEGER,
    "INTEGER": ColumnType.INTEGER,
    "BIGINT": ColumnType.INTEGER,
    "STRING": ColumnType.TEXT,
    "TEXT": ColumnType.TEXT,
    "VARCHAR": ColumnType.TEXT,
}


@dataclass(frozen=True)
class ColumnDef:
    """Column definition.

    Attributes:
        name: Column name, unique within its table.
        data_type: Declared type.
        is_primary_key: True only for the ``id`` column.
        is_unique: Whether live rows must hold distinct values.
    """

    name: str
    data_type: ColumnType
    is_primary_key: bool = False
    is_unique: bool = False

    @property
    def has_unique_index(self) -> bool:
        """Whether this column gets a secondary uniqueness index."""
        return self.is_unique and not self.is_primary_key

    def convert(self, literal: Value) -> Value:
        """Convert a literal to this column's declared type.

        Text columns accept any literal and keep its text form. Integer
        columns accept ints and decimal digit strings within the stored
        64-bit range.

        Raises:
            TypeMismatchError: If the literal does not fit the column type.
        """
        if self.data_type is ColumnType.TEXT:
            if isinstance(literal, bool):
                raise TypeMismatchError(self.name, literal, "string")
            return literal if isinstance(literal, str) else str(literal)

        if isinstance(literal, bool):
            raise TypeMismatchError(self.name, literal, "int")
        if isinstance(literal, int):
            value = literal
        elif isinstance(literal, str) and _INTEGER_LITERAL.fullmatch(literal.strip()):
            value = int(literal.strip())
        else:
            raise TypeMismatchError(self.name, literal, "int")

        if not INT_MIN <= value <= INT_MAX:
            raise TypeMismatchError(self.name, literal, "int")
        return value

    def accepts(self, value: object) -> bool:
        """Check that an already-typed value matches this column."""
        if self.data_type is ColumnType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool) and INT_MIN <= value <= INT_MAX
        return isinstance(value, str)


@dataclass(frozen=True)
class TableSchema:
    """Ordered column layout of a table.

    Use :meth:`build` to create a schema from parsed column definitions;
    it moves ``id`` to the front and marks it as the primary key. The
    constructor only validates an already-normalized layout.
    """

    name: str
    columns: tuple[ColumnDef, ...]

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaValidationError("Table name must not be empty")

        seen: set[str] = set()
        for column in self.columns:
            if column.name in seen:
                raise SchemaValidationError(
                    f"Duplicate column '{column.name}' in table '{self.name}'"
                )
            seen.add(column.name)

        if not self.columns or self.columns[0].name != PRIMARY_KEY_COLUMN:
            raise SchemaValidationError(
                f"Table '{self.name}' must include an '{PRIMARY_KEY_COLUMN}' column of type 'int'"
            )
        primary = self.columns[0]
        if primary.data_type is not ColumnType.INTEGER or not primary.is_primary_key:
            raise SchemaValidationError(
                f"Column '{PRIMARY_KEY_COLUMN}' of table '{self.name}' must be an int primary key"
            )
        if any(column.is_primary_key for column in self.columns[1:]):
            raise SchemaValidationError(
                f"Only column '{PRIMARY_KEY_COLUMN}' can be the primary key"
            )

    @classmethod
    def build(cls, name: str, columns: Iterable[ColumnDef]) -> TableSchema:
        """Normalize parsed column definitions into a table schema.

        Raises:
            SchemaValidationError: If there is no ``id`` int column, a column
                name repeats, or another column claims the primary key.
        """
        columns = list(columns)
        id_columns = [c for c in columns if c.name == PRIMARY_KEY_COLUMN]
        if len(id_columns) != 1 or id_columns[0].data_type is not ColumnType.INTEGER:
            raise SchemaValidationError(
                f"Table '{name}' must include exactly one '{PRIMARY_KEY_COLUMN}' column of type 'int'"
            )

        primary = replace(id_columns[0], is_primary_key=True, is_unique=False)
        rest = [c for c in columns if c.name != PRIMARY_KEY_COLUMN]
        return cls(name=name, columns=(primary, *rest))

    @property
    def primary_key(self) -> ColumnDef:
        return self.columns[0]

    @property
    def data_columns(self) -> tuple[ColumnDef, ...]:
        """Columns stored after the primary key, in record order."""
        return self.columns[1:]

    @property
    def unique_columns(self) -> tuple[ColumnDef, ...]:
        return tuple(c for c in self.columns if c.has_unique_index)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnDef | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


@dataclass
class Row:
    """A table row.

    ``values`` maps every column name, ``id`` included, to its typed value.
    ``is_deleted`` is only meaningful on a row freshly decoded from storage;
    tombstoned rows are never handed to callers.
    """

    id: RowId
    values: dict[str, Value] = field(default_factory=dict)
    is_deleted: bool = False

    @classmethod
    def from_values(cls, values: Mapping[str, Value]) -> Row:
        """Create a row from a column mapping that includes ``id``."""
        try:
            row_id = values[PRIMARY_KEY_COLUMN]
        except KeyError:
            raise SchemaValidationError(
                f"Row is missing the '{PRIMARY_KEY_COLUMN}' column"
            ) from None
        return cls(id=RowId(row_id), values=dict(values))

    def __getitem__(self, column: str) -> Value:
        return self.values[column]

    def to_dict(self) -> dict[str, Value]:
        return dict(self.values)
