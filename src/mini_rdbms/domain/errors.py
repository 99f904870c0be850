"""Error hierarchy for the relational engine.

Every recoverable failure raised by the row store, the catalog or the
command parser derives from EngineError. The command dispatcher catches
EngineError at its boundary and turns it into a structured result keyed by
the class's ``kind`` string, so callers never see a raw traceback.
"""

from __future__ import annotations

from typing import Any, ClassVar


class EngineError(Exception):
    """Base class for recoverable engine errors."""

    kind: ClassVar[str] = "EngineError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CommandSyntaxError(EngineError):
    """Malformed command text."""

    kind = "SyntaxError"


class UnsupportedOperationError(EngineError):
    """Command or clause outside the supported grammar."""

    kind = "UnsupportedOperation"


class SchemaValidationError(EngineError):
    """Table definition violates a schema rule."""

    kind = "SchemaValidation"


class TypeMismatchError(EngineError):
    """Literal does not fit the declared column type."""

    kind = "TypeMismatch"

    def __init__(self, column: str, value: Any, expected: str) -> None:
        super().__init__(
            f"Value {value!r} is not a valid {expected} for column '{column}'"
        )
        self.column = column
        self.value = value
        self.expected = expected


class TableNotFoundError(EngineError):
    """Referenced table does not exist."""

    kind = "TableNotFound"

    def __init__(self, table_name: str, message: str | None = None) -> None:
        super().__init__(message or f"Table '{table_name}' does not exist")
        self.table_name = table_name


class TableDroppedError(TableNotFoundError):
    """Operation on a row store whose table has been dropped."""

    def __init__(self, table_name: str) -> None:
        super().__init__(table_name, f"Table '{table_name}' has been dropped")


class TableExistsError(EngineError):
    """CREATE TABLE for a name already in the catalog."""

    kind = "TableExists"

    def __init__(self, table_name: str) -> None:
        super().__init__(f"Table '{table_name}' already exists")
        self.table_name = table_name


class DatabaseNotFoundError(EngineError):
    """Referenced database does not exist."""

    kind = "DatabaseNotFound"

    def __init__(self, database_name: str) -> None:
        super().__init__(f"Database '{database_name}' does not exist")
        self.database_name = database_name


class DatabaseExistsError(EngineError):
    """Database name already registered."""

    kind = "DatabaseExists"

    def __init__(self, database_name: str) -> None:
        super().__init__(f"Database '{database_name}' already exists")
        self.database_name = database_name


class DuplicateKeyError(EngineError):
    """Insert of a primary key held by a live row."""

    kind = "DuplicateKey"

    def __init__(self, row_id: int) -> None:
        super().__init__(f"Duplicate primary key: {row_id}")
        self.row_id = row_id


class UniqueConstraintViolationError(EngineError):
    """Value already used by a live row on a UNIQUE column."""

    kind = "UniqueConstraintViolation"

    def __init__(self, column: str, value: Any) -> None:
        super().__init__(
            f"Violation of UNIQUE constraint on column '{column}': "
            f"value {value!r} already exists"
        )
        self.column = column
        self.value = value


class RecordNotFoundError(EngineError):
    """No live row with the given primary key."""

    kind = "RecordNotFound"

    def __init__(self, row_id: int) -> None:
        super().__init__(f"Record with id {row_id} not found")
        self.row_id = row_id
