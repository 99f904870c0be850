"""Row Store port for per-table record storage.

This outbound port defines the contract the command dispatcher relies on
to read and mutate one table's rows.

The row store is responsible for:
- Persisting rows in the table's backing file
- Maintaining the primary-key offset index and uniqueness indexes
- Rejecting writes that would violate key or UNIQUE constraints
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from mini_rdbms.domain.entities import Row, TableSchema, Value


class RowStore(Protocol):
    """Protocol for table-level record operations.

    Failed operations leave both the backing file and the indexes exactly
    as they were, so any failed call can be retried safely.

    Thread Safety:
        Implementations must serialize mutations per table and must not let
        readers observe a partially applied mutation.
    """

    @property
    @abstractmethod
    def schema(self) -> TableSchema:
        """Return the table schema the store was opened with."""
        ...

    @abstractmethod
    def insert(self, row: Row) -> None:
        """Append a new row.

        Raises:
            DuplicateKeyError: If a live row already has this id.
            UniqueConstraintViolationError: If a UNIQUE value is taken.
        """
        ...

    @abstractmethod
    def select_by_id(self, row_id: int) -> Row | None:
        """Return the live row with this id, or None.

        Callers cannot distinguish a never-inserted id from a deleted one.
        """
        ...

    @abstractmethod
    def select_all(self) -> list[Row]:
        """Return all live rows in insertion order."""
        ...

    @abstractmethod
    def delete(self, row_id: int) -> None:
        """Tombstone the row with this id.

        Raises:
            RecordNotFoundError: If no live row has this id.
        """
        ...

    @abstractmethod
    def update(self, row: Row) -> None:
        """Replace the row with the same id.

        The new values are checked against the uniqueness indexes, minus
        the row's own current values, before anything is written.

        Raises:
            RecordNotFoundError: If no live row has this id.
            UniqueConstraintViolationError: If a new UNIQUE value is taken
                by another row.
        """
        ...

    @abstractmethod
    def update_values(self, row_id: int, changes: dict[str, Value]) -> Row:
        """Merge column changes into the live row with this id.

        The read, the merge and the write happen under one exclusive lock,
        so concurrent updates to the same row never overwrite each other.

        Returns:
            The row as written.

        Raises:
            RecordNotFoundError: If no live row has this id.
            UniqueConstraintViolationError: If a new UNIQUE value is taken
                by another row.
        """
        ...

    @abstractmethod
    def drop(self) -> None:
        """Delete the backing file and discard indexes.

        The store must not be used afterwards.
        """
        ...
