"""File-based Row Store implementation.

This adapter implements the RowStore protocol on top of a single
append-only table file (see domain.entities.record for the record layout).

Indexes:
    - primary-key index: id -> offset of the row's most recent live record
    - uniqueness indexes: one set of in-use values per UNIQUE non-id column

The indexes are a derived cache. They are never persisted; opening a table
replays the file from byte 0 to rebuild them.

Write paths:
    - insert: append a live record
    - delete: flip the tombstone flag of the existing record in place
    - update: tombstone the old record, append the replacement

Thread Safety:
    Mutations and index rebuild hold the table's exclusive lock; lookups
    and scans hold the shared lock. Reads use their own file handles so
    concurrent readers never share a file position.
"""

from __future__ import annotations

import os
import struct
from pathlib import Path
from typing import BinaryIO, Iterator

from mini_rdbms.domain.entities import (
    FLAG_LIVE,
    FLAG_TOMBSTONE,
    DecodedRecord,
    RecordCodec,
    Row,
    TableSchema,
    TruncatedRecordError,
    Value,
)
from mini_rdbms.domain.errors import (
    DuplicateKeyError,
    RecordNotFoundError,
    SchemaValidationError,
    TableDroppedError,
    TypeMismatchError,
    UniqueConstraintViolationError,
)
from mini_rdbms.domain.services import ReadWriteLock
from mini_rdbms.domain.value_objects import Offset, RowId
from mini_rdbms.infrastructure.config import get_config
from mini_rdbms.infrastructure.logging import get_logger
from mini_rdbms.infrastructure.metrics import MetricsRegistry, get_metrics


class FileRowStore:
    """File-backed implementation of the RowStore protocol.

    Owns the table file exclusively: no other component may open or mutate
    it while the store is open.

    Attributes:
        schema: Table schema used to encode and decode records.
        file_path: Path to the table file.
    """

    def __init__(
        self,
        schema: TableSchema,
        file_path: str | Path,
        sync_mode: str | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Open (or create) a table file and rebuild its indexes.

        Args:
            schema: Table schema; must match the schema the file was written with.
            file_path: Path to the table file. Created empty if missing.
            sync_mode: 'fsync' to fsync after every write, 'none' to only
                flush (default from config).
            metrics: Metrics registry (default: global registry).
        """
        self._schema = schema
        self._codec = RecordCodec(schema)
        self._file_path = Path(file_path)
        self._sync_mode = sync_mode or get_config().storage.sync_mode
        self._metrics = metrics or get_metrics()
        self._log = get_logger(__name__, table=schema.name)

        self._lock = ReadWriteLock()
        self._file: BinaryIO | None = None
        self._dropped = False

        self._pk_index: dict[RowId, Offset] = {}
        self._unique_indexes: dict[str, set[Value]] = {
            column.name: set() for column in schema.unique_columns
        }
        self._end_offset = Offset(0)

        self._open()

    def _open(self) -> None:
        """Open the table file for read/write, creating it if needed."""
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self._file_path.exists():
            with open(self._file_path, "wb"):
                pass

        self._file = open(self._file_path, "r+b")
        self._metrics.tables_open.inc()
        try:
            self.rebuild_index()
        except Exception:
            self._close_file()
            raise

    @property
    def schema(self) -> TableSchema:
        return self._schema

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def is_dropped(self) -> bool:
        return self._dropped

    @property
    def row_count(self) -> int:
        """Number of live rows."""
        with self._lock.shared():
            return len(self._pk_index)

    @property
    def end_offset(self) -> int:
        """Offset one past the last complete record."""
        with self._lock.shared():
            return self._end_offset

    def primary_key_index(self) -> dict[RowId, Offset]:
        """Return a copy of the id -> offset index."""
        with self._lock.shared():
            return dict(self._pk_index)

    def unique_index(self, column: str) -> frozenset[Value]:
        """Return the in-use values of a UNIQUE column.

        Raises:
            KeyError: If the column has no uniqueness index.
        """
        with self._lock.shared():
            return frozenset(self._unique_indexes[column])

    def rebuild_index(self) -> None:
        """Rebuild all indexes by scanning the file from byte 0.

        A truncated trailing record is treated as absent and cut off the
        file so that later appends start on a record boundary.
        """
        with self._lock.exclusive():
            self._ensure_open()

            pk_index: dict[RowId, Offset] = {}
            unique_indexes: dict[str, set[Value]] = {
                name: set() for name in self._unique_indexes
            }
            end = Offset(0)
            live = 0
            tombstoned = 0

            self._file.seek(0)
            for record in self._iter_records(self._file):
                end = Offset(record.offset + record.length)
                if not record.is_live:
                    tombstoned += 1
                    continue
                live += 1
                pk_index[record.row.id] = record.offset
                for name, values in unique_indexes.items():
                    values.add(record.row.values[name])

            file_size = self._file.seek(0, os.SEEK_END)
            if end < file_size:
                self._log.warning(
                    "torn_tail_truncated",
                    path=str(self._file_path),
                    valid_bytes=end,
                    discarded_bytes=file_size - end,
                )
                self._file.truncate(end)
                self._file.flush()
                self._sync()

            self._pk_index = pk_index
            self._unique_indexes = unique_indexes
            self._end_offset = end

        self._log.info(
            "index_rebuilt",
            path=str(self._file_path),
            live_rows=live,
            tombstoned_rows=tombstoned,
            bytes=end,
        )

    def insert(self, row: Row) -> None:
        """Append a new row.

        Raises:
            DuplicateKeyError: If a live row already has this id.
            UniqueConstraintViolationError: If a UNIQUE value is taken.
        """
        self._check_row(row)
        with self._lock.exclusive():
            self._ensure_open()
            if row.id in self._pk_index:
                raise DuplicateKeyError(row.id)
            self._check_unique(row)

            offset = self._append(self._codec.encode(row))
            self._index_row(row, offset)

        self._metrics.records_written_total.labels(table=self._schema.name).inc()
        self._log.debug("row_inserted", id=row.id, offset=offset)

    def select_by_id(self, row_id: int) -> Row | None:
        """Return the live row with this id, or None."""
        with self._lock.shared():
            self._ensure_open()
            self._metrics.index_lookups_total.labels(table=self._schema.name).inc()
            offset = self._pk_index.get(RowId(row_id))
            if offset is None:
                return None
            with open(self._file_path, "rb") as f:
                f.seek(offset)
                record = self._codec.read(f)

        if record is None or not record.is_live:
            return None
        return record.row

    def select_all(self) -> list[Row]:
        """Return all live rows in insertion order."""
        with self._lock.shared():
            self._ensure_open()
            self._metrics.full_scans_total.labels(table=self._schema.name).inc()
            with open(self._file_path, "rb") as f:
                return [
                    record.row
                    for record in self._iter_records(f, self._end_offset)
                    if record.is_live
                ]

    def delete(self, row_id: int) -> None:
        """Tombstone the row with this id in place.

        Raises:
            RecordNotFoundError: If no live row has this id.
        """
        with self._lock.exclusive():
            self._ensure_open()
            existing = self._read_live(RowId(row_id))
            offset = self._pk_index[existing.id]

            self._write_flag(offset, FLAG_TOMBSTONE)
            self._unindex_row(existing)

        self._log.debug("row_deleted", id=row_id, offset=offset)

    def update(self, row: Row) -> None:
        """Replace the row with the same id.

        Every new value is validated before the old record is touched, so a
        rejected update leaves the original row intact.

        Raises:
            RecordNotFoundError: If no live row has this id.
            UniqueConstraintViolationError: If a new UNIQUE value is held by
                another live row.
        """
        self._check_row(row)
        with self._lock.exclusive():
            self._ensure_open()
            existing = self._read_live(row.id)
            self._replace(existing, row)

    def update_values(self, row_id: int, changes: dict[str, Value]) -> Row:
        """Merge column changes into the live row with this id.

        The row is read, merged and rewritten under one exclusive lock.

        Raises:
            RecordNotFoundError: If no live row has this id.
            SchemaValidationError: If a change names an unknown column or
                changes the id.
            UniqueConstraintViolationError: If a new UNIQUE value is held by
                another live row.
        """
        with self._lock.exclusive():
            self._ensure_open()
            existing = self._read_live(RowId(row_id))
            row = Row.from_values({**existing.values, **changes})
            self._check_row(row)
            if row.id != existing.id:
                raise SchemaValidationError(
                    f"Cannot change '{self._schema.primary_key.name}' of row {existing.id}"
                )
            self._replace(existing, row)
        return row

    def _replace(self, existing: Row, row: Row) -> None:
        """Tombstone the existing record and append its replacement.

        Must be called with the exclusive lock held.
        """
        old_offset = self._pk_index[existing.id]
        self._check_unique(row, previous=existing)
        data = self._codec.encode(row)

        self._write_flag(old_offset, FLAG_TOMBSTONE)
        try:
            new_offset = self._append(data)
        except OSError:
            self._write_flag(old_offset, FLAG_LIVE)
            raise

        self._unindex_row(existing)
        self._index_row(row, new_offset)

        self._metrics.records_written_total.labels(table=self._schema.name).inc()
        self._log.debug("row_updated", id=row.id, old_offset=old_offset, offset=new_offset)

    def drop(self) -> None:
        """Delete the table file and discard all indexes.

        Raises:
            TableDroppedError: If the store was already dropped.
        """
        with self._lock.exclusive():
            if self._dropped:
                raise TableDroppedError(self._schema.name)
            self._close_file()
            self._file_path.unlink(missing_ok=True)
            self._pk_index.clear()
            for values in self._unique_indexes.values():
                values.clear()
            self._end_offset = Offset(0)
            self._dropped = True

        self._log.info("table_file_deleted", path=str(self._file_path))

    def close(self) -> None:
        """Close the table file. Indexes are rebuilt when the table is reopened."""
        with self._lock.exclusive():
            self._close_file()

    def _close_file(self) -> None:
        if self._file is None:
            return
        self._file.flush()
        self._sync()
        self._file.close()
        self._file = None
        self._metrics.tables_open.dec()

    def _ensure_open(self) -> None:
        if self._dropped:
            raise TableDroppedError(self._schema.name)
        if self._file is None:
            raise IOError(f"Row store for table '{self._schema.name}' is closed")

    def _check_row(self, row: Row) -> None:
        """Validate that a row holds exactly the schema's columns, typed."""
        expected = self._schema.column_names
        if set(row.values) != set(expected):
            raise SchemaValidationError(
                f"Row columns {sorted(row.values)} do not match table "
                f"'{self._schema.name}' columns {expected}"
            )
        if row.values[self._schema.primary_key.name] != row.id:
            raise SchemaValidationError(
                f"Row id {row.id} does not match its '{self._schema.primary_key.name}' value"
            )
        for column in self._schema.columns:
            value = row.values[column.name]
            if not column.accepts(value):
                raise TypeMismatchError(column.name, value, column.data_type.value)

    def _check_unique(self, row: Row, previous: Row | None = None) -> None:
        """Check UNIQUE columns, ignoring values the row itself already holds."""
        for column in self._schema.unique_columns:
            value = row.values[column.name]
            if previous is not None and previous.values[column.name] == value:
                continue
            if value in self._unique_indexes[column.name]:
                raise UniqueConstraintViolationError(column.name, value)

    def _index_row(self, row: Row, offset: Offset) -> None:
        self._pk_index[row.id] = offset
        for name, values in self._unique_indexes.items():
            values.add(row.values[name])

    def _unindex_row(self, row: Row) -> None:
        self._pk_index.pop(row.id, None)
        for name, values in self._unique_indexes.items():
            values.discard(row.values[name])

    def _read_live(self, row_id: RowId) -> Row:
        """Read the live row for an id through the writer handle.

        Must be called with the exclusive lock held.
        """
        offset = self._pk_index.get(row_id)
        if offset is None:
            raise RecordNotFoundError(row_id)
        self._file.seek(offset)
        record = self._codec.read(self._file)
        if record is None or not record.is_live:
            raise RecordNotFoundError(row_id)
        return record.row

    def _append(self, data: bytes) -> Offset:
        """Append record bytes at the end of the file.

        On failure the file is cut back to its previous length.
        """
        offset = self._end_offset
        self._file.seek(offset)
        try:
            self._file.write(data)
            self._file.flush()
            self._sync()
        except OSError:
            self._file.truncate(offset)
            raise
        self._end_offset = Offset(offset + len(data))
        return offset

    def _write_flag(self, offset: Offset, flag: int) -> None:
        """Overwrite the live/tombstone flag of the record at offset."""
        self._file.seek(offset)
        self._file.write(struct.pack(RecordCodec.FLAG_FORMAT, flag))
        self._file.flush()
        self._sync()

    def _sync(self) -> None:
        if self._sync_mode == "fsync" and self._file is not None:
            os.fsync(self._file.fileno())

    def _iter_records(
        self, stream: BinaryIO, end: int | None = None
    ) -> Iterator[DecodedRecord]:
        """Decode records from the stream's position until end of data.

        A record cut short by the end of the stream ends iteration.
        """
        while end is None or stream.tell() < end:
            try:
                record = self._codec.read(stream)
            except TruncatedRecordError:
                return
            if record is None:
                return
            yield record

    def __enter__(self) -> FileRowStore:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return f"FileRowStore(table={self._schema.name!r}, path={str(self._file_path)!r})"
