"""Binary record format for table files.

A table file is a flat, unframed sequence of records in insertion order.
There is no file header and no schema in the file: the in-memory table
schema is required to walk it.

Record layout:
    - flag: 1 byte (0 = live, 1 = tombstoned)
    - id: 8 bytes, signed big-endian
    - remaining columns in schema order:
        - Integer: 8 bytes, signed big-endian
        - Text: 4-byte unsigned big-endian length + UTF-8 bytes

Because fields are variable-length, a record cannot be skipped without
decoding it field by field, and a damaged length prefix desynchronizes
every later record.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import BinaryIO, ClassVar

from mini_rdbms.domain.entities.schema import ColumnType, Row, TableSchema, Value
from mini_rdbms.domain.value_objects import PRIMARY_KEY_COLUMN, Offset, RowId

FLAG_LIVE = 0
FLAG_TOMBSTONE = 1


class RecordFormatError(ValueError):
    """Bytes in a table file do not form a valid record."""


class TruncatedRecordError(RecordFormatError):
    """The stream ended in the middle of a record."""


class CorruptRecordError(RecordFormatError):
    """A record's bytes do not decode under the table schema."""


@dataclass
class DecodedRecord:
    """A record read back from a table file."""

    offset: Offset
    length: int
    row: Row

    @property
    def is_live(self) -> bool:
        return not self.row.is_deleted


class RecordCodec:
    """Encodes rows to records and decodes them back for one table schema.

    Example:
        >>> codec = RecordCodec(schema)
        >>> data = codec.encode(Row(id=1, values={"id": 1, "name": "alice"}))
        >>> codec.decode(data).values
        {'id': 1, 'name': 'alice'}
    """

    FLAG_FORMAT: ClassVar[str] = ">B"
    INT_FORMAT: ClassVar[str] = ">q"
    LENGTH_FORMAT: ClassVar[str] = ">I"

    FLAG_SIZE: ClassVar[int] = struct.calcsize(FLAG_FORMAT)
    INT_SIZE: ClassVar[int] = struct.calcsize(INT_FORMAT)
    LENGTH_SIZE: ClassVar[int] = struct.calcsize(LENGTH_FORMAT)

    def __init__(self, schema: TableSchema) -> None:
        self._schema = schema

    @property
    def schema(self) -> TableSchema:
        return self._schema

    def encode(self, row: Row, deleted: bool = False) -> bytes:
        """Serialize a row to record bytes.

        The row must already hold typed values for every schema column.
        """
        parts = [
            struct.pack(self.FLAG_FORMAT, FLAG_TOMBSTONE if deleted else FLAG_LIVE),
            struct.pack(self.INT_FORMAT, row.id),
        ]
        for column in self._schema.data_columns:
            value = row.values[column.name]
            if column.data_type is ColumnType.INTEGER:
                parts.append(struct.pack(self.INT_FORMAT, value))
            else:
                encoded = value.encode("utf-8")
                parts.append(struct.pack(self.LENGTH_FORMAT, len(encoded)))
                parts.append(encoded)
        return b"".join(parts)

    def decode(self, data: bytes) -> Row:
        """Deserialize a single record from bytes."""
        record = self.read(io.BytesIO(data))
        if record is None:
            raise TruncatedRecordError("Empty record buffer")
        return record.row

    def read(self, stream: BinaryIO) -> DecodedRecord | None:
        """Read the record starting at the stream's current position.

        Returns:
            The decoded record, or None at a clean end of stream.

        Raises:
            TruncatedRecordError: If the stream ends inside the record.
            CorruptRecordError: If a text field is not valid UTF-8 or the
                flag byte is unknown.
        """
        offset = Offset(stream.tell())

        flag_bytes = stream.read(self.FLAG_SIZE)
        if not flag_bytes:
            return None
        (flag,) = struct.unpack(self.FLAG_FORMAT, flag_bytes)
        if flag not in (FLAG_LIVE, FLAG_TOMBSTONE):
            raise CorruptRecordError(f"Unknown record flag {flag} at offset {offset}")

        row_id = self._read_int(stream)
        values: dict[str, Value] = {PRIMARY_KEY_COLUMN: row_id}

        # Every field is consumed, tombstoned or not, to keep the cursor aligned
        for column in self._schema.data_columns:
            if column.data_type is ColumnType.INTEGER:
                values[column.name] = self._read_int(stream)
            else:
                (length,) = struct.unpack(
                    self.LENGTH_FORMAT, self._read_exact(stream, self.LENGTH_SIZE)
                )
                raw = self._read_exact(stream, length)
                try:
                    values[column.name] = raw.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise CorruptRecordError(
                        f"Column '{column.name}' at offset {offset} is not valid UTF-8"
                    ) from e

        row = Row(id=RowId(row_id), values=values, is_deleted=flag == FLAG_TOMBSTONE)
        return DecodedRecord(offset=offset, length=stream.tell() - offset, row=row)

    def _read_int(self, stream: BinaryIO) -> int:
        (value,) = struct.unpack(self.INT_FORMAT, self._read_exact(stream, self.INT_SIZE))
        return value

    @staticmethod
    def _read_exact(stream: BinaryIO, size: int) -> bytes:
        data = stream.read(size)
        if len(data) != size:
            raise TruncatedRecordError(f"Expected {size} bytes, got {len(data)}")
        return data
