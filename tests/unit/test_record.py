"""Unit tests for the binary record format."""

from __future__ import annotations

import io
import struct

import pytest

from mini_rdbms.domain.entities import (
    ColumnDef,
    ColumnType,
    CorruptRecordError,
    RecordCodec,
    Row,
    TableSchema,
    TruncatedRecordError,
)


@pytest.fixture
def schema() -> TableSchema:
    return TableSchema.build(
        "users",
        [
            ColumnDef("id", ColumnType.INTEGER),
            ColumnDef("name", ColumnType.TEXT),
            ColumnDef("age", ColumnType.INTEGER),
        ],
    )


@pytest.fixture
def codec(schema: TableSchema) -> RecordCodec:
    return RecordCodec(schema)


@pytest.mark.unit
class TestRecordEncoding:
    """Tests for the on-disk byte layout."""

    def test_layout(self, codec: RecordCodec) -> None:
        """Flag, id, then columns in schema order, all big-endian."""
        data = codec.encode(Row.from_values({"id": 1, "name": "alé", "age": -2}))

        name = "alé".encode("utf-8")
        expected = (
            b"\x00"
            + struct.pack(">q", 1)
            + struct.pack(">I", len(name))
            + name
            + struct.pack(">q", -2)
        )
        assert data == expected

    def test_tombstone_flag(self, codec: RecordCodec) -> None:
        data = codec.encode(Row.from_values({"id": 1, "name": "", "age": 0}), deleted=True)
        assert data[0] == 1

    def test_decode(self, codec: RecordCodec) -> None:
        row = Row.from_values({"id": 42, "name": "bob", "age": 30})

        decoded = codec.decode(codec.encode(row))

        assert decoded.id == 42
        assert decoded.values == {"id": 42, "name": "bob", "age": 30}
        assert not decoded.is_deleted


@pytest.mark.unit
class TestRecordReading:
    """Tests for reading records from a stream."""

    def test_sequential_reads(self, codec: RecordCodec) -> None:
        first = codec.encode(Row.from_values({"id": 1, "name": "a", "age": 1}))
        second = codec.encode(Row.from_values({"id": 2, "name": "bb", "age": 2}), deleted=True)
        stream = io.BytesIO(first + second)

        rec1 = codec.read(stream)
        rec2 = codec.read(stream)

        assert rec1 is not None and rec2 is not None
        assert (rec1.offset, rec1.length) == (0, len(first))
        assert rec2.offset == len(first)
        assert rec1.is_live
        assert not rec2.is_live
        assert rec2.row.values["name"] == "bb"
        assert codec.read(stream) is None

    def test_truncated_record(self, codec: RecordCodec) -> None:
        data = codec.encode(Row.from_values({"id": 1, "name": "alice", "age": 1}))

        with pytest.raises(TruncatedRecordError):
            codec.read(io.BytesIO(data[:-3]))

    def test_unknown_flag(self, codec: RecordCodec) -> None:
        data = b"\x07" + codec.encode(Row.from_values({"id": 1, "name": "a", "age": 1}))[1:]

        with pytest.raises(CorruptRecordError, match="flag"):
            codec.read(io.BytesIO(data))

    def test_invalid_utf8(self, codec: RecordCodec) -> None:
        data = b"\x00" + struct.pack(">q", 1) + struct.pack(">I", 1) + b"\xff" + struct.pack(">q", 0)

        with pytest.raises(CorruptRecordError, match="UTF-8"):
            codec.read(io.BytesIO(data))
