"""Domain entities - schema model and record format.

Exports:
    Schema:
        - ColumnType: Declared column types (int, string)
        - ColumnDef: Column definition with primary-key/unique flags
        - TableSchema: Ordered column layout of a table
        - Row: A row keyed by its integer id
    Record:
        - RecordCodec: Row <-> record bytes for one schema
        - DecodedRecord: A record read back with its offset and length
"""

from mini_rdbms.domain.entities.record import (
    FLAG_LIVE,
    FLAG_TOMBSTONE,
    CorruptRecordError,
    DecodedRecord,
    RecordFormatError,
    RecordCodec,
    TruncatedRecordError,
)
from mini_rdbms.domain.entities.schema import (
    ColumnDef,
    ColumnType,
    Row,
    TableSchema,
    Value,
)

__all__ = [
    # Schema
    "ColumnDef",
    "ColumnType",
    "Row",
    "TableSchema",
    "Value",
    # Record
    "FLAG_LIVE",
    "FLAG_TOMBSTONE",
    "CorruptRecordError",
    "DecodedRecord",
    "RecordFormatError",
    "RecordCodec",
    "TruncatedRecordError",
]
