"""Command executor using the Volcano iterator model.

This module runs parsed commands against the tables of one database and
turns every outcome into an ExecutionResult. Engine errors never escape
:meth:`CommandDispatcher.execute`; they come back as results carrying an
``error_kind``.

Reads are built as small operator trees:
    - SeqScanOperator: every live row of a table, in insertion order
    - IndexLookupOperator: one row through the primary-key index
    - FilterOperator: typed equality on one column
    - NestedLoopJoinOperator: inner equi-join of two tables

References:
    - Graefe, "Volcano" (1994)
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator

from mini_rdbms.adapters.inbound.command_parser import (
    ColumnRef,
    Command,
    CommandParser,
    CreateTableCommand,
    DeleteCommand,
    DropTableCommand,
    EqualityPredicate,
    InsertCommand,
    SelectCommand,
    UpdateCommand,
)
from mini_rdbms.domain.entities import (
    ColumnDef,
    RecordFormatError,
    Row,
    TableSchema,
    Value,
)
from mini_rdbms.domain.errors import (
    CommandSyntaxError,
    EngineError,
    UnsupportedOperationError,
)
from mini_rdbms.domain.value_objects import PRIMARY_KEY_COLUMN, RowId
from mini_rdbms.infrastructure.logging import database_context, get_logger
from mini_rdbms.infrastructure.metrics import MetricsRegistry, get_metrics
from mini_rdbms.infrastructure.tracing import command_span, record_command_outcome

if TYPE_CHECKING:
    from mini_rdbms.application.catalog import Database
    from mini_rdbms.ports.outbound import RowStore

logger = get_logger(__name__)

IO_ERROR_KIND = "IOError"


def typed_equals(left: Any, right: Any) -> bool:
    """Equality that never matches across types (1 != "1")."""
    return type(left) is type(right) and left == right


@dataclass
class ResultRow:
    """A row of data returned by the executor.

    Rows can be accessed by column name or index.
    """

    columns: list[str]
    values: list[Value]

    def __getitem__(self, key: str | int) -> Value:
        if isinstance(key, int):
            return self.values[key]
        try:
            idx = self.columns.index(key)
            return self.values[idx]
        except ValueError as e:
            raise KeyError(f"Column '{key}' not found") from e

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_dict(self) -> dict[str, Value]:
        return dict(zip(self.columns, self.values))

    @classmethod
    def from_row(cls, row: Row, schema: TableSchema, qualify: bool = False) -> ResultRow:
        """Build a result row in schema column order."""
        names = schema.column_names
        columns = [f"{schema.name}.{name}" for name in names] if qualify else list(names)
        return cls(columns=columns, values=[row.values[name] for name in names])

    def __repr__(self) -> str:
        pairs = ", ".join(f"{c}={v!r}" for c, v in zip(self.columns, self.values))
        return f"ResultRow({pairs})"


@dataclass
class ExecutionResult:
    """Result of command execution."""

    rows: list[ResultRow] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    affected_rows: int = 0
    message: str = ""
    error_kind: str | None = None
    is_query: bool = False

    @property
    def success(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(cls, error: EngineError) -> ExecutionResult:
        return cls(message=str(error), error_kind=error.kind)

    def to_dicts(self) -> list[dict[str, Value]]:
        return [row.to_dict() for row in self.rows]

    def to_text(self) -> str:
        """Render the result the way the line reader prints it."""
        if not self.success:
            return f"Error ({self.error_kind}): {self.message}"
        if self.is_query:
            if not self.rows:
                return "No results."
            return "\n".join(json.dumps(row.to_dict(), ensure_ascii=False) for row in self.rows)
        return self.message


class Operator(ABC):
    """Base class for executor operators (Volcano model)."""

    @abstractmethod
    def open(self) -> None:
        """Initialize the operator."""
        pass

    @abstractmethod
    def next(self) -> ResultRow | None:
        """Return the next row or None if exhausted."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Clean up resources."""
        pass

    def __iter__(self) -> Iterator[ResultRow]:
        """Allow iteration over operator results."""
        self.open()
        try:
            while True:
                row = self.next()
                if row is None:
                    break
                yield row
        finally:
            self.close()


class SeqScanOperator(Operator):
    """Sequential scan operator.

    Takes a consistent snapshot of the table's live rows on open.
    """

    def __init__(self, store: RowStore, qualify: bool = False) -> None:
        self._store = store
        self._qualify = qualify
        self._rows: list[Row] = []
        self._current_row = 0

    def open(self) -> None:
        self._rows = self._store.select_all()
        self._current_row = 0

    def next(self) -> ResultRow | None:
        if self._current_row >= len(self._rows):
            return None
        row = self._rows[self._current_row]
        self._current_row += 1
        return ResultRow.from_row(row, self._store.schema, self._qualify)

    def close(self) -> None:
        self._rows = []
        self._current_row = 0


class IndexLookupOperator(Operator):
    """Point lookup through the primary-key index."""

    def __init__(self, store: RowStore, row_id: int) -> None:
        self._store = store
        self._row_id = row_id
        self._row: Row | None = None

    def open(self) -> None:
        self._row = self._store.select_by_id(self._row_id)

    def next(self) -> ResultRow | None:
        if self._row is None:
            return None
        row, self._row = self._row, None
        return ResultRow.from_row(row, self._store.schema)

    def close(self) -> None:
        self._row = None


class FilterOperator(Operator):
    """Keeps rows whose column equals a typed value."""

    def __init__(self, child: Operator, column: str, value: Value) -> None:
        self._child = child
        self._column = column
        self._value = value

    def open(self) -> None:
        self._child.open()

    def next(self) -> ResultRow | None:
        while True:
            row = self._child.next()
            if row is None:
                return None
            if typed_equals(row.get(self._column), self._value):
                return row

    def close(self) -> None:
        self._child.close()


class NestedLoopJoinOperator(Operator):
    """Inner equi-join by nested loops.

    The inner (right) input is read once on open; the outer (left) input is
    streamed, so output follows the outer scan order and, within one outer
    row, the inner scan order.
    """

    def __init__(
        self,
        left: Operator,
        right: Operator,
        left_column: str,
        right_column: str,
    ) -> None:
        self._left = left
        self._right = right
        self._left_column = left_column
        self._right_column = right_column
        self._inner_rows: list[ResultRow] = []
        self._outer_row: ResultRow | None = None
        self._inner_idx = 0

    def open(self) -> None:
        self._inner_rows = list(self._right)
        self._left.open()
        self._outer_row = None
        self._inner_idx = 0

    def next(self) -> ResultRow | None:
        while True:
            if self._outer_row is None:
                self._outer_row = self._left.next()
                if self._outer_row is None:
                    return None
                self._inner_idx = 0

            key = self._outer_row[self._left_column]
            while self._inner_idx < len(self._inner_rows):
                inner = self._inner_rows[self._inner_idx]
                self._inner_idx += 1
                if typed_equals(key, inner[self._right_column]):
                    return ResultRow(
                        columns=self._outer_row.columns + inner.columns,
                        values=self._outer_row.values + inner.values,
                    )
            self._outer_row = None

    def close(self) -> None:
        self._left.close()
        self._inner_rows = []
        self._outer_row = None


class CommandDispatcher:
    """Executes command text against one database.

    The dispatcher owns no tables; it resolves them through the database's
    catalog on every command.
    """

    def __init__(
        self,
        database: Database,
        parser: CommandParser | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._database = database
        self._parser = parser or CommandParser()
        self._metrics = metrics or get_metrics()

    @property
    def database(self) -> Database:
        return self._database

    def execute(self, text: str) -> ExecutionResult:
        """Parse and execute one command.

        Returns:
            A successful result, or a failed result whose ``error_kind``
            names the error. Engine and I/O errors are never raised.
        """
        start = time.perf_counter()
        command_type = "unknown"

        with command_span(self._database.name, text) as span, database_context(
            self._database.name
        ):
            try:
                command = self._parser.parse(text)
                command_type = command.command_type.value
                result = self.dispatch(command)
            except EngineError as e:
                logger.warning(
                    "command_failed",
                    command_type=command_type,
                    kind=e.kind,
                    error=str(e),
                )
                result = ExecutionResult.failure(e)
            except (OSError, RecordFormatError) as e:
                logger.error(
                    "command_io_failure",
                    command_type=command_type,
                    exc_info=True,
                )
                result = ExecutionResult(message=f"I/O failure: {e}", error_kind=IO_ERROR_KIND)

            record_command_outcome(span, command_type, result.error_kind)

        status = "success" if result.success else "error"
        self._metrics.commands_total.labels(command_type=command_type, status=status).inc()
        self._metrics.command_latency_seconds.labels(command_type=command_type).observe(
            time.perf_counter() - start
        )
        return result

    def dispatch(self, command: Command) -> ExecutionResult:
        """Execute an already-parsed command.

        Raises:
            EngineError: On any engine failure.
            OSError: If the table file cannot be read or written.
        """
        if isinstance(command, CreateTableCommand):
            return self._execute_create_table(command)
        elif isinstance(command, DropTableCommand):
            return self._execute_drop_table(command)
        elif isinstance(command, InsertCommand):
            return self._execute_insert(command)
        elif isinstance(command, SelectCommand):
            if command.is_join:
                return self._execute_join(command)
            return self._execute_select(command)
        elif isinstance(command, UpdateCommand):
            return self._execute_update(command)
        elif isinstance(command, DeleteCommand):
            return self._execute_delete(command)
        else:
            raise UnsupportedOperationError(f"Unsupported command: {command}")

    def _execute_create_table(self, command: CreateTableCommand) -> ExecutionResult:
        """Execute CREATE TABLE."""
        if command.if_not_exists and self._database.get_table(command.table_name):
            return ExecutionResult(message="OK: Table already exists")

        schema = TableSchema.build(command.table_name, command.columns)
        self._database.create_table(schema)
        return ExecutionResult(message=f"OK: Table '{command.table_name}' created")

    def _execute_drop_table(self, command: DropTableCommand) -> ExecutionResult:
        """Execute DROP TABLE."""
        if command.if_exists and self._database.get_table(command.table_name) is None:
            return ExecutionResult(message="OK: Table does not exist")

        self._database.drop_table(command.table_name)
        return ExecutionResult(message=f"OK: Table '{command.table_name}' dropped")

    def _execute_insert(self, command: InsertCommand) -> ExecutionResult:
        """Execute INSERT with positional values."""
        store = self._database.require_table(command.table_name)
        columns = store.schema.columns
        if len(command.values) != len(columns):
            raise CommandSyntaxError(
                f"Expected {len(columns)} values for table '{command.table_name}', "
                f"got {len(command.values)}"
            )

        values = {
            column.name: column.convert(literal.text)
            for column, literal in zip(columns, command.values)
        }
        store.insert(Row.from_values(values))
        return ExecutionResult(affected_rows=1, message="OK: 1 row inserted")

    def _execute_select(self, command: SelectCommand) -> ExecutionResult:
        """Execute a single-table SELECT *."""
        store = self._database.require_table(command.table_name)
        schema = store.schema

        operator: Operator
        if command.predicate is None:
            operator = SeqScanOperator(store)
        else:
            column, value = self._resolve_predicate(schema, command.predicate)
            if column.is_primary_key:
                operator = IndexLookupOperator(store, value)
            else:
                operator = FilterOperator(SeqScanOperator(store), column.name, value)

        rows = list(operator)
        return ExecutionResult(
            rows=rows,
            columns=schema.column_names,
            message=f"OK: {len(rows)} row(s)",
            is_query=True,
        )

    def _execute_join(self, command: SelectCommand) -> ExecutionResult:
        """Execute SELECT * FROM t1 JOIN t2 ON t1.a = t2.b."""
        assert command.join_table is not None and command.join_condition is not None
        if command.join_table == command.table_name:
            raise UnsupportedOperationError("Self-joins are not supported")

        left = self._database.require_table(command.table_name)
        right = self._database.require_table(command.join_table)

        sides = [
            self._resolve_join_column(ref, left.schema, right.schema)
            for ref in (command.join_condition.left, command.join_condition.right)
        ]
        by_table = {schema.name: column for schema, column in sides}
        if set(by_table) != {left.schema.name, right.schema.name}:
            raise UnsupportedOperationError(
                "JOIN condition must reference one column from each table"
            )
        left_column = f"{left.schema.name}.{by_table[left.schema.name].name}"
        right_column = f"{right.schema.name}.{by_table[right.schema.name].name}"

        operator = NestedLoopJoinOperator(
            SeqScanOperator(left, qualify=True),
            SeqScanOperator(right, qualify=True),
            left_column,
            right_column,
        )
        rows = list(operator)
        columns = [f"{left.schema.name}.{c}" for c in left.schema.column_names] + [
            f"{right.schema.name}.{c}" for c in right.schema.column_names
        ]
        return ExecutionResult(
            rows=rows,
            columns=columns,
            message=f"OK: {len(rows)} row(s)",
            is_query=True,
        )

    def _execute_update(self, command: UpdateCommand) -> ExecutionResult:
        """Execute UPDATE ... WHERE id = k."""
        store = self._database.require_table(command.table_name)
        schema = store.schema
        assert command.predicate is not None
        _, row_id = self._resolve_predicate(schema, command.predicate)

        changes: dict[str, Value] = {}
        for name, literal in command.assignments.items():
            if name == PRIMARY_KEY_COLUMN:
                raise UnsupportedOperationError(
                    f"Cannot update primary key column '{PRIMARY_KEY_COLUMN}'"
                )
            column = schema.get_column(name)
            if column is None:
                raise CommandSyntaxError(
                    f"Unknown column '{name}' in table '{command.table_name}'"
                )
            changes[name] = column.convert(literal.text)

        store.update_values(RowId(row_id), changes)
        return ExecutionResult(affected_rows=1, message="OK: 1 row updated")

    def _execute_delete(self, command: DeleteCommand) -> ExecutionResult:
        """Execute DELETE ... WHERE id = k."""
        store = self._database.require_table(command.table_name)
        assert command.predicate is not None
        _, row_id = self._resolve_predicate(store.schema, command.predicate)

        store.delete(RowId(row_id))
        return ExecutionResult(affected_rows=1, message="OK: 1 row deleted")

    def _resolve_predicate(
        self, schema: TableSchema, predicate: EqualityPredicate
    ) -> tuple[ColumnDef, Any]:
        """Find the predicate column and convert its literal to that type."""
        ref = predicate.column
        if ref.table is not None and ref.table != schema.name:
            raise CommandSyntaxError(f"Unknown table '{ref.table}' in condition")
        column = schema.get_column(ref.name)
        if column is None:
            raise CommandSyntaxError(f"Unknown column '{ref.name}' in table '{schema.name}'")
        return column, column.convert(predicate.value.text)

    def _resolve_join_column(
        self, ref: ColumnRef, left: TableSchema, right: TableSchema
    ) -> tuple[TableSchema, ColumnDef]:
        """Find which joined table a column reference belongs to."""
        candidates = [left, right]
        if ref.table is not None:
            candidates = [s for s in candidates if s.name == ref.table]
            if not candidates:
                raise CommandSyntaxError(f"Unknown table '{ref.table}' in JOIN condition")

        matches = [(s, s.get_column(ref.name)) for s in candidates]
        matches = [(s, c) for s, c in matches if c is not None]
        if not matches:
            raise CommandSyntaxError(f"Unknown column '{ref}' in JOIN condition")
        if len(matches) > 1:
            raise CommandSyntaxError(f"Ambiguous column '{ref}' in JOIN condition")
        return matches[0]
