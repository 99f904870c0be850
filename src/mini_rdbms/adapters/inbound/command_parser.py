"""Command parser using sqlglot.

This module turns command text into typed command values that the
dispatcher can execute. sqlglot does the tokenizing and parsing (MySQL
dialect, so both single and double quotes delimit strings); this module then
narrows its AST to the small grammar the engine supports:

    CREATE TABLE name (col type [UNIQUE], ...)
    DROP TABLE name
    INSERT INTO name VALUES (v1, v2, ...)
    SELECT * FROM name [WHERE col = value]
    SELECT * FROM t1 JOIN t2 ON t1.a = t2.b
    UPDATE name SET col = value, ... WHERE id = value
    DELETE FROM name WHERE id = value

Anything outside it is reported as UnsupportedOperationError; text that does
not parse at all is reported as CommandSyntaxError. Literal values are kept
as text here and converted against column types by the schema.

References:
    - sqlglot documentation: https://sqlglot.com/
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

import sqlglot
from sqlglot import exp

from mini_rdbms.domain.entities import ColumnDef, ColumnType
from mini_rdbms.domain.errors import (
    CommandSyntaxError,
    SchemaValidationError,
    UnsupportedOperationError,
)
from mini_rdbms.domain.value_objects import PRIMARY_KEY_COLUMN


class CommandType(Enum):
    """Kinds of commands."""

    CREATE_TABLE = "create_table"
    DROP_TABLE = "drop_table"
    INSERT = "insert"
    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


SUPPORTED_KEYWORDS = frozenset({"CREATE", "DROP", "INSERT", "SELECT", "UPDATE", "DELETE"})
_KEYWORD_RE = re.compile(r"[A-Za-z]+")


@dataclass(frozen=True)
class Literal:
    """A literal value as written in the command.

    Attributes:
        text: The literal without surrounding quotes.
        quoted: Whether it was written as a quoted string.
    """

    text: str
    quoted: bool = False

    def __str__(self) -> str:
        return f"'{self.text}'" if self.quoted else self.text


@dataclass(frozen=True)
class ColumnRef:
    """Reference to a column, optionally qualified with table name."""

    name: str
    table: str | None = None

    def __str__(self) -> str:
        if self.table:
            return f"{self.table}.{self.name}"
        return self.name


@dataclass(frozen=True)
class EqualityPredicate:
    """A ``column = literal`` filter."""

    column: ColumnRef
    value: Literal

    def __str__(self) -> str:
        return f"{self.column} = {self.value}"


@dataclass(frozen=True)
class JoinCondition:
    """A ``t1.a = t2.b`` join condition, in the order written."""

    left: ColumnRef
    right: ColumnRef

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


@dataclass
class Command(ABC):
    """Base class for parsed commands."""

    command_type: ClassVar[CommandType]

    @abstractmethod
    def __str__(self) -> str:
        pass


@dataclass
class CreateTableCommand(Command):
    """Create a new table."""

    command_type: ClassVar[CommandType] = CommandType.CREATE_TABLE

    table_name: str
    columns: list[ColumnDef]
    if_not_exists: bool = False

    def __str__(self) -> str:
        cols = ", ".join(f"{c.name} {c.data_type.value}" for c in self.columns)
        return f"CreateTable({self.table_name}, [{cols}])"


@dataclass
class DropTableCommand(Command):
    """Drop a table."""

    command_type: ClassVar[CommandType] = CommandType.DROP_TABLE

    table_name: str
    if_exists: bool = False

    def __str__(self) -> str:
        return f"DropTable({self.table_name})"


@dataclass
class InsertCommand(Command):
    """Insert one row; values are positional in schema order."""

    command_type: ClassVar[CommandType] = CommandType.INSERT

    table_name: str
    values: list[Literal]

    def __str__(self) -> str:
        return f"Insert({self.table_name}, values={len(self.values)})"


@dataclass
class SelectCommand(Command):
    """SELECT * from one table, or from two tables joined on equality."""

    command_type: ClassVar[CommandType] = CommandType.SELECT

    table_name: str
    predicate: EqualityPredicate | None = None
    join_table: str | None = None
    join_condition: JoinCondition | None = None

    @property
    def is_join(self) -> bool:
        return self.join_table is not None

    def __str__(self) -> str:
        if self.is_join:
            return f"Select({self.table_name} JOIN {self.join_table} ON {self.join_condition})"
        where = f" WHERE {self.predicate}" if self.predicate else ""
        return f"Select({self.table_name}{where})"


@dataclass
class UpdateCommand(Command):
    """Update one row selected by id."""

    command_type: ClassVar[CommandType] = CommandType.UPDATE

    table_name: str
    assignments: dict[str, Literal] = field(default_factory=dict)
    predicate: EqualityPredicate | None = None

    def __str__(self) -> str:
        assigns = ", ".join(f"{k}={v}" for k, v in self.assignments.items())
        return f"Update({self.table_name}, SET {assigns} WHERE {self.predicate})"


@dataclass
class DeleteCommand(Command):
    """Delete one row selected by id."""

    command_type: ClassVar[CommandType] = CommandType.DELETE

    table_name: str
    predicate: EqualityPredicate | None = None

    def __str__(self) -> str:
        return f"Delete({self.table_name} WHERE {self.predicate})"


_UNSUPPORTED_SELECT_CLAUSES = ("group", "having", "order", "limit", "offset", "distinct")


class CommandParser:
    """Command parser using sqlglot.

    Example:
        >>> parser = CommandParser()
        >>> print(parser.parse("SELECT * FROM users WHERE id = 1"))
        Select(users WHERE id = 1)
    """

    def __init__(self, dialect: str = "mysql") -> None:
        """Initialize the parser.

        Args:
            dialect: sqlglot dialect to parse with (default: mysql, where
                double-quoted text is a string literal).
        """
        self._dialect = dialect

    def parse(self, text: str) -> Command:
        """Parse command text into a typed command.

        Raises:
            CommandSyntaxError: If the text is empty or malformed.
            UnsupportedOperationError: If the command is outside the grammar.
            SchemaValidationError: If a column type is not int or string.
        """
        stripped = text.strip()
        if not stripped:
            raise CommandSyntaxError("Empty command")

        match = _KEYWORD_RE.match(stripped)
        keyword = match.group(0).upper() if match else stripped.split(None, 1)[0]
        if keyword not in SUPPORTED_KEYWORDS:
            raise UnsupportedOperationError(f"Unknown command '{keyword}'")

        try:
            statements = sqlglot.parse(stripped, dialect=self._dialect)
        except Exception as e:
            raise CommandSyntaxError(f"Failed to parse command: {e}") from e

        statements = [s for s in statements if s is not None]
        if not statements:
            raise CommandSyntaxError("Empty command")
        if len(statements) > 1:
            raise UnsupportedOperationError("Multiple statements not supported")

        return self._convert_statement(statements[0])

    def _convert_statement(self, stmt: exp.Expression) -> Command:
        """Convert a sqlglot expression to a command."""
        if isinstance(stmt, exp.Create):
            return self._convert_create(stmt)
        elif isinstance(stmt, exp.Drop):
            return self._convert_drop(stmt)
        elif isinstance(stmt, exp.Insert):
            return self._convert_insert(stmt)
        elif isinstance(stmt, exp.Select):
            return self._convert_select(stmt)
        elif isinstance(stmt, exp.Update):
            return self._convert_update(stmt)
        elif isinstance(stmt, exp.Delete):
            return self._convert_delete(stmt)
        else:
            raise UnsupportedOperationError(f"Unsupported statement type: {type(stmt).__name__}")

    def _convert_create(self, stmt: exp.Create) -> CreateTableCommand:
        """Convert a CREATE TABLE statement."""
        kind = str(stmt.args.get("kind") or "").upper()
        if kind != "TABLE":
            raise UnsupportedOperationError(f"CREATE {kind or '?'} is not supported")

        schema = stmt.this
        if not isinstance(schema, exp.Schema) or not isinstance(schema.this, exp.Table):
            raise CommandSyntaxError(
                "Syntax error. Usage: CREATE TABLE name (col type [UNIQUE], ...)"
            )
        if not schema.expressions:
            raise CommandSyntaxError("CREATE TABLE requires at least one column")

        columns = []
        for col_def in schema.expressions:
            if not isinstance(col_def, exp.ColumnDef):
                raise UnsupportedOperationError(
                    f"Unsupported table element: {col_def.sql(dialect=self._dialect)}"
                )
            columns.append(self._convert_column_def(col_def))

        return CreateTableCommand(
            table_name=schema.this.name,
            columns=columns,
            if_not_exists=bool(stmt.args.get("exists", False)),
        )

    def _convert_column_def(self, col_def: exp.ColumnDef) -> ColumnDef:
        """Convert one ``name type [UNIQUE]`` column definition."""
        name = col_def.name
        kind = col_def.args.get("kind")
        if kind is None:
            raise CommandSyntaxError(f"Column '{name}' is missing a type")

        is_unique = False
        for constraint in col_def.constraints:
            if isinstance(constraint.kind, exp.UniqueColumnConstraint):
                is_unique = True
            elif isinstance(constraint.kind, exp.PrimaryKeyColumnConstraint):
                if name != PRIMARY_KEY_COLUMN:
                    raise SchemaValidationError(
                        f"Only column '{PRIMARY_KEY_COLUMN}' can be the primary key"
                    )
            else:
                raise UnsupportedOperationError(
                    f"Unsupported constraint on column '{name}': {constraint.sql(dialect=self._dialect)}"
                )

        return ColumnDef(
            name=name,
            data_type=self._convert_data_type(name, kind),
            is_primary_key=name == PRIMARY_KEY_COLUMN,
            is_unique=is_unique,
        )

    def _convert_data_type(self, column: str, kind: exp.Expression) -> ColumnType:
        """Map a declared type to int or string."""
        # VARCHAR(20) -> VARCHAR
        type_name = kind.sql().split("(")[0].strip()
        try:
            return ColumnType.from_name(type_name)
        except SchemaValidationError:
            raise SchemaValidationError(
                f"Unsupported type '{kind.sql()}' for column '{column}' (expected int or string)"
            ) from None

    def _convert_drop(self, stmt: exp.Drop) -> DropTableCommand:
        """Convert a DROP TABLE statement."""
        kind = str(stmt.args.get("kind") or "").upper()
        if kind != "TABLE":
            raise UnsupportedOperationError(f"DROP {kind or '?'} is not supported")

        table = stmt.this
        if not isinstance(table, exp.Table) or not table.name:
            raise CommandSyntaxError("DROP TABLE requires a table name")

        return DropTableCommand(
            table_name=table.name,
            if_exists=bool(stmt.args.get("exists", False)),
        )

    def _convert_insert(self, stmt: exp.Insert) -> InsertCommand:
        """Convert an INSERT statement."""
        target = stmt.this
        if isinstance(target, exp.Schema):
            raise UnsupportedOperationError(
                "INSERT column lists are not supported; supply every value in column order"
            )
        if not isinstance(target, exp.Table) or not target.name:
            raise CommandSyntaxError("INSERT requires a table name")

        values = stmt.expression
        if not isinstance(values, exp.Values):
            raise UnsupportedOperationError("INSERT requires a VALUES list")
        if len(values.expressions) != 1:
            raise UnsupportedOperationError("INSERT supports exactly one row of values")

        row = values.expressions[0]
        items = row.expressions if isinstance(row, exp.Tuple) else [row]
        return InsertCommand(
            table_name=target.name,
            values=[self._convert_literal(item) for item in items],
        )

    def _convert_select(self, stmt: exp.Select) -> SelectCommand:
        """Convert a SELECT statement."""
        projections = stmt.expressions
        if len(projections) != 1 or not isinstance(projections[0], exp.Star):
            raise UnsupportedOperationError("Only SELECT * is supported")

        for clause in _UNSUPPORTED_SELECT_CLAUSES:
            if stmt.args.get(clause):
                raise UnsupportedOperationError(f"{clause.upper()} is not supported")

        from_clause = stmt.find(exp.From)
        if from_clause is None:
            raise CommandSyntaxError("SELECT requires FROM clause")
        table = from_clause.this
        if not isinstance(table, exp.Table) or not table.name:
            raise UnsupportedOperationError("SELECT supports only plain table names in FROM")

        joins = stmt.args.get("joins") or []
        where = stmt.args.get("where")

        if not joins:
            predicate = None
            if where is not None:
                predicate = self._convert_equality(where.this, "WHERE")
            return SelectCommand(table_name=table.name, predicate=predicate)

        if len(joins) > 1:
            raise UnsupportedOperationError("Only two-table joins are supported")
        if where is not None:
            raise UnsupportedOperationError("WHERE is not supported together with JOIN")

        join = joins[0]
        join_kind = f"{join.text('side')} {join.text('kind')}".strip().upper()
        if join_kind not in ("", "INNER"):
            raise UnsupportedOperationError(f"{join_kind} JOIN is not supported")

        join_table = join.this
        if not isinstance(join_table, exp.Table) or not join_table.name:
            raise UnsupportedOperationError("JOIN supports only plain table names")

        condition = join.args.get("on")
        if condition is None:
            raise CommandSyntaxError("JOIN requires an ON t1.col = t2.col condition")
        if not (
            isinstance(condition, exp.EQ)
            and isinstance(condition.left, exp.Column)
            and isinstance(condition.right, exp.Column)
        ):
            raise UnsupportedOperationError("JOIN condition must be an equality between two columns")

        return SelectCommand(
            table_name=table.name,
            join_table=join_table.name,
            join_condition=JoinCondition(
                left=self._column_ref(condition.left),
                right=self._column_ref(condition.right),
            ),
        )

    def _convert_update(self, stmt: exp.Update) -> UpdateCommand:
        """Convert an UPDATE statement."""
        table = stmt.this
        if not isinstance(table, exp.Table) or not table.name:
            raise CommandSyntaxError("UPDATE requires a table name")

        assignments: dict[str, Literal] = {}
        for assignment in stmt.expressions:
            if not isinstance(assignment, exp.EQ) or not isinstance(assignment.left, exp.Column):
                raise CommandSyntaxError("SET expects col = value assignments")
            assignments[assignment.left.name] = self._convert_literal(assignment.right)
        if not assignments:
            raise CommandSyntaxError("UPDATE requires at least one SET assignment")

        where = stmt.args.get("where")
        if where is None:
            raise UnsupportedOperationError("UPDATE requires WHERE id = <value>")

        return UpdateCommand(
            table_name=table.name,
            assignments=assignments,
            predicate=self._convert_id_predicate(where.this, "UPDATE"),
        )

    def _convert_delete(self, stmt: exp.Delete) -> DeleteCommand:
        """Convert a DELETE statement."""
        table = stmt.this
        if not isinstance(table, exp.Table) or not table.name:
            raise CommandSyntaxError("DELETE requires a table name")

        where = stmt.args.get("where")
        if where is None:
            raise UnsupportedOperationError("Only DELETE ... WHERE id = <value> is supported")

        return DeleteCommand(
            table_name=table.name,
            predicate=self._convert_id_predicate(where.this, "DELETE"),
        )

    def _convert_id_predicate(self, node: exp.Expression, statement: str) -> EqualityPredicate:
        """Convert a WHERE that must be ``id = value``."""
        predicate = self._convert_equality(node, "WHERE")
        if predicate.column.name != PRIMARY_KEY_COLUMN:
            raise UnsupportedOperationError(
                f"Only {statement} ... WHERE {PRIMARY_KEY_COLUMN} = <value> is supported"
            )
        return predicate

    def _convert_equality(self, node: exp.Expression, clause: str) -> EqualityPredicate:
        """Convert a ``column = literal`` comparison (either side order)."""
        if not isinstance(node, exp.EQ):
            raise UnsupportedOperationError(
                f"Only 'column = value' conditions are supported in {clause}"
            )

        left, right = node.left, node.right
        if isinstance(right, exp.Column) and not isinstance(left, exp.Column):
            left, right = right, left
        if not isinstance(left, exp.Column):
            raise CommandSyntaxError(f"{clause} condition must reference a column")

        return EqualityPredicate(column=self._column_ref(left), value=self._convert_literal(right))

    def _column_ref(self, column: exp.Column) -> ColumnRef:
        return ColumnRef(name=column.name, table=column.table or None)

    def _convert_literal(self, node: exp.Expression) -> Literal:
        """Convert a literal expression, keeping its text.

        An unqualified bare word is taken as unquoted text.
        """
        if isinstance(node, exp.Literal):
            return Literal(text=node.this, quoted=node.is_string)
        if isinstance(node, exp.Neg) and isinstance(node.this, exp.Literal) and node.this.is_number:
            return Literal(text=f"-{node.this.this}")
        if isinstance(node, exp.Null):
            raise UnsupportedOperationError("NULL values are not supported")
        if isinstance(node, exp.Column) and not node.table:
            return Literal(text=node.name)
        raise CommandSyntaxError(f"Expected a literal value, got '{node.sql(dialect=self._dialect)}'")
