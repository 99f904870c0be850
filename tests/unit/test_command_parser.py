"""Unit tests for CommandParser."""

from __future__ import annotations

import pytest

from mini_rdbms.adapters.inbound import (
    ColumnRef,
    CommandParser,
    CommandType,
    CreateTableCommand,
    DeleteCommand,
    DropTableCommand,
    InsertCommand,
    Literal,
    SelectCommand,
    UpdateCommand,
)
from mini_rdbms.domain.entities import ColumnType
from mini_rdbms.domain.errors import (
    CommandSyntaxError,
    SchemaValidationError,
    UnsupportedOperationError,
)


@pytest.fixture
def parser() -> CommandParser:
    return CommandParser()


@pytest.mark.unit
class TestCreateTable:
    """Tests for CREATE TABLE parsing."""

    def test_columns_and_unique(self, parser: CommandParser) -> None:
        command = parser.parse("CREATE TABLE accounts (id int, name string UNIQUE, age INTEGER)")

        assert isinstance(command, CreateTableCommand)
        assert command.command_type is CommandType.CREATE_TABLE
        assert command.table_name == "accounts"
        assert [c.name for c in command.columns] == ["id", "name", "age"]
        assert [c.data_type for c in command.columns] == [
            ColumnType.INTEGER,
            ColumnType.TEXT,
            ColumnType.INTEGER,
        ]
        assert command.columns[0].is_primary_key
        assert command.columns[1].is_unique
        assert not command.columns[2].is_unique

    def test_keywords_case_insensitive(self, parser: CommandParser) -> None:
        command = parser.parse("  create table t (ID_X int, id INT, note text)  ")

        assert isinstance(command, CreateTableCommand)
        assert [c.data_type for c in command.columns][-1] is ColumnType.TEXT

    def test_varchar_alias(self, parser: CommandParser) -> None:
        command = parser.parse("CREATE TABLE t (id int, name VARCHAR(20))")

        assert isinstance(command, CreateTableCommand)
        assert command.columns[1].data_type is ColumnType.TEXT

    def test_if_not_exists(self, parser: CommandParser) -> None:
        command = parser.parse("CREATE TABLE IF NOT EXISTS t (id int)")

        assert isinstance(command, CreateTableCommand)
        assert command.if_not_exists

    def test_unsupported_type(self, parser: CommandParser) -> None:
        with pytest.raises(SchemaValidationError, match="price"):
            parser.parse("CREATE TABLE t (id int, price FLOAT)")

    def test_primary_key_only_on_id(self, parser: CommandParser) -> None:
        parser.parse("CREATE TABLE t (id int PRIMARY KEY, name string)")
        with pytest.raises(SchemaValidationError):
            parser.parse("CREATE TABLE t (id int, code int PRIMARY KEY)")

    def test_malformed_column_list(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("CREATE TABLE t (id int,")

    def test_missing_column_list(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("CREATE TABLE t")


@pytest.mark.unit
class TestDropTable:
    """Tests for DROP TABLE parsing."""

    def test_drop(self, parser: CommandParser) -> None:
        command = parser.parse("DROP TABLE accounts")

        assert isinstance(command, DropTableCommand)
        assert command.table_name == "accounts"
        assert not command.if_exists

    def test_drop_if_exists(self, parser: CommandParser) -> None:
        command = parser.parse("drop table if exists accounts")

        assert isinstance(command, DropTableCommand)
        assert command.if_exists


@pytest.mark.unit
class TestInsert:
    """Tests for INSERT parsing."""

    def test_values(self, parser: CommandParser) -> None:
        command = parser.parse("INSERT INTO accounts VALUES (1, 'alice', -5)")

        assert isinstance(command, InsertCommand)
        assert command.table_name == "accounts"
        assert command.values == [
            Literal("1"),
            Literal("alice", quoted=True),
            Literal("-5"),
        ]

    def test_double_quoted_strings(self, parser: CommandParser) -> None:
        command = parser.parse('INSERT INTO accounts VALUES (2, "bob")')

        assert isinstance(command, InsertCommand)
        assert command.values[1] == Literal("bob", quoted=True)

    def test_bare_word_is_unquoted_text(self, parser: CommandParser) -> None:
        command = parser.parse("INSERT INTO accounts VALUES (1, alice, 5)")

        assert isinstance(command, InsertCommand)
        assert command.values == [Literal("1"), Literal("alice"), Literal("5")]

    def test_qualified_column_is_not_a_value(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("INSERT INTO accounts VALUES (1, t.alice)")

    def test_column_list_unsupported(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse("INSERT INTO accounts (id, name) VALUES (1, 'a')")

    def test_multiple_rows_unsupported(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse("INSERT INTO accounts VALUES (1, 'a'), (2, 'b')")

    def test_null_unsupported(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError, match="NULL"):
            parser.parse("INSERT INTO accounts VALUES (1, NULL)")

    def test_unclosed_values(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("INSERT INTO accounts VALUES (1, 'alice'")


@pytest.mark.unit
class TestSelect:
    """Tests for SELECT parsing."""

    def test_full_scan(self, parser: CommandParser) -> None:
        command = parser.parse("SELECT * FROM accounts")

        assert isinstance(command, SelectCommand)
        assert command.table_name == "accounts"
        assert command.predicate is None
        assert not command.is_join

    def test_where_id(self, parser: CommandParser) -> None:
        command = parser.parse("select * from accounts where id = 7")

        assert isinstance(command, SelectCommand)
        assert command.predicate is not None
        assert command.predicate.column == ColumnRef("id")
        assert command.predicate.value == Literal("7")

    def test_where_literal_first(self, parser: CommandParser) -> None:
        command = parser.parse("SELECT * FROM accounts WHERE 'alice' = name")

        assert isinstance(command, SelectCommand)
        assert command.predicate.column.name == "name"
        assert command.predicate.value == Literal("alice", quoted=True)

    def test_join(self, parser: CommandParser) -> None:
        command = parser.parse("SELECT * FROM users JOIN orders ON users.id = orders.user_id")

        assert isinstance(command, SelectCommand)
        assert command.is_join
        assert command.table_name == "users"
        assert command.join_table == "orders"
        assert command.join_condition.left == ColumnRef("id", "users")
        assert command.join_condition.right == ColumnRef("user_id", "orders")

    def test_inner_join(self, parser: CommandParser) -> None:
        command = parser.parse("SELECT * FROM users INNER JOIN orders ON orders.user_id = users.id")

        assert isinstance(command, SelectCommand)
        assert command.join_condition.left == ColumnRef("user_id", "orders")

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT name FROM accounts",
            "SELECT * FROM accounts WHERE id > 1",
            "SELECT * FROM accounts WHERE id = 1 AND name = 'a'",
            "SELECT * FROM accounts ORDER BY id",
            "SELECT * FROM accounts LIMIT 1",
            "SELECT * FROM a LEFT JOIN b ON a.id = b.id",
            "SELECT * FROM a JOIN b ON a.id = b.id JOIN c ON a.id = c.id",
            "SELECT * FROM a JOIN b ON a.id = b.id WHERE a.id = 1",
            "SELECT * FROM a JOIN b ON a.id > b.id",
        ],
    )
    def test_unsupported_forms(self, parser: CommandParser, sql: str) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse(sql)

    def test_join_without_condition(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("SELECT * FROM a JOIN b")


@pytest.mark.unit
class TestUpdateDelete:
    """Tests for UPDATE and DELETE parsing."""

    def test_update(self, parser: CommandParser) -> None:
        command = parser.parse("UPDATE accounts SET name = 'bob', balance = 3 WHERE id = 1")

        assert isinstance(command, UpdateCommand)
        assert command.assignments == {
            "name": Literal("bob", quoted=True),
            "balance": Literal("3"),
        }
        assert command.predicate.value == Literal("1")

    def test_update_bare_word(self, parser: CommandParser) -> None:
        command = parser.parse("UPDATE accounts SET name = bob WHERE id = 1")

        assert isinstance(command, UpdateCommand)
        assert command.assignments == {"name": Literal("bob")}

    def test_update_requires_id_predicate(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse("UPDATE accounts SET balance = 3 WHERE name = 'bob'")
        with pytest.raises(UnsupportedOperationError):
            parser.parse("UPDATE accounts SET balance = 3")

    def test_delete(self, parser: CommandParser) -> None:
        command = parser.parse("DELETE FROM accounts WHERE id = 1")

        assert isinstance(command, DeleteCommand)
        assert command.table_name == "accounts"
        assert command.predicate.value == Literal("1")

    def test_delete_requires_id_predicate(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse("DELETE FROM accounts WHERE name = 'bob'")
        with pytest.raises(UnsupportedOperationError):
            parser.parse("DELETE FROM accounts")


@pytest.mark.unit
class TestParserErrors:
    """Tests for rejected input."""

    def test_empty(self, parser: CommandParser) -> None:
        with pytest.raises(CommandSyntaxError):
            parser.parse("   ")

    @pytest.mark.parametrize("sql", ["TRUNCATE accounts", "SHOW TABLES", "hello"])
    def test_unknown_keyword(self, parser: CommandParser, sql: str) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse(sql)

    def test_keyword_without_trailing_space(self, parser: CommandParser) -> None:
        command = parser.parse("SELECT*FROM accounts")

        assert isinstance(command, SelectCommand)
        assert command.table_name == "accounts"
        assert command.predicate is None

    def test_multiple_statements(self, parser: CommandParser) -> None:
        with pytest.raises(UnsupportedOperationError):
            parser.parse("SELECT * FROM a; SELECT * FROM b")
