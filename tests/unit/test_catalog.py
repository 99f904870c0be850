"""Unit tests for Database and DatabaseRegistry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mini_rdbms.application.catalog import (
    MANIFEST_FILE,
    CatalogManifest,
    Database,
    DatabaseRegistry,
)
from mini_rdbms.domain.entities import ColumnDef, ColumnType, Row, TableSchema
from mini_rdbms.domain.errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    SchemaValidationError,
    TableExistsError,
    TableNotFoundError,
)
from mini_rdbms.infrastructure.metrics import MetricsRegistry


def simple_schema(name: str) -> TableSchema:
    return TableSchema.build(name, [ColumnDef("id", ColumnType.INTEGER)])


@pytest.mark.unit
class TestDatabase:
    """Tests for the per-database table catalog."""

    @pytest.fixture
    def open_database(self, temp_dir: Path, metrics_registry: MetricsRegistry):
        def _open() -> Database:
            return Database("shop", temp_dir / "shop", sync_mode="none", metrics=metrics_registry)

        return _open

    def test_new_database_writes_manifest(self, open_database, temp_dir: Path) -> None:
        db = open_database()

        manifest = json.loads((temp_dir / "shop" / MANIFEST_FILE).read_text())
        assert manifest == {"database": "shop", "tables": []}
        assert db.list_tables() == []

    def test_create_and_get(self, open_database, accounts_schema: TableSchema, temp_dir: Path) -> None:
        db = open_database()

        store = db.create_table(accounts_schema)

        assert db.get_table("accounts") is store
        assert db.require_table("accounts") is store
        assert store.file_path == temp_dir / "shop" / "accounts.tbl"
        assert db.get_table("missing") is None
        with pytest.raises(TableNotFoundError):
            db.require_table("missing")
        db.close()

    def test_create_existing(self, open_database, accounts_schema: TableSchema) -> None:
        db = open_database()
        db.create_table(accounts_schema)

        with pytest.raises(TableExistsError):
            db.create_table(accounts_schema)
        db.close()

    def test_sanitized_name_collision(self, open_database) -> None:
        db = open_database()
        db.create_table(simple_schema("ab"))

        with pytest.raises(SchemaValidationError, match="collides"):
            db.create_table(simple_schema("a/b"))
        db.close()

    def test_unstorable_name(self, open_database) -> None:
        db = open_database()

        with pytest.raises(SchemaValidationError):
            db.create_table(simple_schema("../"))

    def test_stale_file_discarded(self, open_database, temp_dir: Path) -> None:
        (temp_dir / "shop").mkdir(parents=True)
        (temp_dir / "shop" / "t.tbl").write_bytes(b"\x00garbage")
        db = open_database()

        store = db.create_table(simple_schema("t"))

        assert store.row_count == 0
        assert store.file_path.stat().st_size == 0
        db.close()

    def test_list_in_creation_order(self, open_database) -> None:
        db = open_database()
        for name in ("zeta", "alpha", "mid"):
            db.create_table(simple_schema(name))

        assert db.list_tables() == ["zeta", "alpha", "mid"]
        db.close()

    def test_drop_table(self, open_database) -> None:
        db = open_database()
        store = db.create_table(simple_schema("t"))

        db.drop_table("t")

        assert db.list_tables() == []
        assert not store.file_path.exists()
        with pytest.raises(TableNotFoundError):
            db.drop_table("t")

    def test_reopen_restores_tables(self, open_database, accounts_schema: TableSchema) -> None:
        """Tables and their rows survive a restart via the manifest."""
        db = open_database()
        store = db.create_table(accounts_schema)
        store.insert(Row.from_values({"id": 1, "name": "alice", "balance": 5}))
        db.create_table(simple_schema("other"))
        db.drop_table("other")
        db.close()

        reopened = open_database()

        assert reopened.list_tables() == ["accounts"]
        restored = reopened.require_table("accounts")
        assert restored.schema == accounts_schema
        assert restored.select_by_id(1) == Row.from_values({"id": 1, "name": "alice", "balance": 5})
        assert restored.unique_index("name") == frozenset({"alice"})
        reopened.close()

    def test_manifest_round_trip(self, open_database, accounts_schema: TableSchema) -> None:
        db = open_database()
        db.create_table(accounts_schema)

        manifest = CatalogManifest.model_validate_json(db.manifest_path.read_text())

        assert manifest.tables[0].file == "accounts.tbl"
        assert manifest.tables[0].to_schema() == accounts_schema
        db.close()


@pytest.mark.unit
class TestDatabaseRegistry:
    """Tests for the database registry."""

    @pytest.fixture
    def registry(self, temp_dir: Path, metrics_registry: MetricsRegistry):
        reg = DatabaseRegistry(temp_dir / "data", sync_mode="none", metrics=metrics_registry)
        yield reg
        reg.close()

    def test_create_and_get(self, registry: DatabaseRegistry, temp_dir: Path) -> None:
        db = registry.create_database("shop")

        assert registry.get_database("shop") is db
        assert registry.require_database("shop") is db
        assert db.directory == temp_dir / "data" / "shop"
        assert registry.list_databases() == ["shop"]
        assert registry.get_database("nope") is None
        with pytest.raises(DatabaseNotFoundError):
            registry.require_database("nope")

    def test_create_existing(self, registry: DatabaseRegistry) -> None:
        registry.create_database("shop")

        with pytest.raises(DatabaseExistsError):
            registry.create_database("shop")

    def test_directory_collision(self, registry: DatabaseRegistry) -> None:
        registry.create_database("shop")

        with pytest.raises(DatabaseExistsError):
            registry.create_database("../shop")

    def test_invalid_name(self, registry: DatabaseRegistry) -> None:
        with pytest.raises(SchemaValidationError):
            registry.create_database("..")

    def test_drop_database(self, registry: DatabaseRegistry) -> None:
        db = registry.create_database("shop")
        db.create_table(simple_schema("t"))

        registry.drop_database("shop")

        assert registry.list_databases() == []
        assert not db.directory.exists()
        with pytest.raises(DatabaseNotFoundError):
            registry.drop_database("shop")

    def test_discover(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        first = DatabaseRegistry(temp_dir / "data", sync_mode="none", metrics=metrics_registry)
        first.create_database("shop").create_table(simple_schema("t"))
        first.create_database("hr")
        first.close()

        second = DatabaseRegistry(temp_dir / "data", sync_mode="none", metrics=metrics_registry)
        opened = second.discover()

        assert sorted(opened) == ["hr", "shop"]
        assert second.require_database("shop").list_tables() == ["t"]
        assert second.discover() == []
        second.close()
