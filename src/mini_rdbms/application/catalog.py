"""Catalog of databases and their tables.

Each database lives in its own directory under the data directory:

    <data_dir>/<db>/catalog.json    table schemas (pydantic JSON manifest)
    <data_dir>/<db>/<table>.tbl     one row store file per table

The manifest is what lets a restarted engine reopen its tables; the row
stores then rebuild their indexes from the table files. Structural changes
(create/drop of tables and databases) are serialized by one lock per
container.
"""

from __future__ import annotations

import os
import shutil
import threading
from pathlib import Path

from pydantic import BaseModel, Field

from mini_rdbms.adapters.outbound import FileRowStore
from mini_rdbms.domain.entities import ColumnDef, ColumnType, TableSchema
from mini_rdbms.domain.errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    SchemaValidationError,
    TableExistsError,
    TableNotFoundError,
)
from mini_rdbms.domain.value_objects import is_storable_name, sanitize_name, table_file_name
from mini_rdbms.infrastructure.logging import get_logger
from mini_rdbms.infrastructure.metrics import MetricsRegistry, get_metrics

logger = get_logger(__name__)

MANIFEST_FILE = "catalog.json"


class ColumnManifest(BaseModel):
    """Persisted column definition."""

    name: str
    type: ColumnType
    unique: bool = False


class TableManifest(BaseModel):
    """Persisted table definition."""

    name: str
    file: str
    columns: list[ColumnManifest]

    @classmethod
    def from_schema(cls, schema: TableSchema) -> TableManifest:
        return cls(
            name=schema.name,
            file=table_file_name(schema.name),
            columns=[
                ColumnManifest(name=c.name, type=c.data_type, unique=c.is_unique)
                for c in schema.columns
            ],
        )

    def to_schema(self) -> TableSchema:
        return TableSchema.build(
            self.name,
            [ColumnDef(name=c.name, data_type=c.type, is_unique=c.unique) for c in self.columns],
        )


class CatalogManifest(BaseModel):
    """Persisted catalog of one database."""

    database: str
    tables: list[TableManifest] = Field(default_factory=list)


class Database:
    """A named collection of tables.

    Example:
        >>> db = Database("shop", Path("/tmp/data/shop"), sync_mode="none")
        >>> users = db.create_table(schema)
        >>> db.list_tables()
        ['users']
    """

    def __init__(
        self,
        name: str,
        directory: str | Path,
        sync_mode: str | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Open a database directory, reopening every table in its manifest.

        Args:
            name: Database name.
            directory: Directory holding the manifest and table files.
            sync_mode: Row store sync mode (default from config).
            metrics: Metrics registry (default: global registry).
        """
        self._name = name
        self._directory = Path(directory)
        self._sync_mode = sync_mode
        self._metrics = metrics or get_metrics()
        self._lock = threading.RLock()
        self._tables: dict[str, FileRowStore] = {}

        self._directory.mkdir(parents=True, exist_ok=True)
        if self.manifest_path.exists():
            self._load_manifest()
        else:
            self._save_manifest()

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def manifest_path(self) -> Path:
        return self._directory / MANIFEST_FILE

    def create_table(self, schema: TableSchema) -> FileRowStore:
        """Create a table and its (empty) backing file.

        A leftover file at the table's path, from a table that was never
        recorded in the manifest, is discarded.

        Raises:
            TableExistsError: If a table with this name exists.
            SchemaValidationError: If the name cannot back a file or maps to
                the same file as an existing table.
        """
        with self._lock:
            if schema.name in self._tables:
                raise TableExistsError(schema.name)

            if not is_storable_name(sanitize_name(schema.name)):
                raise SchemaValidationError(f"Invalid table name '{schema.name}'")
            path = self._directory / table_file_name(schema.name)
            for other in self._tables.values():
                if other.file_path == path:
                    raise SchemaValidationError(
                        f"Table name '{schema.name}' collides with table '{other.schema.name}'"
                    )

            if path.exists():
                logger.warning("stale_table_file_removed", database=self._name, path=str(path))
                path.unlink()

            store = self._open_store(schema, path)
            self._tables[schema.name] = store
            try:
                self._save_manifest()
            except OSError:
                del self._tables[schema.name]
                store.drop()
                raise

        logger.info(
            "table_created",
            database=self._name,
            table=schema.name,
            columns=schema.column_names,
        )
        return store

    def get_table(self, name: str) -> FileRowStore | None:
        """Get a table's row store, or None if unknown."""
        with self._lock:
            return self._tables.get(name)

    def require_table(self, name: str) -> FileRowStore:
        """Get a table's row store.

        Raises:
            TableNotFoundError: If the table does not exist.
        """
        store = self.get_table(name)
        if store is None:
            raise TableNotFoundError(name)
        return store

    def list_tables(self) -> list[str]:
        """List table names in creation order."""
        with self._lock:
            return list(self._tables)

    def drop_table(self, name: str) -> None:
        """Drop a table: forget it, then delete its file.

        Raises:
            TableNotFoundError: If the table does not exist.
        """
        with self._lock:
            store = self._tables.pop(name, None)
            if store is None:
                raise TableNotFoundError(name)
            self._save_manifest()
            store.drop()

        logger.info("table_dropped", database=self._name, table=name)

    def close(self) -> None:
        """Close every table file."""
        with self._lock:
            for store in self._tables.values():
                store.close()

    def destroy(self) -> None:
        """Drop every table and remove the database directory."""
        with self._lock:
            for store in self._tables.values():
                store.drop()
            self._tables.clear()
            shutil.rmtree(self._directory)

    def _open_store(self, schema: TableSchema, path: Path) -> FileRowStore:
        return FileRowStore(schema, path, sync_mode=self._sync_mode, metrics=self._metrics)

    def _load_manifest(self) -> None:
        """Reopen the tables recorded in the manifest."""
        manifest = CatalogManifest.model_validate_json(self.manifest_path.read_text(encoding="utf-8"))
        for table in manifest.tables:
            store = self._open_store(table.to_schema(), self._directory / table.file)
            self._tables[table.name] = store
            logger.info(
                "table_opened",
                database=self._name,
                table=table.name,
                rows=store.row_count,
            )

    def _save_manifest(self) -> None:
        """Write the manifest atomically (write temp file, then rename)."""
        manifest = CatalogManifest(
            database=self._name,
            tables=[TableManifest.from_schema(store.schema) for store in self._tables.values()],
        )
        tmp_path = self.manifest_path.with_suffix(".json.tmp")
        tmp_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, self.manifest_path)

    def __repr__(self) -> str:
        return f"Database(name={self._name!r}, tables={len(self._tables)})"


class DatabaseRegistry:
    """A named collection of databases rooted at one data directory."""

    def __init__(
        self,
        data_dir: str | Path,
        sync_mode: str | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._sync_mode = sync_mode
        self._metrics = metrics or get_metrics()
        self._lock = threading.RLock()
        self._databases: dict[str, Database] = {}

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def discover(self) -> list[str]:
        """Open every database that has a manifest under the data directory.

        Returns:
            Names of the databases opened by this call.
        """
        opened = []
        with self._lock:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            for manifest_path in sorted(self._data_dir.glob(f"*/{MANIFEST_FILE}")):
                manifest = CatalogManifest.model_validate_json(
                    manifest_path.read_text(encoding="utf-8")
                )
                if manifest.database in self._databases:
                    continue
                self._databases[manifest.database] = self._open_database(
                    manifest.database, manifest_path.parent
                )
                opened.append(manifest.database)

        if opened:
            logger.info("databases_discovered", databases=opened)
        return opened

    def create_database(self, name: str) -> Database:
        """Create an empty database.

        Raises:
            DatabaseExistsError: If the name (or its directory) is taken.
            SchemaValidationError: If the name cannot back a directory.
        """
        with self._lock:
            if name in self._databases:
                raise DatabaseExistsError(name)

            directory_name = sanitize_name(name)
            if not is_storable_name(directory_name):
                raise SchemaValidationError(f"Invalid database name '{name}'")
            directory = self._data_dir / directory_name
            if any(db.directory == directory for db in self._databases.values()):
                raise DatabaseExistsError(name)

            database = self._open_database(name, directory)
            self._databases[name] = database

        logger.info("database_created", database=name, path=str(directory))
        return database

    def get_database(self, name: str) -> Database | None:
        with self._lock:
            return self._databases.get(name)

    def require_database(self, name: str) -> Database:
        """Get a database.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
        """
        database = self.get_database(name)
        if database is None:
            raise DatabaseNotFoundError(name)
        return database

    def list_databases(self) -> list[str]:
        with self._lock:
            return list(self._databases)

    def drop_database(self, name: str) -> None:
        """Drop a database with all of its tables.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
        """
        with self._lock:
            database = self._databases.pop(name, None)
            if database is None:
                raise DatabaseNotFoundError(name)
            database.destroy()

        logger.info("database_dropped", database=name)

    def close(self) -> None:
        """Close every database and forget them."""
        with self._lock:
            for database in self._databases.values():
                database.close()
            self._databases.clear()

    def _open_database(self, name: str, directory: Path) -> Database:
        return Database(name, directory, sync_mode=self._sync_mode, metrics=self._metrics)
