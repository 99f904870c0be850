"""Database Engine - Unified entry point for the relational engine.

This module provides the DatabaseEngine class that owns the database
registry and hands command strings to a per-database dispatcher. It is the
QueryService that the REST API and the CLI talk to.

Usage:
    from mini_rdbms.application import DatabaseEngine

    # Create and start the engine
    engine = DatabaseEngine(data_dir="/path/to/data")
    engine.start()

    # Execute commands against the default database
    result = engine.execute("CREATE TABLE users (id int, name string UNIQUE)")
    result = engine.execute("INSERT INTO users VALUES (1, 'Alice')")
    result = engine.execute("SELECT * FROM users")

    # Clean shutdown
    engine.stop()
"""

from __future__ import annotations

import tempfile
import threading
from pathlib import Path
from typing import Any

from mini_rdbms.adapters.inbound.command_parser import CommandParser
from mini_rdbms.application.catalog import Database, DatabaseRegistry
from mini_rdbms.application.executor import CommandDispatcher, ExecutionResult
from mini_rdbms.domain.errors import DatabaseNotFoundError
from mini_rdbms.infrastructure.config import Config, get_config
from mini_rdbms.infrastructure.logging import get_logger
from mini_rdbms.infrastructure.metrics import MetricsRegistry, get_metrics

logger = get_logger(__name__)

DEMO_SCHEMA_COMMANDS = (
    "CREATE TABLE IF NOT EXISTS users (id int, username string, age int)",
    "CREATE TABLE IF NOT EXISTS orders (id int, user_id int, item string)",
)

DEMO_ROW_COMMANDS = (
    "INSERT INTO users VALUES (1, 'John Doe', 25)",
    "INSERT INTO users VALUES (2, 'Jane Smith', 30)",
    "INSERT INTO orders VALUES (101, 1, 'Laptop')",
)


class DatabaseEngine:
    """Main engine that owns the catalog and executes commands.

    Thread Safety:
        Multiple threads can share a DatabaseEngine instance. Table access
        is serialized per table by the row stores; catalog changes are
        serialized by the registry.
    """

    def __init__(
        self,
        data_dir: str | Path | None = None,
        sync_mode: str | None = None,
        default_database: str = "default",
        seed_demo_data: bool = False,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            data_dir: Directory for database files. Uses temp dir if None.
            sync_mode: Row store sync mode, 'fsync' or 'none' (default from config).
            default_database: Database created on start and used when a
                command names no database.
            seed_demo_data: Create and populate the users/orders demo tables.
            metrics: Metrics registry (default: global registry).
        """
        if data_dir is None:
            data_dir = tempfile.mkdtemp(prefix="mini_rdbms_")
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

        self._sync_mode = sync_mode
        self._default_database = default_database
        self._seed_demo_data = seed_demo_data
        self._metrics = metrics or get_metrics()

        self._parser = CommandParser()
        self._registry: DatabaseRegistry | None = None
        self._dispatchers: dict[str, CommandDispatcher] = {}
        self._dispatchers_lock = threading.Lock()

        self._started = False

    @classmethod
    def from_config(
        cls, config: Config | None = None, metrics: MetricsRegistry | None = None
    ) -> DatabaseEngine:
        """Build an engine from the application configuration."""
        config = config or get_config()
        return cls(
            data_dir=config.storage.data_dir,
            sync_mode=config.storage.sync_mode,
            default_database=config.catalog.default_database,
            seed_demo_data=config.catalog.seed_demo_data,
            metrics=metrics,
        )

    @property
    def data_dir(self) -> Path:
        """Get the data directory path."""
        return self._data_dir

    @property
    def default_database(self) -> str:
        return self._default_database

    @property
    def is_started(self) -> bool:
        """Check if the engine is started."""
        return self._started

    def start(self) -> None:
        """Start the engine.

        Reopens every database found under the data directory, creates the
        default database if it is missing and seeds the demo tables when
        configured to.

        Raises:
            RuntimeError: If already started.
        """
        if self._started:
            raise RuntimeError("Database engine already started")

        self._registry = DatabaseRegistry(
            self._data_dir, sync_mode=self._sync_mode, metrics=self._metrics
        )
        self._registry.discover()
        if self._registry.get_database(self._default_database) is None:
            self._registry.create_database(self._default_database)

        self._started = True

        if self._seed_demo_data:
            self._seed_demo_tables()

        logger.info(
            "engine_started",
            data_dir=str(self._data_dir),
            databases=self._registry.list_databases(),
        )

    def stop(self) -> None:
        """Stop the engine, closing every table file.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started:
            raise RuntimeError("Database engine not started")

        assert self._registry is not None
        self._registry.close()
        with self._dispatchers_lock:
            self._dispatchers.clear()
        self._started = False
        logger.info("engine_stopped", data_dir=str(self._data_dir))

    def execute(self, command: str, database: str | None = None) -> ExecutionResult:
        """Execute a command string.

        Args:
            command: The command text.
            database: Database name. Uses the default database if None.

        Returns:
            ExecutionResult with rows and/or status message. An unknown
            database is reported as a failed result.

        Raises:
            RuntimeError: If the engine is not started.
        """
        name = database or self._default_database
        db = self._require_registry().get_database(name)
        if db is None:
            return ExecutionResult.failure(DatabaseNotFoundError(name))
        return self._dispatcher_for(db).execute(command)

    def execute_many(self, commands: list[str], database: str | None = None) -> list[ExecutionResult]:
        """Execute multiple commands in order."""
        return [self.execute(command, database) for command in commands]

    def list_databases(self) -> list[str]:
        return self._require_registry().list_databases()

    def create_database(self, name: str) -> None:
        """Create an empty database.

        Raises:
            DatabaseExistsError: If the name is taken.
        """
        self._require_registry().create_database(name)

    def drop_database(self, name: str) -> None:
        """Drop a database with all of its tables.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
        """
        self._require_registry().drop_database(name)
        with self._dispatchers_lock:
            self._dispatchers.pop(name, None)

    def list_tables(self, database: str) -> list[str]:
        return self._require_registry().require_database(database).list_tables()

    def fetch_rows(self, database: str, table: str) -> list[dict[str, Any]]:
        """Return every live row of a table as a column -> value mapping.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
            TableNotFoundError: If the table does not exist.
        """
        store = self._require_registry().require_database(database).require_table(table)
        return [row.to_dict() for row in store.select_all()]

    def get_stats(self) -> dict:
        """Get engine statistics.

        Returns:
            Dictionary with the live row count of every table.
        """
        stats: dict[str, Any] = {
            "started": self._started,
            "data_dir": str(self._data_dir),
            "default_database": self._default_database,
        }

        if self._registry is not None and self._started:
            databases = {}
            for name in self._registry.list_databases():
                db = self._registry.get_database(name)
                if db is None:
                    continue
                databases[name] = {
                    table: db.require_table(table).row_count for table in db.list_tables()
                }
            stats["databases"] = databases

        return stats

    def _require_registry(self) -> DatabaseRegistry:
        if not self._started or self._registry is None:
            raise RuntimeError("Database engine not started")
        return self._registry

    def _dispatcher_for(self, database: Database) -> CommandDispatcher:
        with self._dispatchers_lock:
            dispatcher = self._dispatchers.get(database.name)
            if dispatcher is None or dispatcher.database is not database:
                dispatcher = CommandDispatcher(database, parser=self._parser, metrics=self._metrics)
                self._dispatchers[database.name] = dispatcher
            return dispatcher

    def _seed_demo_tables(self) -> None:
        """Create the users/orders tables and fill them if users is empty."""
        for command in DEMO_SCHEMA_COMMANDS:
            self._seed(command)

        users = self._require_registry().require_database(self._default_database).require_table("users")
        if users.row_count > 0:
            return
        for command in DEMO_ROW_COMMANDS:
            self._seed(command)
        logger.info("demo_data_seeded", database=self._default_database)

    def _seed(self, command: str) -> None:
        result = self.execute(command)
        if not result.success:
            raise RuntimeError(f"Failed to seed demo data ({command}): {result.message}")

    def __enter__(self) -> DatabaseEngine:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()
