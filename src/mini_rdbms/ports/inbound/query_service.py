"""Query Service port offered to transport layers.

The REST API and the CLI talk to the engine only through this surface:
enumerate and create databases, enumerate a database's tables, fetch a
table's rows, and execute a command string against a named database.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from mini_rdbms.application.executor import ExecutionResult


class QueryService(Protocol):
    """Protocol for the catalog-facing query surface."""

    @abstractmethod
    def list_databases(self) -> list[str]:
        """Return the names of all databases."""
        ...

    @abstractmethod
    def create_database(self, name: str) -> None:
        """Create an empty database.

        Raises:
            DatabaseExistsError: If the name is taken.
        """
        ...

    @abstractmethod
    def list_tables(self, database: str) -> list[str]:
        """Return the table names of a database.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
        """
        ...

    @abstractmethod
    def fetch_rows(self, database: str, table: str) -> list[dict[str, Any]]:
        """Return every live row of a table as a column -> value mapping.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
            TableNotFoundError: If the table does not exist.
        """
        ...

    @abstractmethod
    def execute(self, command: str, database: str | None = None) -> ExecutionResult:
        """Execute a command string against a database.

        Never raises for engine errors; failures are reported in the
        returned result.
        """
        ...
