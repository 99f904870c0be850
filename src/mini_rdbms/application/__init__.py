"""Application layer for the relational engine.

The application layer orchestrates domain logic to fulfill use cases.

Exports:
    DatabaseEngine:
        - DatabaseEngine: Main entry point for the engine
    Catalog:
        - Database: Named collection of tables
        - DatabaseRegistry: Named collection of databases
    Executor:
        - CommandDispatcher: Executes commands using the Volcano iterator model
        - ExecutionResult: Result of command execution
        - ResultRow: A row of data
        - Operator: Base class for executor operators
"""

from mini_rdbms.application.catalog import Database, DatabaseRegistry
from mini_rdbms.application.database_engine import DatabaseEngine
from mini_rdbms.application.executor import (
    CommandDispatcher,
    ExecutionResult,
    FilterOperator,
    IndexLookupOperator,
    NestedLoopJoinOperator,
    Operator,
    ResultRow,
    SeqScanOperator,
)

__all__ = [
    "DatabaseEngine",
    "Database",
    "DatabaseRegistry",
    "CommandDispatcher",
    "ExecutionResult",
    "ResultRow",
    "Operator",
    "SeqScanOperator",
    "IndexLookupOperator",
    "FilterOperator",
    "NestedLoopJoinOperator",
]
