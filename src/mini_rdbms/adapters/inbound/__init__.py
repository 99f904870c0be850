"""Inbound adapters for the relational engine.

Inbound adapters handle incoming requests and convert them to
internal domain operations.

Exports:
    Command Parser:
        - CommandParser: Parser that converts command text to typed commands
        - Command: Base class for all parsed commands

The REST API (``mini_rdbms.adapters.inbound.rest_api``) and the CLI
(``mini_rdbms.adapters.inbound.cli``) sit on top of the application layer
and are imported from their own modules.
"""

from mini_rdbms.adapters.inbound.command_parser import (
    ColumnRef,
    Command,
    CommandParser,
    CommandType,
    CreateTableCommand,
    DeleteCommand,
    DropTableCommand,
    EqualityPredicate,
    InsertCommand,
    JoinCondition,
    Literal,
    SelectCommand,
    UpdateCommand,
)

__all__ = [
    # Parser
    "CommandParser",
    "CommandType",
    # Values
    "Literal",
    "ColumnRef",
    "EqualityPredicate",
    "JoinCondition",
    # Commands
    "Command",
    "CreateTableCommand",
    "DropTableCommand",
    "InsertCommand",
    "SelectCommand",
    "UpdateCommand",
    "DeleteCommand",
]
