"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Turn incoming requests into commands (parser, REST, CLI)
- Outbound adapters: Implement external dependencies (table files on disk)
"""

from mini_rdbms.adapters.outbound import FileRowStore

__all__ = [
    # Outbound adapters
    "FileRowStore",
]
