"""Outbound adapters - implementations of outbound ports.

These adapters implement the storage the engine drives: one binary
file per table with in-memory indexes rebuilt on open.
"""

from mini_rdbms.adapters.outbound.file_row_store import FileRowStore

__all__ = [
    "FileRowStore",
]
