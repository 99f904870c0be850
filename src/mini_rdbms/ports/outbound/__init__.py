"""Outbound ports - interfaces for dependencies the engine drives."""

from mini_rdbms.ports.outbound.row_store import RowStore

__all__ = [
    "RowStore",
]
