"""Inbound ports - APIs the engine offers to its clients."""

from mini_rdbms.ports.inbound.query_service import QueryService

__all__ = [
    "QueryService",
]
