"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to clients (QueryService)
- Outbound ports: Dependencies the engine drives (RowStore)

Adapters implement these ports with concrete functionality.
"""

from mini_rdbms.ports.inbound import QueryService
from mini_rdbms.ports.outbound import RowStore

__all__ = [
    # Inbound ports
    "QueryService",
    # Outbound ports
    "RowStore",
]
