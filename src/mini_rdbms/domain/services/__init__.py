"""Domain services.

Services implement logic that doesn't naturally fit within a single
entity, such as the locking discipline shared by all row stores.
"""

from mini_rdbms.domain.services.lock_manager import (
    LockMode,
    LockTimeoutError,
    ReadWriteLock,
)

__all__ = [
    "LockMode",
    "LockTimeoutError",
    "ReadWriteLock",
]
