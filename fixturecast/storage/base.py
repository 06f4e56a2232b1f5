"""Abstract key-value state store.

The store is the pipeline's only durable memory. Values are JSON-compatible
dicts/lists. No locking or transactions are offered: callers must not run two
orchestrator invocations for the same date at once.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class StateStoreError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class StateStore(ABC):
    """get/put/delete/list over string keys."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for key, or None if absent."""
        pass

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Insert or overwrite key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """Keys starting with prefix, sorted."""
        pass

    async def close(self) -> None:
        """Release any open connections."""
        return None

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key under prefix. Returns the number removed."""
        removed = 0
        for key in await self.list_keys(prefix):
            if await self.delete(key):
                removed += 1
        return removed
