"""In-process state store for tests and local runs."""

import json
from typing import Any, Optional

from fixturecast.storage.base import StateStore


class InMemoryStateStore(StateStore):
    """Dict-backed store.

    Values are JSON round-tripped on put/get so callers see the same
    shapes the SQL backend would return (no shared mutable references).
    """

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, default=str)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def __len__(self) -> int:
        return len(self._data)
