"""In-memory snapshot store used for testing and dry runs."""

from __future__ import annotations

from typing import Dict, Optional

from .store import SnapshotStore


class InMemorySnapshotStore(SnapshotStore):
    """Store snapshots in a process-local dictionary."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
