"""Key/value store abstraction for wizard snapshots."""

from __future__ import annotations

from typing import Optional, Protocol


class SnapshotStore(Protocol):
    """Protocol for snapshot storage backends."""

    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or ``None``."""

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    async def remove(self, key: str) -> None:
        """Delete ``key``; removing a missing key is not an error."""
