"""Snapshot persistence for setupflow."""

from __future__ import annotations

import os
from typing import Optional

from ..config import SetupFlowConfig, load_config
from .inmemory import InMemorySnapshotStore
from .manager import SnapshotManager, storage_key
from .sqlite import SQLiteSnapshotStore
from .store import SnapshotStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresSnapshotStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresSnapshotStore = None  # type: ignore

_store_instance: SnapshotStore | None = None


def get_store(
    store_url: Optional[str] = None, config: Optional[SetupFlowConfig] = None
) -> SnapshotStore:
    """Factory function to obtain a snapshot store.

    The backend is selected from ``store_url``, which can be provided
    explicitly, via the ``SETUPFLOW_STORE_URL`` or ``DATABASE_URL`` environment
    variables, or from loaded configuration. When no store is configured an
    in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and store_url is None and config is None:
        return _store_instance

    config = config or load_config()
    store_url = (
        store_url
        or os.getenv("SETUPFLOW_STORE_URL")
        or os.getenv("DATABASE_URL")
        or config.store.url
    )

    if not store_url:
        _store_instance = InMemorySnapshotStore()
        return _store_instance

    if store_url.startswith("sqlite://"):
        path = store_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteSnapshotStore(path)
    elif store_url.startswith("redis://") or store_url.startswith("rediss://"):
        from .redis import RedisSnapshotStore

        _store_instance = RedisSnapshotStore(store_url)
    elif store_url.startswith("postgres://") or store_url.startswith("postgresql://"):
        if PostgresSnapshotStore is None:
            raise RuntimeError("Postgres support not available")
        _store_instance = PostgresSnapshotStore(store_url)
    else:
        raise ValueError(f"Unsupported snapshot store: {store_url}")

    return _store_instance


__all__ = [
    "InMemorySnapshotStore",
    "PostgresSnapshotStore",
    "SQLiteSnapshotStore",
    "SnapshotManager",
    "SnapshotStore",
    "get_store",
    "storage_key",
]
