"""PostgreSQL implementation of the snapshot store."""

from __future__ import annotations

from typing import Optional

import asyncpg

from .store import SnapshotStore


class PostgresSnapshotStore(SnapshotStore):
    """Persist snapshots in PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS wizard_snapshots (
                key TEXT PRIMARY KEY,
                value JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    async def get(self, key: str) -> Optional[str]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT value::text AS value FROM wizard_snapshots WHERE key = $1", key
            )
        finally:
            await conn.close()
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO wizard_snapshots (key, value, updated_at) VALUES ($1, $2::jsonb, now()) "
                "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()",
                key,
                value,
            )
        finally:
            await conn.close()

    async def remove(self, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM wizard_snapshots WHERE key = $1", key)
        finally:
            await conn.close()
