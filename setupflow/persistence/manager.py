"""Best-effort snapshot persistence for wizard runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from ..constants import STORAGE_KEY_PREFIX
from ..contracts import PersistedSnapshot
from ..state import RunState
from .store import SnapshotStore

logger = logging.getLogger(__name__)


def storage_key(site_id: Optional[str], tenant_id: Optional[str] = None) -> str:
    """Return the snapshot key for a tenant/site pair."""
    return f"{STORAGE_KEY_PREFIX}-{tenant_id or 'global'}-{site_id or 'pending'}"


class SnapshotManager:
    """Save, load and clear run snapshots.

    Store failures never propagate: they are logged as warnings and the run
    carries on as if persistence were unavailable.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store
        self._writer: Optional[asyncio.Task] = None
        self._dirty = False
        self._attached: Optional[tuple[RunState, str]] = None

    async def save(self, key: str, state: RunState) -> bool:
        """Persist the durable fields of ``state``; return whether it was written."""
        if not state.has_started and not state.step_statuses:
            return False
        try:
            await self.store.set(key, state.to_snapshot().to_json())
        except Exception as e:
            logger.warning(f"Failed to save snapshot {key}: {e}")
            return False
        return True

    async def load(self, key: str) -> Optional[PersistedSnapshot]:
        try:
            raw = await self.store.get(key)
        except Exception as e:
            logger.warning(f"Failed to read snapshot {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return PersistedSnapshot.from_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding unreadable snapshot {key}: {e}")
            return None

    async def clear(self, key: str) -> None:
        try:
            await self.store.remove(key)
        except Exception as e:
            logger.warning(f"Failed to clear snapshot {key}: {e}")

    # ------------------------------------------------------------------
    # Automatic persistence
    def attach(self, state: RunState, key: str) -> Callable[[], None]:
        """Persist ``state`` under ``key`` after every change.

        Writes are funnelled through a single writer task; changes that arrive
        while a write is in flight are coalesced into one follow-up write of
        the latest state. Returns a callable that detaches the manager.
        """
        self._attached = (state, key)
        unsubscribe = state.subscribe(lambda _: self.request_save())

        def _detach() -> None:
            unsubscribe()
            self._attached = None
            self._dirty = False

        return _detach

    def request_save(self) -> None:
        """Queue a write of the attached state."""
        self._dirty = True
        if self._writer is not None and not self._writer.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._writer = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._dirty and self._attached is not None:
            self._dirty = False
            state, key = self._attached
            await self.save(key, state)

    async def flush(self) -> None:
        """Wait until every pending change has been written."""
        if self._writer is not None and not self._writer.done():
            await self._writer
        if self._dirty:
            await self._drain()

    async def discard_pending(self) -> None:
        """Drop unwritten changes and wait for an in-flight write to finish."""
        self._dirty = False
        if self._writer is not None and not self._writer.done():
            await self._writer
