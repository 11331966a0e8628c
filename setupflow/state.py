"""Mutable run state shared by the runners and observed by persistence and UI."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, PrivateAttr

from .constants import DEFAULT_LOG_LIMIT, DEFAULT_STATS
from .contracts import FailedStep, LogEntry, PersistedSnapshot, Severity, StepStatus

logger = logging.getLogger(__name__)

StateListener = Callable[["RunState"], None]

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class RunState(BaseModel):
    """State of one wizard instance.

    Mutated only through its methods so that every change notifies the
    subscribed listeners (snapshot persistence, UI). Step statuses and
    progress are written by the active phase runner; listeners only read.
    """

    step_statuses: Dict[str, StepStatus] = Field(default_factory=dict)
    current_step_index: int = 0
    global_progress: int = 0
    stats: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_STATS))
    logs: List[LogEntry] = Field(default_factory=list)
    failed_step: Optional[FailedStep] = None
    has_started: bool = False
    log_limit: int = DEFAULT_LOG_LIMIT

    _listeners: List[StateListener] = PrivateAttr(default_factory=list)
    _log_seq: int = PrivateAttr(default=0)

    # ------------------------------------------------------------------
    # Observation
    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; return a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Step statuses
    def status_of(self, step_id: str) -> StepStatus:
        return self.step_statuses.get(step_id, StepStatus.PENDING)

    def set_status(self, step_id: str, status: StepStatus) -> None:
        self.step_statuses[step_id] = status
        self._notify()

    def clear_status(self, step_id: str) -> None:
        if self.step_statuses.pop(step_id, None) is not None:
            self._notify()

    def reset_statuses(self, step_ids: Iterable[str]) -> None:
        for step_id in step_ids:
            self.step_statuses[step_id] = StepStatus.PENDING
        self._notify()

    def set_current(self, index: int) -> None:
        if self.current_step_index != index:
            self.current_step_index = index
            self._notify()

    # ------------------------------------------------------------------
    # Progress
    def advance_progress(self, percent: int) -> None:
        """Raise progress to ``percent``; never moves backwards within a run."""
        percent = max(0, min(100, percent))
        if percent > self.global_progress:
            self.global_progress = percent
            self._notify()

    def reset_progress(self, percent: int = 0) -> None:
        """Start a new run attempt at ``percent``."""
        self.global_progress = max(0, min(100, percent))
        self._notify()

    # ------------------------------------------------------------------
    # Stats
    def set_stat(self, name: str, value: int) -> None:
        self.stats[name] = value
        self._notify()

    def add_stat(self, name: str, delta: int) -> int:
        self.stats[name] = self.stats.get(name, 0) + delta
        self._notify()
        return self.stats[name]

    # ------------------------------------------------------------------
    # Logs
    def log(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        key: Optional[str] = None,
    ) -> LogEntry:
        """Append a log line, keeping only the most recent ``log_limit`` entries.

        When ``key`` is given, any earlier entry with the same key is removed
        first so the line is replaced rather than repeated.
        """
        self._log_seq += 1
        entry = LogEntry(id=self._log_seq, message=message, severity=severity, key=key)
        if key is not None:
            self.logs = [e for e in self.logs if e.key != key]
        self.logs.append(entry)
        if len(self.logs) > self.log_limit:
            del self.logs[: len(self.logs) - self.log_limit]
        logger.log(_LOG_LEVELS[severity], message)
        self._notify()
        return entry

    def clear_logs(self) -> None:
        self.logs = []
        self._notify()

    # ------------------------------------------------------------------
    # Run lifecycle
    def set_failed(self, failed: Optional[FailedStep]) -> None:
        self.failed_step = failed
        self._notify()

    def mark_started(self) -> None:
        if not self.has_started:
            self.has_started = True
            self._notify()

    def reset(self) -> None:
        """Return to a fresh, never-started state."""
        self.step_statuses = {}
        self.current_step_index = 0
        self.global_progress = 0
        self.stats = dict(DEFAULT_STATS)
        self.logs = []
        self.failed_step = None
        self.has_started = False
        self._notify()

    @property
    def has_progress(self) -> bool:
        return bool(self.step_statuses)

    # ------------------------------------------------------------------
    # Snapshots
    def to_snapshot(self) -> PersistedSnapshot:
        return PersistedSnapshot(
            step_statuses=dict(self.step_statuses),
            current_step_index=self.current_step_index,
            global_progress=self.global_progress,
            stats=dict(self.stats),
            failed_step=self.failed_step.model_copy() if self.failed_step else None,
            has_started=self.has_started,
        )

    def restore(self, snapshot: PersistedSnapshot) -> None:
        """Pre-populate durable fields from ``snapshot``; logs are not restored."""
        self.step_statuses = dict(snapshot.step_statuses)
        self.current_step_index = snapshot.current_step_index
        self.global_progress = snapshot.global_progress
        self.stats = {**DEFAULT_STATS, **snapshot.stats}
        self.failed_step = snapshot.failed_step
        self.has_started = snapshot.has_started
        self._notify()

    def durable_fields(self) -> dict:
        """Fields that survive a snapshot round-trip."""
        return self.model_dump(
            include={
                "step_statuses",
                "current_step_index",
                "global_progress",
                "stats",
                "failed_step",
                "has_started",
            }
        )
