"""Collaborator interface for remote setup operations."""

from __future__ import annotations

import abc
from typing import Any, Dict, Optional

from ..contracts import BackgroundJobHandle, CallResult, JobState


class Collaborator(metaclass=abc.ABCMeta):
    """Abstract gateway to the remote operations a wizard step invokes.

    Calls return a :class:`CallResult`; a result carrying a job id means the
    operation continues as a background job observed via ``get_job_status``.
    """

    async def connect(self) -> None:
        """Open underlying connections (no-op by default)."""
        pass

    async def close(self) -> None:
        """Release underlying connections (no-op by default)."""
        pass

    @abc.abstractmethod
    async def call(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> CallResult:
        """Invoke ``endpoint``; errors are returned as ``ok=False`` results."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_job_status(self, job_id: str) -> BackgroundJobHandle:
        """Return the current state of a background job.

        Raises:
            RemoteError: If the status could not be fetched.
        """
        raise NotImplementedError


def parse_job(job_id: str, data: Dict[str, Any]) -> BackgroundJobHandle:
    """Build a job handle from a ``{"job": {...}}`` or flat status payload."""
    job = data.get("job") if isinstance(data.get("job"), dict) else data
    raw_status = str(job.get("status") or JobState.QUEUED.value).lower()
    try:
        status = JobState(raw_status)
    except ValueError:
        status = JobState.RUNNING
    progress = job.get("progress", job.get("progressPercent", 0)) or 0
    return BackgroundJobHandle(
        job_id=str(job.get("id") or job_id),
        status=status,
        progress_percent=int(progress),
        result=job.get("result") or {},
        error=job.get("error") or job.get("error_message"),
    )
