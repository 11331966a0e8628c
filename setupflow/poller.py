"""Polling of server-side background jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .cancellation import CancellationToken
from .collaborators import Collaborator
from .constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TICKS, JOB_MAX_ATTEMPTS
from .contracts import BackgroundJobHandle, JobState, PollOutcome, PollStatus
from .errors import RemoteError

logger = logging.getLogger(__name__)

StatusFetch = Callable[[str], Awaitable[BackgroundJobHandle]]
ProgressCallback = Callable[[int, BackgroundJobHandle], None]


@dataclass(frozen=True)
class PollOptions:
    """Budget and cadence of one polling loop."""

    interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = JOB_MAX_ATTEMPTS
    ticks: int = DEFAULT_POLL_TICKS
    log_every: int = 3

    @property
    def tick(self) -> float:
        return self.interval / max(1, self.ticks)


class JobPoller:
    """Wait for a background job to reach a terminal state."""

    def __init__(self, collaborator: Collaborator) -> None:
        self._collaborator = collaborator

    async def poll(
        self,
        job_id: str,
        options: PollOptions,
        token: CancellationToken,
        fetch: Optional[StatusFetch] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PollOutcome:
        """Poll ``job_id`` until it completes, fails, times out or is aborted.

        Each attempt first waits ``options.interval`` in ``options.ticks``
        slices, checking ``token`` between slices, then fetches the status
        once. Fetch errors are treated as transient.
        """
        fetch = fetch or self._collaborator.get_job_status
        last: Optional[BackgroundJobHandle] = None

        for attempt in range(1, options.max_attempts + 1):
            if not await token.sleep(options.interval, tick=options.tick):
                logger.debug(f"Polling of job {job_id} aborted during wait")
                return PollOutcome(status=PollStatus.ABORTED, job=last, attempts=attempt - 1)
            if token.cancelled:
                return PollOutcome(status=PollStatus.ABORTED, job=last, attempts=attempt - 1)

            try:
                last = await fetch(job_id)
            except RemoteError as e:
                logger.warning(f"Status check for job {job_id} failed (will retry): {e}")
                continue

            if token.cancelled:
                return PollOutcome(status=PollStatus.ABORTED, job=last, attempts=attempt)
            if last.status is JobState.COMPLETED:
                return PollOutcome(status=PollStatus.COMPLETED, job=last, attempts=attempt)
            if last.status is JobState.FAILED:
                return PollOutcome(
                    status=PollStatus.FAILED,
                    job=last,
                    attempts=attempt,
                    error=last.error or "Job failed",
                )
            if on_progress is not None and options.log_every and attempt % options.log_every == 0:
                on_progress(attempt, last)

        logger.info(f"Job {job_id} still running after {options.max_attempts} attempts")
        return PollOutcome(
            status=PollStatus.TIMED_OUT,
            job=last,
            attempts=options.max_attempts,
            error=f"Timed out after {options.max_attempts} status checks",
        )
