"""Step handler registry and the context handed to every handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ..cancellation import CancellationToken
from ..collaborators import Collaborator
from ..config import WizardSettings
from ..constants import JOB_MAX_ATTEMPTS
from ..contracts import (
    CallResult,
    PollOutcome,
    PollStatus,
    Severity,
    StepDefinition,
    StepStatus,
)
from ..errors import RemoteError, StepAborted, StepTimeout
from ..poller import JobPoller, PollOptions, StatusFetch
from ..state import RunState

logger = logging.getLogger(__name__)

Handler = Callable[["StepContext"], Awaitable[None]]

HANDLERS: Dict[str, Handler] = {}


def register_handler(*step_ids: str) -> Callable[[Handler], Handler]:
    """Register the decorated coroutine as the handler for ``step_ids``."""

    def decorator(func: Handler) -> Handler:
        for step_id in step_ids:
            if step_id in HANDLERS:
                raise ValueError(f"Handler for step '{step_id}' already registered")
            HANDLERS[step_id] = func
        return func

    return decorator


@dataclass
class SiteInfo:
    """Identity of the site being set up, shared by every step of a run."""

    site_id: str
    tenant_id: Optional[str] = None
    domain: Optional[str] = None
    project_id: Optional[str] = None


class StepContext:
    """Everything a handler may touch while its step executes.

    Writes go through the context so that they are dropped once the run's
    abort epoch has moved on. Stats written here are applied to the run
    state and recorded in :attr:`stats` for the step outcome.
    """

    def __init__(
        self,
        step: StepDefinition,
        state: RunState,
        collaborator: Collaborator,
        site: SiteInfo,
        token: CancellationToken,
        settings: Optional[WizardSettings] = None,
        poller: Optional[JobPoller] = None,
        silent: bool = False,
        previous_status: StepStatus = StepStatus.PENDING,
    ) -> None:
        self.step = step
        self.state = state
        self.collaborator = collaborator
        self.site = site
        self.token = token
        self.settings = settings or WizardSettings()
        self.poller = poller or JobPoller(collaborator)
        self.silent = silent
        self.previous_status = previous_status
        self.stats: Dict[str, int] = {}

    @property
    def site_id(self) -> str:
        return self.site.site_id

    def payload(self, **extra: Any) -> Dict[str, Any]:
        return {"siteId": self.site.site_id, **extra}

    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        if self.silent or self.token.cancelled:
            return
        self.state.log(message, severity)

    def set_stat(self, name: str, value: int) -> None:
        if self.token.cancelled:
            return
        self.stats[name] = value
        self.state.set_stat(name, value)

    def add_stat(self, name: str, delta: int) -> None:
        if self.token.cancelled or not delta:
            return
        self.stats[name] = self.stats.get(name, 0) + delta
        self.state.add_stat(name, delta)

    async def call(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> CallResult:
        """Call ``endpoint``; raise :class:`RemoteError` on failure.

        The result of a call that returns after the run was aborted is
        discarded and :class:`StepAborted` is raised instead.
        """
        self.token.raise_if_cancelled()
        result = await self.collaborator.call(endpoint, payload, method=method)
        self.token.raise_if_cancelled()
        if not result.ok:
            raise RemoteError(result.error or f"{endpoint} failed", endpoint)
        return result

    def poll_options(
        self, max_attempts: int = JOB_MAX_ATTEMPTS, interval: Optional[float] = None
    ) -> PollOptions:
        return PollOptions(
            interval=self.settings.poll_interval if interval is None else interval,
            max_attempts=max_attempts,
            ticks=self.settings.poll_ticks,
        )

    async def wait_for_job(
        self,
        job_id: str,
        label: str,
        options: Optional[PollOptions] = None,
        fetch: Optional[StatusFetch] = None,
    ) -> PollOutcome:
        """Poll ``job_id``; raise :class:`StepAborted` if the run is aborted."""
        options = options or self.poll_options()

        def _progress(attempt: int, job) -> None:
            elapsed = int(attempt * options.interval)
            self.log(f"  └ Still {label}... ({job.progress_percent}% complete, {elapsed}s elapsed)")

        outcome = await self.poller.poll(job_id, options, self.token, fetch=fetch, on_progress=_progress)
        if outcome.status is PollStatus.ABORTED:
            self.log(f"  └ {label.capitalize()} aborted")
            raise StepAborted(f"{self.step.id}: polling aborted")
        return outcome

    async def run_job(
        self,
        job_id: str,
        label: str,
        options: Optional[PollOptions] = None,
        fetch: Optional[StatusFetch] = None,
    ) -> PollOutcome:
        """Poll ``job_id`` and require it to complete.

        Raises:
            RemoteError: If the job reports failure.
            StepTimeout: If the polling budget is exhausted.
        """
        outcome = await self.wait_for_job(job_id, label, options, fetch)
        if outcome.status is PollStatus.FAILED:
            raise RemoteError(f"{self.step.title} failed: {outcome.error}", self.step.endpoint)
        if outcome.status is PollStatus.TIMED_OUT:
            raise StepTimeout(
                f"{self.step.title} timed out after {outcome.attempts} status checks", job_id
            )
        return outcome


async def generic_endpoint(ctx: StepContext) -> None:
    """POST ``{siteId}`` to the step's endpoint, polling a returned job."""
    endpoint = ctx.step.endpoint
    if not endpoint:
        return
    result = await ctx.call(endpoint, ctx.payload())
    if result.job_id:
        ctx.log(f"  └ Queued {ctx.step.title} (job {result.job_id[:8]})")
        await ctx.run_job(result.job_id, ctx.step.title.lower())


async def noop(ctx: StepContext) -> None:
    logger.debug(f"Step {ctx.step.id} has no work")


def resolve_handler(step: StepDefinition, handlers: Optional[Dict[str, Handler]] = None) -> Handler:
    handlers = HANDLERS if handlers is None else handlers
    if step.id in handlers:
        return handlers[step.id]
    return generic_endpoint if step.endpoint else noop
