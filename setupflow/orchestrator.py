"""The setup wizard: owns one run loop and the user-facing controls."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .cancellation import AbortSignal, CancellationToken
from .collaborators import Collaborator
from .config import WizardSettings
from .contracts import (
    PersistedSnapshot,
    PhaseMode,
    PhaseStatus,
    RunOutcome,
    RunStatus,
    Severity,
    StepStatus,
)
from .errors import RemoteError
from .executor import StepExecutor
from .handlers import Handler, SiteInfo
from .persistence import SnapshotManager, storage_key
from .plan import PhasePlan
from .progress import ProgressCalculator
from .runners import ParallelRunner, PhaseRunner, SequentialRunner
from .state import RunState

logger = logging.getLogger(__name__)

COMPLETION_ENDPOINT = "seo-sites-update"


class SetupWizard:
    """Drive a :class:`PhasePlan` to completion for one site.

    Only one run loop is active at a time. Restart controls abort the
    current loop by advancing the abort epoch and launch a replacement
    immediately; the aborted loop stops writing to the run state as soon as
    it observes the new epoch.
    """

    def __init__(
        self,
        plan: PhasePlan,
        collaborator: Collaborator,
        manager: SnapshotManager,
        *,
        site_id: str,
        tenant_id: Optional[str] = None,
        domain: Optional[str] = None,
        project_id: Optional[str] = None,
        settings: Optional[WizardSettings] = None,
        handlers: Optional[Dict[str, Handler]] = None,
        on_complete: Optional[Callable[[RunOutcome], None]] = None,
        on_skip: Optional[Callable[[], None]] = None,
    ) -> None:
        self.plan = plan
        self.collaborator = collaborator
        self.manager = manager
        self.settings = settings or WizardSettings()
        self.site = SiteInfo(
            site_id=site_id, tenant_id=tenant_id, domain=domain, project_id=project_id
        )
        self.key = storage_key(site_id, tenant_id)
        self.state = RunState(log_limit=self.settings.log_limit)
        self.on_complete = on_complete
        self.on_skip = on_skip

        self._signal = AbortSignal()
        self._progress = ProgressCalculator(plan)
        executor = StepExecutor(
            self.state, collaborator, self.site, self.settings, handlers=handlers
        )
        self._runners: Dict[PhaseMode, PhaseRunner] = {
            PhaseMode.SEQUENTIAL: SequentialRunner(plan, self.state, executor, self.settings),
            PhaseMode.PARALLEL: ParallelRunner(plan, self.state, executor, self.settings),
        }
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self._snapshot: Optional[PersistedSnapshot] = None
        self._detach: Optional[Callable[[], None]] = manager.attach(self.state, self.key)

    # ------------------------------------------------------------------
    # Lifecycle
    @property
    def is_running(self) -> bool:
        """Whether a run loop is active; an aborted loop that is still winding down is not."""
        return (
            self._task is not None
            and not self._task.done()
            and self._token is not None
            and not self._token.cancelled
        )

    @property
    def saved_snapshot(self) -> Optional[PersistedSnapshot]:
        return self._snapshot

    async def mount(self) -> bool:
        """Load any saved snapshot; return whether there is progress to resume."""
        self._snapshot = await self.manager.load(self.key)
        if self._snapshot is not None and self._snapshot.step_statuses:
            done = sum(
                1 for s in self._snapshot.step_statuses.values() if s is StepStatus.COMPLETED
            )
            logger.info(f"Found saved progress for {self.key}: {done}/{len(self.plan)} steps")
            return True
        return False

    def resume(self) -> bool:
        """Pre-populate the run state from the saved snapshot without running."""
        if self._snapshot is None:
            return False
        self.state.restore(self._snapshot)
        done = sum(1 for s in self.state.step_statuses.values() if s is StepStatus.COMPLETED)
        self.state.log(f"Resuming setup ({done}/{len(self.plan)} steps complete)")
        return True

    async def start_fresh(self) -> None:
        """Discard saved progress and return to a never-started state."""
        await self._stop_current()
        await self.manager.discard_pending()
        await self.manager.clear(self.key)
        self._snapshot = None
        self.state.reset()

    async def start(self) -> Optional[RunOutcome]:
        """Run from the failed step, else the first step not yet completed."""
        return await self.run_from(self._resume_index())

    async def run_from(self, start_index: int) -> Optional[RunOutcome]:
        """Run every step at ``start_index`` or later that is not completed.

        Returns ``None`` without doing anything when a run is already active.
        """
        if self.is_running:
            self.state.log("Setup is already running", Severity.WARNING)
            return None
        return await self._launch(start_index)

    async def close(self) -> None:
        """Abort any active run, flush persistence and release the collaborator."""
        await self._stop_current()
        await self.manager.flush()
        if self._detach is not None:
            self._detach()
            self._detach = None
        await self.collaborator.close()

    # ------------------------------------------------------------------
    # Recovery controls
    async def retry_from_failed_step(self) -> Optional[RunOutcome]:
        """Clear the failed step's status and resume from it."""
        failed = self.state.failed_step
        if failed is None or self.is_running:
            return None
        self.state.clear_status(failed.step_id)
        self.state.set_failed(None)
        self.state.reset_progress(self._progress_at(failed.index))
        self.state.log(f"Retrying from {failed.title}...")
        return await self._launch(failed.index)

    async def restart_from_step(self, index: int) -> RunOutcome:
        """Reset step ``index`` and every later step to pending, then run from it."""
        step = self.plan.step_at(index)
        self._signal.abort()
        self.state.reset_statuses(s.id for s in self.plan.steps[index:])
        self.state.set_failed(None)
        self.state.reset_progress(self._progress_at(index))
        self.state.log(f"Restarting from {step.title}...")
        return await self._launch(index)

    async def restart_from_beginning(self) -> RunOutcome:
        """Start over from the first step with fresh statuses and stats."""
        await self.start_fresh()
        return await self._launch(0)

    async def stop_and_restart_current_step(self) -> Optional[RunOutcome]:
        """Abort the step in progress and execute it again.

        The step is left in the error state while it restarts so that
        handlers can tell a restart from a first attempt. In a parallel
        phase every step still in flight is restarted; completed siblings
        are kept.
        """
        if not self.is_running:
            return None
        index = self.state.current_step_index
        step = self.plan.step_at(index)
        phase = self.plan.phase_of(step.id)
        self._signal.abort()
        if phase.mode is PhaseMode.PARALLEL:
            index = self.plan.index_of(phase.step_ids[0])
            interrupted = [
                s.id
                for s in self.plan.steps_of(phase.id)
                if self.state.status_of(s.id) is StepStatus.RUNNING
            ]
            title = phase.title
        else:
            interrupted = [step.id]
            title = step.title
        for step_id in interrupted:
            self.state.set_status(step_id, StepStatus.ERROR)
        self.state.set_failed(None)
        self.state.reset_progress(self._progress_at(index))
        self.state.log(f"Restarting {title} (aborted by user)...")
        return await self._launch(index)

    async def skip(self) -> None:
        """Leave the wizard; saved progress is kept for a later resume."""
        await self._stop_current()
        await self.manager.flush()
        logger.info(f"Setup for {self.key} skipped")
        if self.on_skip is not None:
            self.on_skip()

    # ------------------------------------------------------------------
    # Run loop
    def _resume_index(self) -> int:
        if self.state.failed_step is not None:
            return self.state.failed_step.index
        for index, step in enumerate(self.plan.steps):
            if self.state.status_of(step.id) is not StepStatus.COMPLETED:
                return index
        return len(self.plan)

    def _progress_at(self, index: int) -> int:
        if index >= len(self.plan):
            return 100
        step = self.plan.step_at(index)
        phase = self.plan.phase_of(step.id)
        if phase.mode is PhaseMode.PARALLEL:
            return self._progress.phase_start(phase.id)
        return self._progress.calc(phase.id, phase.step_ids.index(step.id), len(phase.step_ids))

    async def _launch(self, start_index: int) -> RunOutcome:
        if self._detach is None:
            self._detach = self.manager.attach(self.state, self.key)
        token = self._signal.token()
        self._token = token
        self._task = asyncio.create_task(self._run(start_index, token))
        return await self._task

    async def _stop_current(self) -> None:
        """Abort the active loop and give it ``stop_timeout`` seconds to wind down.

        A loop stuck in a remote call is left behind; it discards the result
        once the call returns.
        """
        self._signal.abort()
        if self._task is not None and not self._task.done():
            _, pending = await asyncio.wait({self._task}, timeout=self.settings.stop_timeout)
            if pending:
                logger.debug(f"Aborted run for {self.key} is still waiting on a remote call")

    def _outcome(self, status: RunStatus, warnings: int = 0) -> RunOutcome:
        return RunOutcome(
            status=status,
            progress=self.state.global_progress,
            warnings=warnings,
            failed_step=self.state.failed_step,
            stats=dict(self.state.stats),
        )

    async def _run(self, start_index: int, token: CancellationToken) -> RunOutcome:
        if token.cancelled:
            return self._outcome(RunStatus.ABORTED)
        self.state.mark_started()
        self.state.set_failed(None)
        if start_index == 0:
            self.state.log("Starting Signal Learning...")
            self.state.log(f"Domain: {self.site.domain or 'Not specified'}")

        warnings = 0
        for phase in self.plan.phases:
            if token.cancelled:
                return self._outcome(RunStatus.ABORTED, warnings)
            pending = [
                step
                for step in self.plan.steps_of(phase.id)
                if self.plan.index_of(step.id) >= start_index
                and self.state.status_of(step.id) is not StepStatus.COMPLETED
            ]
            if not pending:
                self.state.advance_progress(self._progress.phase_end(phase.id))
                continue

            if phase.banner:
                self.state.log(phase.banner)
            result = await self._runners[phase.mode].run(phase, token, start_index)
            if result.status is PhaseStatus.ABORTED:
                return self._outcome(RunStatus.ABORTED, warnings)
            warnings += result.failed
            if result.status is PhaseStatus.HALTED:
                logger.info(f"Setup for {self.key} halted at {result.failed_step.step_id}")
                return self._outcome(RunStatus.HALTED, warnings - 1)

        return await self._finish(token, warnings)

    async def _finish(self, token: CancellationToken, warnings: int) -> RunOutcome:
        self.state.advance_progress(100)
        self.state.log(
            "Signal Learning complete! Your AI brain is fully trained.", Severity.SUCCESS
        )
        if warnings:
            self.state.log(f"Finished with {warnings} warnings", Severity.WARNING)

        payload = {
            "siteId": self.site.site_id,
            "setup_completed": True,
            "setup_completed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            result = await self.collaborator.call(COMPLETION_ENDPOINT, payload, method="PUT")
            if not result.ok:
                logger.warning(f"Could not mark {self.site.site_id} as set up: {result.error}")
        except RemoteError as e:
            logger.warning(f"Could not mark {self.site.site_id} as set up: {e}")
        if token.cancelled:
            return self._outcome(RunStatus.ABORTED, warnings)

        outcome = self._outcome(RunStatus.COMPLETED, warnings)
        if self._detach is not None:
            self._detach()
            self._detach = None
        await self.manager.discard_pending()
        if token.cancelled:
            return self._outcome(RunStatus.ABORTED, warnings)
        await self.manager.clear(self.key)
        if token.cancelled:
            # The replacement run may have saved while the delete was in flight.
            self.manager.request_save()
            return self._outcome(RunStatus.ABORTED, warnings)
        self._snapshot = None
        if self.on_complete is not None:
            self.on_complete(outcome)
        return outcome
