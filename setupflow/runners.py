"""Phase runners: apply one phase's steps under its failure policy."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from .cancellation import CancellationToken
from .config import WizardSettings
from .constants import PARALLEL_PROGRESS_LOG_KEY
from .contracts import (
    FailedStep,
    Phase,
    PhaseResult,
    PhaseStatus,
    Severity,
    StepDefinition,
    StepOutcome,
    StepStatus,
)
from .executor import StepExecutor
from .plan import PhasePlan
from .progress import ProgressCalculator
from .state import RunState

logger = logging.getLogger(__name__)


class PhaseRunner:
    """Base class for runners. Subclasses implement :meth:`run`."""

    def __init__(
        self,
        plan: PhasePlan,
        state: RunState,
        executor: StepExecutor,
        settings: Optional[WizardSettings] = None,
    ) -> None:
        self._plan = plan
        self._state = state
        self._executor = executor
        self._settings = settings or WizardSettings()
        self._progress = ProgressCalculator(plan)

    async def run(
        self, phase: Phase, token: CancellationToken, start_index: int = 0
    ) -> PhaseResult:
        """Run the steps of ``phase`` whose plan index is at least ``start_index``."""
        raise NotImplementedError

    def _skipped(self, step: StepDefinition, start_index: int) -> bool:
        return (
            self._plan.index_of(step.id) < start_index
            or self._state.status_of(step.id) is StepStatus.COMPLETED
        )

    def _complete(self, step: StepDefinition) -> None:
        self._state.set_status(step.id, StepStatus.COMPLETED)
        for dependent in self._plan.auto_completed_by(step.id):
            self._state.set_status(dependent, StepStatus.COMPLETED)

    def _aborted(self, phase: Phase, completed: int = 0, failed: int = 0) -> PhaseResult:
        logger.debug(f"Phase {phase.id} aborted")
        return PhaseResult(
            phase_id=phase.id, status=PhaseStatus.ABORTED, completed=completed, failed=failed
        )


class SequentialRunner(PhaseRunner):
    """Run steps one at a time in declared order.

    A failing critical step halts the whole run; other failures are logged
    as warnings and the phase carries on.
    """

    async def run(
        self, phase: Phase, token: CancellationToken, start_index: int = 0
    ) -> PhaseResult:
        steps = self._plan.steps_of(phase.id)
        total = len(steps)
        completed = failed = 0

        for position, step in enumerate(steps):
            if token.cancelled:
                return self._aborted(phase, completed, failed)
            if self._skipped(step, start_index):
                self._state.advance_progress(self._progress.calc(phase.id, position + 1, total))
                continue

            index = self._plan.index_of(step.id)
            previous = self._state.status_of(step.id)
            self._state.set_current(index)
            self._state.set_status(step.id, StepStatus.RUNNING)
            self._state.advance_progress(self._progress.calc(phase.id, position, total))
            self._state.log(f"▶ {step.title}...")

            outcome = await self._executor.execute(step, token, previous_status=previous)
            if outcome.aborted or token.cancelled:
                return self._aborted(phase, completed, failed)

            if outcome.ok:
                self._complete(step)
                completed += 1
                self._state.log(f"✓ {step.title}", Severity.SUCCESS)
            elif step.critical:
                self._state.set_status(step.id, StepStatus.ERROR)
                failed_step = FailedStep(
                    step_id=step.id,
                    title=step.title,
                    message=outcome.error or "Unknown error",
                    index=index,
                )
                self._state.set_failed(failed_step)
                self._state.log(f"✗ {step.title}: {failed_step.message}", Severity.ERROR)
                return PhaseResult(
                    phase_id=phase.id,
                    status=PhaseStatus.HALTED,
                    completed=completed,
                    failed=failed + 1,
                    failed_step=failed_step,
                )
            else:
                self._state.set_status(step.id, StepStatus.ERROR)
                failed += 1
                self._state.log(
                    f"⚠ {step.title}: {outcome.error} (continuing)", Severity.WARNING
                )

            self._state.advance_progress(self._progress.calc(phase.id, position + 1, total))
            delay = self._settings.inter_step_delay
            if delay and not await token.sleep(delay):
                return self._aborted(phase, completed, failed)

        self._state.advance_progress(self._progress.phase_end(phase.id))
        return PhaseResult(
            phase_id=phase.id, status=PhaseStatus.COMPLETED, completed=completed, failed=failed
        )


class ParallelRunner(PhaseRunner):
    """Run every pending step of a phase concurrently.

    Failures never stop siblings and never halt the run; they are counted
    and summarized once the whole batch has settled.
    """

    async def run(
        self, phase: Phase, token: CancellationToken, start_index: int = 0
    ) -> PhaseResult:
        steps = self._plan.steps_of(phase.id)
        total = len(steps)
        pending = [step for step in steps if not self._skipped(step, start_index)]
        done_before = total - len(pending)
        counts = {"completed": 0, "failed": 0}
        failures: List[Tuple[StepDefinition, str]] = []

        if token.cancelled:
            return self._aborted(phase)

        previous = {step.id: self._state.status_of(step.id) for step in pending}
        if pending:
            self._state.set_current(self._plan.index_of(pending[0].id))
        for step in pending:
            self._state.set_status(step.id, StepStatus.RUNNING)

        async def run_one(step: StepDefinition) -> StepOutcome:
            outcome = await self._executor.execute(
                step, token, silent=True, previous_status=previous[step.id]
            )
            if outcome.aborted or token.cancelled:
                return outcome
            if outcome.ok:
                self._complete(step)
                counts["completed"] += 1
            else:
                self._state.set_status(step.id, StepStatus.ERROR)
                counts["failed"] += 1
                failures.append((step, outcome.error or "Unknown error"))
            self._observe(phase, done_before + counts["completed"] + counts["failed"], total)
            return outcome

        await asyncio.gather(*(run_one(step) for step in pending))
        if token.cancelled:
            return self._aborted(phase, counts["completed"], counts["failed"])

        self._summarize(counts["completed"], failures)
        self._state.advance_progress(self._progress.phase_end(phase.id))
        return PhaseResult(
            phase_id=phase.id,
            status=PhaseStatus.COMPLETED,
            completed=counts["completed"],
            failed=counts["failed"],
        )

    def _observe(self, phase: Phase, settled: int, total: int) -> None:
        """Map settled steps into the phase range and refresh the progress line."""
        self._state.advance_progress(self._progress.calc(phase.id, settled, total))
        if 0 < settled < total:
            self._state.log(
                f"Parallel: {settled}/{total} complete ({total - settled} running)",
                key=PARALLEL_PROGRESS_LOG_KEY,
            )

    def _summarize(self, completed: int, failures: List[Tuple[StepDefinition, str]]) -> None:
        severity = Severity.WARNING if failures else Severity.SUCCESS
        self._state.log(
            f"Parallel phase complete: {completed} succeeded, {len(failures)} failed", severity
        )
        sample = self._settings.parallel_failure_sample
        for step, error in failures[:sample]:
            self._state.log(f"  └ {step.title}: {error}", Severity.WARNING)
        if len(failures) > sample:
            self._state.log(
                f"  └ ... and {len(failures) - sample} more warnings", Severity.WARNING
            )
