"""Step registry and validated phase plan."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from ..contracts import Phase, StepDefinition
from ..errors import PlanIntegrityError, StepNotFound

logger = logging.getLogger(__name__)


class StepRegistry:
    """Static catalog of step definitions keyed by id."""

    def __init__(self, steps: Iterable[StepDefinition]) -> None:
        self._steps: Dict[str, StepDefinition] = {}
        for step in steps:
            if step.id in self._steps:
                raise PlanIntegrityError(f"Duplicate step id: {step.id}")
            self._steps[step.id] = step

    def get(self, step_id: str) -> StepDefinition:
        step = self._steps.get(step_id)
        if step is None:
            raise StepNotFound(f"Unknown step: {step_id}")
        return step

    def find(self, step_id: str) -> Optional[StepDefinition]:
        return self._steps.get(step_id)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps

    def __iter__(self):
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)


class PhasePlan:
    """Ordered phases over a step registry.

    The plan is validated when constructed; a corrupt plan raises
    :class:`PlanIntegrityError` and never runs partially. Steps are indexed in
    plan order (phases flattened), which is the order used for
    ``current_step_index`` and restart points.
    """

    def __init__(self, registry: StepRegistry, phases: Sequence[Phase]) -> None:
        self.registry = registry
        self._phases: List[Phase] = list(phases)
        self._validate()

        self._phase_by_id: Dict[str, Phase] = {p.id: p for p in self._phases}
        self._phase_of_step: Dict[str, Phase] = {}
        self._order: List[StepDefinition] = []
        for phase in self._phases:
            for step_id in phase.step_ids:
                self._phase_of_step[step_id] = phase
                self._order.append(registry.get(step_id))
        self._index: Dict[str, int] = {s.id: i for i, s in enumerate(self._order)}
        self._satisfies: Dict[str, List[str]] = {}
        for step in self._order:
            if step.auto_completed_by:
                self._satisfies.setdefault(step.auto_completed_by, []).append(step.id)
        logger.debug(
            f"Compiled plan with {len(self._phases)} phases and {len(self._order)} steps"
        )

    # ------------------------------------------------------------------
    def _validate(self) -> None:
        if not self._phases:
            raise PlanIntegrityError("Plan has no phases")

        seen_phases: set[str] = set()
        seen_steps: set[str] = set()
        previous_end = 0
        for phase in self._phases:
            if phase.id in seen_phases:
                raise PlanIntegrityError(f"Duplicate phase id: {phase.id}")
            seen_phases.add(phase.id)

            if not phase.step_ids:
                raise PlanIntegrityError(f"Phase {phase.id} has no steps")

            rng = phase.progress_range
            if rng.start != previous_end:
                raise PlanIntegrityError(
                    f"Phase {phase.id} starts at {rng.start}, expected {previous_end}"
                )
            if rng.start >= rng.end:
                raise PlanIntegrityError(
                    f"Phase {phase.id} has an empty progress range {rng.start}-{rng.end}"
                )
            previous_end = rng.end

            for step_id in phase.step_ids:
                if step_id in seen_steps:
                    raise PlanIntegrityError(f"Step {step_id} appears in more than one phase")
                seen_steps.add(step_id)
                step = self.registry.find(step_id)
                if step is None:
                    raise PlanIntegrityError(
                        f"Phase {phase.id} references unknown step {step_id}"
                    )
                if step.phase_id != phase.id:
                    raise PlanIntegrityError(
                        f"Step {step_id} declares phase {step.phase_id} but is listed in {phase.id}"
                    )

        if previous_end != 100:
            raise PlanIntegrityError(f"Last phase ends at {previous_end}, expected 100")

        unassigned = [s.id for s in self.registry if s.id not in seen_steps]
        if unassigned:
            raise PlanIntegrityError(f"Steps not assigned to any phase: {unassigned}")

        for step in self.registry:
            if step.auto_completed_by and step.auto_completed_by not in self.registry:
                raise PlanIntegrityError(
                    f"Step {step.id} is auto-completed by unknown step {step.auto_completed_by}"
                )

    # ------------------------------------------------------------------
    @property
    def phases(self) -> List[Phase]:
        """All phases in execution order."""
        return list(self._phases)

    @property
    def steps(self) -> List[StepDefinition]:
        """All steps in plan order."""
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def phase(self, phase_id: str) -> Phase:
        try:
            return self._phase_by_id[phase_id]
        except KeyError:
            raise PlanIntegrityError(f"Unknown phase: {phase_id}") from None

    def phase_of(self, step_id: str) -> Phase:
        phase = self._phase_of_step.get(step_id)
        if phase is None:
            raise StepNotFound(f"Unknown step: {step_id}")
        return phase

    def get_step(self, step_id: str) -> StepDefinition:
        return self.registry.get(step_id)

    def index_of(self, step_id: str) -> int:
        try:
            return self._index[step_id]
        except KeyError:
            raise StepNotFound(f"Unknown step: {step_id}") from None

    def step_at(self, index: int) -> StepDefinition:
        if not 0 <= index < len(self._order):
            raise IndexError(f"Step index {index} out of range 0-{len(self._order) - 1}")
        return self._order[index]

    def steps_of(self, phase_id: str) -> List[StepDefinition]:
        return [self.registry.get(sid) for sid in self.phase(phase_id).step_ids]

    def auto_completed_by(self, step_id: str) -> List[str]:
        """Ids of steps that are satisfied when ``step_id`` succeeds."""
        return list(self._satisfies.get(step_id, ()))
