"""Shared fixtures for setupflow tests."""

from typing import Iterable, Sequence, Tuple, Union

import pytest

import setupflow.persistence as persistence
from setupflow.collaborators import InMemoryCollaborator
from setupflow.config import WizardSettings
from setupflow.contracts import Phase, PhaseMode, ProgressRange, StepDefinition
from setupflow.persistence import InMemorySnapshotStore, SnapshotManager
from setupflow.plan import PhasePlan, StepRegistry

StepEntry = Union[str, Tuple[str, bool]]


def build_plan(phases: Iterable[Tuple[str, PhaseMode, Sequence[StepEntry], int, int]]) -> PhasePlan:
    """Build a plan from ``(phase_id, mode, steps, start, end)`` tuples.

    Each step is an id or an ``(id, critical)`` pair; every step calls the
    endpoint ``ep-<id>``.
    """
    steps = []
    plan_phases = []
    for phase_id, mode, step_entries, start, end in phases:
        ids = []
        for entry in step_entries:
            step_id, critical = (entry, True) if isinstance(entry, str) else entry
            steps.append(
                StepDefinition(
                    id=step_id,
                    phase_id=phase_id,
                    title=step_id.upper(),
                    endpoint=f"ep-{step_id}",
                    critical=critical,
                )
            )
            ids.append(step_id)
        plan_phases.append(
            Phase(
                id=phase_id,
                title=phase_id.title(),
                mode=mode,
                step_ids=tuple(ids),
                progress_range=ProgressRange(start=start, end=end),
                banner=f"Running {phase_id}",
            )
        )
    return PhasePlan(StepRegistry(steps), plan_phases)


@pytest.fixture
def fast_settings() -> WizardSettings:
    return WizardSettings(
        min_step_duration=0,
        inter_step_delay=0,
        poll_interval=0.01,
        training_poll_interval=0.01,
        poll_ticks=2,
    )


@pytest.fixture
def three_phase_plan() -> PhasePlan:
    return build_plan(
        [
            ("discovery", PhaseMode.SEQUENTIAL, ["d1", "d2", "d3", "d4"], 0, 15),
            ("parallel", PhaseMode.PARALLEL, ["p1", "p2", "p3", "p4", "p5"], 15, 60),
            ("final", PhaseMode.SEQUENTIAL, ["f1", "f2"], 60, 100),
        ]
    )


@pytest.fixture
def collaborator() -> InMemoryCollaborator:
    return InMemoryCollaborator()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    store = InMemorySnapshotStore()
    persistence._store_instance = store
    return store


@pytest.fixture
def manager(store) -> SnapshotManager:
    return SnapshotManager(store)


@pytest.fixture
def plan_factory():
    return build_plan
