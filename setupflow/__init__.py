"""setupflow: resumable orchestration of multi-phase onboarding wizards."""

from .cancellation import AbortSignal, CancellationToken
from .contracts import PhaseMode, RunOutcome, RunStatus, StepDefinition, StepStatus
from .orchestrator import SetupWizard
from .persistence import SnapshotManager, get_store
from .plan import PhasePlan, StepRegistry, build_default_plan
from .state import RunState

__version__ = "0.1.0"
__all__ = [
    "AbortSignal",
    "CancellationToken",
    "PhaseMode",
    "PhasePlan",
    "RunOutcome",
    "RunState",
    "RunStatus",
    "SetupWizard",
    "SnapshotManager",
    "StepDefinition",
    "StepRegistry",
    "StepStatus",
    "build_default_plan",
    "get_store",
]
