"""Core contracts for the setupflow orchestrator."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class PhaseMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ErrorKind(str, Enum):
    """How a step failed; each kind maps to a different downstream policy."""

    REMOTE = "remote"
    TIMEOUT = "timeout"
    ABORTED = "aborted"


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PollStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"


class PhaseStatus(str, Enum):
    COMPLETED = "completed"
    HALTED = "halted"
    ABORTED = "aborted"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    HALTED = "halted"
    ABORTED = "aborted"


class StepDefinition(BaseModel):
    """One unit of orchestrated work."""

    model_config = ConfigDict(frozen=True)

    id: str
    phase_id: str
    title: str
    description: str = ""
    endpoint: Optional[str] = None
    critical: bool = True
    auto_completed_by: Optional[str] = None


class ProgressRange(BaseModel):
    """Half-open ``[start, end)`` slice of overall progress."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, le=100)
    end: int = Field(ge=0, le=100)

    @property
    def width(self) -> int:
        return self.end - self.start


class Phase(BaseModel):
    """Group of steps sharing an execution mode and a progress slice."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    mode: PhaseMode = PhaseMode.SEQUENTIAL
    step_ids: Tuple[str, ...]
    progress_range: ProgressRange
    banner: Optional[str] = None


class FailedStep(BaseModel):
    step_id: str
    title: str
    message: str
    index: int


class LogEntry(BaseModel):
    """A single line of the user-facing log stream."""

    id: int
    message: str
    severity: Severity = Severity.INFO
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    key: Optional[str] = None


class BackgroundJobHandle(BaseModel):
    """Observed state of a server-side asynchronous job."""

    job_id: str
    status: JobState = JobState.QUEUED
    progress_percent: int = 0
    result: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobState.COMPLETED, JobState.FAILED)


class CallResult(BaseModel):
    """Response envelope returned by a collaborator call."""

    ok: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def job_id(self) -> Optional[str]:
        """Return the background job id when the call was accepted asynchronously."""
        job_id = self.data.get("jobId")
        if job_id:
            return str(job_id)
        job = self.data.get("job")
        if isinstance(job, dict) and job.get("id"):
            return str(job["id"])
        return None


class PollOutcome(BaseModel):
    status: PollStatus
    job: Optional[BackgroundJobHandle] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def result(self) -> Dict[str, Any]:
        return self.job.result if self.job else {}


class StepOutcome(BaseModel):
    step_id: str
    ok: bool
    stats: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @property
    def aborted(self) -> bool:
        return self.kind is ErrorKind.ABORTED


class PhaseResult(BaseModel):
    phase_id: str
    status: PhaseStatus
    completed: int = 0
    failed: int = 0
    failed_step: Optional[FailedStep] = None


class RunOutcome(BaseModel):
    status: RunStatus
    progress: int = 0
    warnings: int = 0
    failed_step: Optional[FailedStep] = None
    stats: Dict[str, int] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED


class PersistedSnapshot(BaseModel):
    """Durable fields of a run, serialized after every state change."""

    step_statuses: Dict[str, StepStatus] = Field(default_factory=dict)
    current_step_index: int = 0
    global_progress: int = 0
    stats: Dict[str, int] = Field(default_factory=dict)
    failed_step: Optional[FailedStep] = None
    has_started: bool = False
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "PersistedSnapshot":
        return cls.model_validate_json(data)

    @model_validator(mode="after")
    def _clamp_progress(self) -> "PersistedSnapshot":
        self.global_progress = max(0, min(100, self.global_progress))
        return self
