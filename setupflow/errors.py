"""Exception hierarchy for setupflow."""

from __future__ import annotations

from typing import Optional


class SetupFlowError(Exception):
    """Base class for all setupflow errors."""


class RemoteError(SetupFlowError):
    """A collaborator rejected a call or reported an application error."""

    def __init__(self, message: str, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class StepTimeout(SetupFlowError):
    """A background job exceeded its polling budget."""

    def __init__(self, message: str, job_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.job_id = job_id


class StepAborted(SetupFlowError):
    """The abort epoch advanced while a step was waiting."""


class PlanIntegrityError(SetupFlowError):
    """The phase plan is malformed and must never run."""


class StepNotFound(SetupFlowError, KeyError):
    """No step with the requested id exists in the registry."""

    def __str__(self) -> str:  # pragma: no cover - KeyError quotes its arg
        return Exception.__str__(self)
