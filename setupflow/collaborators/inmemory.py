"""Scripted in-memory collaborator used by tests and dry runs."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple, Union

from ..contracts import BackgroundJobHandle, CallResult, JobState
from ..errors import RemoteError
from .base import Collaborator

logger = logging.getLogger(__name__)

Response = Union[CallResult, Dict[str, Any], Exception, Callable[[Dict[str, Any]], Any]]
JobStatus = Union[BackgroundJobHandle, JobState, str, Exception]


class InMemoryCollaborator(Collaborator):
    """Serve scripted responses and job status sequences.

    Responses registered for an endpoint are consumed in order; the last one
    is repeated once the queue is down to a single entry. Endpoints without a
    script answer with ``default``.
    """

    def __init__(self, default: Optional[Dict[str, Any]] = None) -> None:
        self.default = default if default is not None else {"success": True}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.status_requests: List[str] = []
        self._responses: Dict[str, Deque[Response]] = defaultdict(deque)
        self._jobs: Dict[str, Deque[JobStatus]] = {}

    @classmethod
    def dry_run(cls, site_id: str = "dry-run", domain: Optional[str] = None) -> "InMemoryCollaborator":
        """Collaborator under which every default step succeeds without side effects."""
        collaborator = cls()
        collaborator.respond(
            "seo-sites-get", {"site": {"id": site_id, "domain": domain or "example.com"}}
        )
        collaborator.respond("seo-ai-knowledge", {"knowledge": {"training_status": "completed"}})
        collaborator.respond("seo-background-jobs", {"job": {"id": "dry-run-job"}})
        return collaborator

    def respond(self, endpoint: str, *responses: Response) -> "InMemoryCollaborator":
        """Script the responses returned for ``endpoint``."""
        self._responses[endpoint].extend(responses)
        return self

    def add_job(self, job_id: str, statuses: Iterable[JobStatus]) -> "InMemoryCollaborator":
        """Script the status sequence reported for ``job_id``."""
        self._jobs[job_id] = deque(statuses)
        return self

    def calls_to(self, endpoint: str) -> List[Dict[str, Any]]:
        return [payload for name, _, payload in self.calls if name == endpoint]

    def _next(self, queue: Deque[Any]) -> Any:
        return queue.popleft() if len(queue) > 1 else queue[0]

    async def call(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> CallResult:
        payload = dict(payload or {})
        self.calls.append((endpoint, method.upper(), payload))
        logger.debug(f"{method.upper()} {endpoint} {payload}")

        queue = self._responses.get(endpoint)
        response: Response = self._next(queue) if queue else dict(self.default)
        if callable(response) and not isinstance(response, Exception):
            response = response(payload)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, CallResult):
            return response
        return CallResult(ok=True, data=dict(response), status_code=200)

    async def get_job_status(self, job_id: str) -> BackgroundJobHandle:
        self.status_requests.append(job_id)
        queue = self._jobs.get(job_id)
        if not queue:
            return BackgroundJobHandle(job_id=job_id, status=JobState.COMPLETED)

        status = self._next(queue)
        if isinstance(status, Exception):
            raise status
        if isinstance(status, BackgroundJobHandle):
            return status
        try:
            return BackgroundJobHandle(job_id=job_id, status=JobState(status))
        except ValueError:
            raise RemoteError(f"Unknown job status {status!r}") from None
