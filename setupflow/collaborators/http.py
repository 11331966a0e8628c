"""HTTP collaborator backed by httpx."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..contracts import BackgroundJobHandle, CallResult
from ..errors import RemoteError
from .base import Collaborator, parse_job

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return f"HTTP {response.status_code}: {response.text[:200] or response.reason_phrase}"


class HttpCollaborator(Collaborator):
    """Invoke remote functions at ``{base_url}/{endpoint}``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        jobs_endpoint: str = "seo-background-jobs",
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.jobs_endpoint = jobs_endpoint
        self._token = token
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, headers=headers
            )
        return self._client

    async def connect(self) -> None:
        self._get_client()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def call(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> CallResult:
        client = self._get_client()
        url = f"/{endpoint.lstrip('/')}"
        try:
            if method.upper() == "GET":
                response = await client.get(url, params=payload or {})
            else:
                response = await client.request(method.upper(), url, json=payload or {})
        except httpx.HTTPError as e:
            logger.warning(f"Call to {endpoint} failed: {e}")
            return CallResult(ok=False, error=f"{endpoint}: {e}")

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"Call to {endpoint} returned {response.status_code}: {message}")
            return CallResult(ok=False, error=message, status_code=response.status_code)

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}
        return CallResult(ok=True, data=data, status_code=response.status_code)

    async def get_job_status(self, job_id: str) -> BackgroundJobHandle:
        result = await self.call(self.jobs_endpoint, {"jobId": job_id}, method="GET")
        if not result.ok:
            raise RemoteError(result.error or "Job status unavailable", self.jobs_endpoint)
        return parse_job(job_id, result.data)
