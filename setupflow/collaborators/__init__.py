"""Collaborators invoked by wizard steps."""

from __future__ import annotations

from typing import Optional

from ..config import CollaboratorConfig
from .base import Collaborator, parse_job
from .http import HttpCollaborator
from .inmemory import InMemoryCollaborator


def get_collaborator(
    config: Optional[CollaboratorConfig] = None, dry_run: bool = False
) -> Collaborator:
    """Return the collaborator for ``config``; ``dry_run`` answers every call locally."""
    if dry_run:
        return InMemoryCollaborator.dry_run()
    config = config or CollaboratorConfig()
    return HttpCollaborator(
        base_url=config.base_url,
        timeout=config.timeout,
        jobs_endpoint=config.jobs_endpoint,
        token=config.token,
    )


__all__ = [
    "Collaborator",
    "HttpCollaborator",
    "InMemoryCollaborator",
    "get_collaborator",
    "parse_job",
]
