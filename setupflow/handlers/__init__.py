"""Step handlers keyed by step id.

Importing this package registers every bespoke handler in :data:`HANDLERS`.
Steps without a bespoke handler fall back to :func:`generic_endpoint`.
"""

from . import analysis, data, discovery, finalization, signal, training  # noqa: F401
from .base import (
    HANDLERS,
    Handler,
    SiteInfo,
    StepContext,
    generic_endpoint,
    noop,
    register_handler,
    resolve_handler,
)

__all__ = [
    "HANDLERS",
    "Handler",
    "SiteInfo",
    "StepContext",
    "generic_endpoint",
    "noop",
    "register_handler",
    "resolve_handler",
]
