"""Step catalog and phase plan."""

from __future__ import annotations

from .catalog import build_default_plan, default_phases, default_steps
from .registry import PhasePlan, StepRegistry

__all__ = [
    "PhasePlan",
    "StepRegistry",
    "build_default_plan",
    "default_phases",
    "default_steps",
]
