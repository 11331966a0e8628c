"""Phase-weighted progress calculation."""

from __future__ import annotations

from .plan.registry import PhasePlan


class ProgressCalculator:
    """Map a position inside a phase onto global 0-100 progress."""

    def __init__(self, plan: PhasePlan) -> None:
        self._plan = plan

    def calc(self, phase_id: str, step_index: int, total_steps: int) -> int:
        """Return ``floor(start + index/total * width)`` clamped to the phase range.

        ``calc(phase, n, n)`` is exactly the phase's end, so the last step of
        a phase always lands on the boundary of the next one.
        """
        rng = self._plan.phase(phase_id).progress_range
        if total_steps <= 0:
            return rng.end
        index = max(0, min(step_index, total_steps))
        return rng.start + (index * rng.width) // total_steps

    def phase_end(self, phase_id: str) -> int:
        return self._plan.phase(phase_id).progress_range.end

    def phase_start(self, phase_id: str) -> int:
        return self._plan.phase(phase_id).progress_range.start
