"""Cooperative cancellation based on a monotonic abort epoch."""

from __future__ import annotations

import asyncio

from .errors import StepAborted

DEFAULT_TICK = 0.1


class AbortSignal:
    """Monotonic abort epoch owned by a single wizard instance.

    Incrementing the epoch tells every waiter holding a token from an older
    epoch to stop as soon as it next checks. In-flight calls are never killed.
    """

    def __init__(self) -> None:
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def abort(self) -> int:
        self._epoch += 1
        return self._epoch

    def token(self) -> "CancellationToken":
        return CancellationToken(self, self._epoch)


class CancellationToken:
    """Snapshot of an abort epoch passed into every suspension point."""

    __slots__ = ("_signal", "epoch")

    def __init__(self, signal: AbortSignal, epoch: int) -> None:
        self._signal = signal
        self.epoch = epoch

    @classmethod
    def detached(cls) -> "CancellationToken":
        """Token bound to a private signal; only cancelled by its own ``cancel``."""
        return AbortSignal().token()

    @property
    def cancelled(self) -> bool:
        return self._signal.epoch != self.epoch

    def cancel(self) -> None:
        if not self.cancelled:
            self._signal.abort()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise StepAborted(f"aborted (epoch {self.epoch} superseded)")

    async def sleep(self, seconds: float, tick: float = DEFAULT_TICK) -> bool:
        """Sleep in small increments; return ``False`` as soon as cancelled."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(0.0, seconds)
        while True:
            if self.cancelled:
                return False
            remaining = deadline - loop.time()
            if remaining <= 0:
                return True
            await asyncio.sleep(min(tick, remaining))

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"CancellationToken(epoch={self.epoch}, cancelled={self.cancelled})"
