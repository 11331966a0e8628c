"""Execution of a single wizard step."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from .cancellation import CancellationToken
from .collaborators import Collaborator
from .config import WizardSettings
from .contracts import ErrorKind, StepDefinition, StepOutcome, StepStatus
from .errors import RemoteError, StepAborted, StepTimeout
from .handlers import Handler, SiteInfo, StepContext, resolve_handler
from .poller import JobPoller
from .state import RunState

logger = logging.getLogger(__name__)


class StepExecutor:
    """Run a step's handler and turn whatever happens into a :class:`StepOutcome`."""

    def __init__(
        self,
        state: RunState,
        collaborator: Collaborator,
        site: SiteInfo,
        settings: Optional[WizardSettings] = None,
        handlers: Optional[Dict[str, Handler]] = None,
    ) -> None:
        self._state = state
        self._collaborator = collaborator
        self._site = site
        self._settings = settings or WizardSettings()
        self._handlers = handlers
        self._poller = JobPoller(collaborator)

    async def execute(
        self,
        step: StepDefinition,
        token: CancellationToken,
        silent: bool = False,
        previous_status: StepStatus = StepStatus.PENDING,
    ) -> StepOutcome:
        """Execute ``step`` and wait out the minimum step duration.

        Never raises for step failures; the error kind tells the runner how
        to react.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        ctx = StepContext(
            step,
            self._state,
            self._collaborator,
            self._site,
            token,
            settings=self._settings,
            poller=self._poller,
            silent=silent,
            previous_status=previous_status,
        )
        handler = resolve_handler(step, self._handlers)

        try:
            await handler(ctx)
        except StepAborted:
            return StepOutcome(step_id=step.id, ok=False, kind=ErrorKind.ABORTED, stats=ctx.stats)
        except StepTimeout as e:
            logger.warning(f"Step {step.id} timed out: {e}")
            return self._failed(step, ctx, str(e), ErrorKind.TIMEOUT, token)
        except RemoteError as e:
            logger.warning(f"Step {step.id} failed: {e}")
            return self._failed(step, ctx, str(e), ErrorKind.REMOTE, token)
        except Exception as e:
            logger.exception(f"Unexpected error in step {step.id}")
            return self._failed(step, ctx, str(e) or type(e).__name__, ErrorKind.REMOTE, token)

        if token.cancelled:
            return StepOutcome(step_id=step.id, ok=False, kind=ErrorKind.ABORTED, stats=ctx.stats)

        elapsed = loop.time() - started
        floor = self._settings.min_step_duration
        if elapsed < floor and not await token.sleep(floor - elapsed):
            return StepOutcome(step_id=step.id, ok=False, kind=ErrorKind.ABORTED, stats=ctx.stats)
        return StepOutcome(step_id=step.id, ok=True, stats=ctx.stats)

    @staticmethod
    def _failed(
        step: StepDefinition,
        ctx: StepContext,
        message: str,
        kind: ErrorKind,
        token: CancellationToken,
    ) -> StepOutcome:
        if token.cancelled:
            kind = ErrorKind.ABORTED
        return StepOutcome(step_id=step.id, ok=False, error=message, kind=kind, stats=ctx.stats)
