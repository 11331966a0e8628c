"""AI training phase."""

from __future__ import annotations

from ..constants import TRAINING_MAX_ATTEMPTS
from ..contracts import BackgroundJobHandle, JobState, PollStatus, StepStatus
from ..errors import RemoteError, StepTimeout
from .base import StepContext, register_handler

_TRAINING_STATES = {
    "completed": JobState.COMPLETED,
    "failed": JobState.FAILED,
    "pending": JobState.QUEUED,
    "queued": JobState.QUEUED,
}


@register_handler("ai-train")
async def ai_train(ctx: StepContext) -> None:
    """Retrain the site's knowledge; a restart aborts any training in flight."""
    restart = ctx.previous_status in (StepStatus.RUNNING, StepStatus.ERROR)
    await ctx.call("seo-ai-train", ctx.payload(forceRefresh=True, abort=restart))
    ctx.log("  └ Signal training initiated...")

    async def training_status(job_id: str) -> BackgroundJobHandle:
        result = await ctx.collaborator.call(
            "seo-ai-knowledge", {"siteId": ctx.site_id}, method="GET"
        )
        if not result.ok:
            raise RemoteError(result.error or "Training status unavailable", "seo-ai-knowledge")
        knowledge = result.data.get("knowledge") or {}
        status = _TRAINING_STATES.get(str(knowledge.get("training_status")), JobState.RUNNING)
        return BackgroundJobHandle(
            job_id=job_id, status=status, error=knowledge.get("error_message")
        )

    options = ctx.poll_options(
        TRAINING_MAX_ATTEMPTS, interval=ctx.settings.training_poll_interval
    )
    job_id = f"training-{ctx.site_id}"
    outcome = await ctx.wait_for_job(job_id, "training", options, fetch=training_status)
    if outcome.status is PollStatus.FAILED:
        ctx.log(f"  └ Training failed: {outcome.error}")
        raise RemoteError(f"Signal training failed: {outcome.error}", "seo-ai-train")
    if outcome.status is PollStatus.TIMED_OUT:
        ctx.log("  └ Training still in progress")
        raise StepTimeout(
            f"Signal training did not finish after {outcome.attempts} status checks", job_id
        )
    ctx.log("  └ Signal training complete!")


@register_handler("ai-knowledge")
async def ai_knowledge(ctx: StepContext) -> None:
    result = await ctx.call(
        "seo-ai-knowledge", ctx.payload(refresh=True), method="GET"
    )
    if result.data.get("knowledge"):
        ctx.log("  └ Knowledge base loaded")
