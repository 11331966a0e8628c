"""Signal assistant configuration phase."""

from __future__ import annotations

import logging

from ..errors import RemoteError
from .base import StepContext, register_handler

logger = logging.getLogger(__name__)


@register_handler("signal-profile-extract")
async def profile_extract(ctx: StepContext) -> None:
    """Extract the business profile, then sync it into the assistant config."""
    result = await ctx.call(
        "signal-profile-extract", ctx.payload(projectId=ctx.site.project_id)
    )
    data = result.data
    if not data.get("extracted"):
        ctx.log(f"  └ {data.get('message') or 'Profile extraction queued'}")
        return

    ctx.log(f"  └ Extracted profile from {data.get('pagesAnalyzed', 0)} pages")
    try:
        sync = await ctx.call(
            "signal-profile-sync",
            ctx.payload(projectId=ctx.site.project_id, forceRefresh=True),
        )
    except RemoteError as e:
        logger.info(f"Profile sync for {ctx.site_id} deferred: {e}")
        ctx.log("  └ Profile sync will complete in background")
        return

    if sync.data.get("synced"):
        fields = sync.data.get("syncedFields") or []
        ctx.log(f"  └ Profile auto-populated: {', '.join(fields) or 'all fields'}")
        industry = sync.data.get("industry")
        if industry and industry != "other":
            ctx.log(f"  └ Detected industry: {industry}")


@register_handler("signal-knowledge-sync")
async def knowledge_sync(ctx: StepContext) -> None:
    result = await ctx.call(
        "signal-knowledge-sync",
        ctx.payload(projectId=ctx.site.project_id, forceRefresh=True),
    )
    data = result.data
    synced = int(data.get("synced") or 0)
    if synced <= 0:
        ctx.log(f"  └ {data.get('message') or 'Knowledge already synced'}")
        return

    ctx.log(f"  └ Created {synced} knowledge chunks")
    classified = int(data.get("classified") or 0)
    if classified > 0:
        ctx.log(f"  └ AI classified {classified} chunks by content type")
    breakdown = data.get("typeBreakdown") or {}
    types = [f"{name}: {count}" for name, count in breakdown.items() if name != "general"][:3]
    if types:
        ctx.log(f"  └ Types: {', '.join(types)}")


@register_handler("signal-faq-generate")
async def faq_generate(ctx: StepContext) -> None:
    result = await ctx.call(
        "signal-faq-generate", ctx.payload(projectId=ctx.site.project_id, count=12)
    )
    data = result.data
    generated = int(data.get("generated") or 0)
    if generated <= 0:
        ctx.log(f"  └ {data.get('message') or 'FAQs already generated'}")
        return

    ctx.log(f"  └ Generated {generated} FAQs")
    if data.get("autoApproved"):
        ctx.log(f"  └ Auto-approved {data['autoApproved']} high-confidence FAQs")
    if data.get("pendingReview"):
        ctx.log(f"  └ {data['pendingReview']} FAQs pending review")
