"""Finalization phase: schema, recommendations and recurring automation."""

from __future__ import annotations

import logging

from ..errors import RemoteError
from .base import StepContext, register_handler

logger = logging.getLogger(__name__)


@register_handler("schema-generate")
async def schema_generate(ctx: StepContext) -> None:
    result = await ctx.call(
        "seo-schema-generate", ctx.payload(forceRefresh=True), method="GET"
    )
    with_schema = int(result.data.get("pagesWithSchema") or 0)
    ctx.set_stat("schema_generated", with_schema)
    ctx.log(f"  └ Found {with_schema} pages with schema markup")


@register_handler("metadata-optimize")
async def metadata_optimize(ctx: StepContext) -> None:
    ctx.log("  └ Metadata optimization included in Signal analysis")


@register_handler("predictive-ranking")
async def predictive_ranking(ctx: StepContext) -> None:
    ctx.log("  └ Predictive ranking available on-demand for pages")


@register_handler("opportunities")
async def opportunities(ctx: StepContext) -> None:
    result = await ctx.call("seo-opportunities-detect", ctx.payload(forceRefresh=True))
    found = len(result.data.get("opportunities") or [])
    ctx.add_stat("opportunities_detected", found)
    ctx.log(f"  └ Detected {found} quick wins")


@register_handler("ai-recommendations")
async def ai_recommendations(ctx: StepContext) -> None:
    result = await ctx.call(
        "seo-ai-analyze", ctx.payload(analysisType="full_audit", forceRefresh=True)
    )
    created = len(result.data.get("recommendations") or [])
    ctx.set_stat("recommendations_created", created)
    ctx.log(f"  └ Generated {created} Signal recommendations")


@register_handler("cwv-baseline")
async def cwv_baseline(ctx: StepContext) -> None:
    """Record a Core Web Vitals baseline for the homepage."""
    if not ctx.site.domain:
        ctx.log("  └ CWV will be measured on next scheduled run")
        return
    try:
        result = await ctx.call(
            "seo-cwv",
            ctx.payload(url=f"https://{ctx.site.domain}", device="mobile", forceRefresh=True),
        )
    except RemoteError as e:
        logger.info(f"CWV baseline for {ctx.site_id} deferred: {e}")
        ctx.log("  └ CWV will be measured on next scheduled run")
        return
    score = (result.data.get("result") or {}).get("performance_score", 0)
    ctx.log(f"  └ CWV baseline recorded (score: {score})")


@register_handler("schedule-setup")
async def schedule_setup(ctx: StepContext) -> None:
    try:
        await ctx.call(
            "seo-schedule",
            ctx.payload(schedule="weekly", enabled=True, notifications=True, modules=["all"]),
        )
    except RemoteError as e:
        logger.info(f"Schedule setup for {ctx.site_id} deferred: {e}")
        ctx.log("  └ Scheduling will be configured later")
        return
    ctx.log("  └ Automated schedules configured")


@register_handler("complete")
async def complete(ctx: StepContext) -> None:
    pass
