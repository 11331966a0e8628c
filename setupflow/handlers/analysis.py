"""Deep analysis phase. Every step here runs concurrently with its siblings."""

from __future__ import annotations

from ..constants import JOB_MAX_ATTEMPTS
from ..errors import RemoteError
from .base import StepContext, register_handler


async def _queue_job(ctx: StepContext, job_type: str, what: str) -> str:
    result = await ctx.call("seo-background-jobs", ctx.payload(jobType=job_type))
    if not result.job_id:
        raise RemoteError(f"Failed to queue {what} job", "seo-background-jobs")
    return result.job_id


@register_handler("gsc-indexing")
async def gsc_indexing(ctx: StepContext) -> None:
    job_id = await _queue_job(ctx, "gsc-indexing", "indexing")
    ctx.log(f"  └ Scanning ALL URLs from GSC (job {job_id[:8]})...")
    outcome = await ctx.run_job(job_id, "inspecting URLs", ctx.poll_options(JOB_MAX_ATTEMPTS))

    result = outcome.result
    orphans = int(result.get("orphanNotIndexed") or 0)
    not_indexed = int(result.get("notIndexed") or 0) + orphans
    ctx.log(
        f"  └ Inspected {result.get('urlsInspected', 0)} URLs "
        f"({result.get('totalUrlsKnown', 0)} total known)"
    )
    ctx.log(f"  └ {result.get('indexed', 0)} indexed, {not_indexed} not indexed")
    if orphans > 0:
        ctx.log(f"  └ Found {orphans} orphan URLs (in GSC but not tracked)")
    issues = result.get("issues") or []
    if issues:
        ctx.log(f"  └ {len(issues)} indexing issue categories detected")
        ctx.add_stat("issues_found", not_indexed)


@register_handler("pagespeed")
async def pagespeed(ctx: StepContext) -> None:
    job_id = await _queue_job(ctx, "pagespeed", "PageSpeed")
    ctx.log(f"  └ Analyzing Core Web Vitals (job {job_id[:8]})...")
    outcome = await ctx.run_job(job_id, "analyzing", ctx.poll_options(JOB_MAX_ATTEMPTS))

    result = outcome.result
    ctx.log(
        f"  └ Analyzed {result.get('pagesAnalyzed', 0)} pages, "
        f"avg score: {result.get('avgScore') or 'N/A'}"
    )
    poor = int(result.get("poorPerformance") or 0)
    if poor > 0:
        ctx.log(f"  └ {poor} pages need speed optimization")


@register_handler("topic-clusters")
async def topic_clusters(ctx: StepContext) -> None:
    result = await ctx.call("seo-topic-clusters", ctx.payload(forceRefresh=True))
    if result.job_id:
        ctx.log("  └ Topic clustering queued (runs in background)")
    else:
        ctx.log(f"  └ Created {len(result.data.get('clusters') or [])} topic clusters")


@register_handler("blog-brain")
async def blog_brain(ctx: StepContext) -> None:
    await ctx.call(
        "seo-ai-blog-brain", ctx.payload(action="recommend-topics", forceRefresh=True)
    )
    ctx.log("  └ Content style analysis complete")


@register_handler("cannibalization")
async def cannibalization(ctx: StepContext) -> None:
    result = await ctx.call("seo-cannibalization", ctx.payload(action="detect", forceRefresh=True))
    issues = len(result.data.get("issues") or [])
    if issues:
        ctx.add_stat("issues_found", issues)
        ctx.log(f"  └ Found {issues} cannibalization issues")
    else:
        ctx.log("  └ No cannibalization detected")


@register_handler("content-decay")
async def content_decay(ctx: StepContext) -> None:
    result = await ctx.call("seo-content-decay", ctx.payload(forceRefresh=True))
    decaying = len(result.data.get("decayingPages") or [])
    if decaying:
        ctx.add_stat("issues_found", decaying)
        ctx.log(f"  └ Found {decaying} pages with declining traffic")
    else:
        ctx.log("  └ No content decay detected")


@register_handler("content-gap")
async def content_gap(ctx: StepContext) -> None:
    result = await ctx.call(
        "seo-content-gap-analysis", ctx.payload(action="analyze", forceRefresh=True)
    )
    if result.job_id:
        ctx.log("  └ Content gap analysis queued (runs in background)")
        return
    gaps = len(result.data.get("gaps") or [])
    ctx.add_stat("opportunities_detected", gaps)
    ctx.log(f"  └ Found {gaps} content opportunities")


@register_handler("serp-features")
async def serp_features(ctx: StepContext) -> None:
    result = await ctx.call("seo-serp-features", ctx.payload(forceRefresh=True))
    if result.job_id:
        ctx.log("  └ SERP features analysis queued (runs in background)")
        return
    found = len(result.data.get("opportunities") or [])
    ctx.add_stat("opportunities_detected", found)
    ctx.log(f"  └ Found {found} SERP feature opportunities")


@register_handler("technical-audit")
async def technical_audit(ctx: StepContext) -> None:
    await ctx.call("seo-serp-analyze", ctx.payload(action="audit", forceRefresh=True))
    ctx.log("  └ Technical audit complete")


@register_handler("backlinks")
async def backlinks(ctx: StepContext) -> None:
    await ctx.call("seo-backlinks", ctx.payload(forceRefresh=True))
    ctx.log("  └ Backlink profile analyzed")


@register_handler("local-seo")
async def local_seo(ctx: StepContext) -> None:
    await ctx.call("seo-local-analyze", ctx.payload(action="audit", forceRefresh=True))
    ctx.log("  └ Local SEO signals checked")


@register_handler("competitors")
async def competitors(ctx: StepContext) -> None:
    await ctx.call("seo-competitor-analyze", ctx.payload(action="analyze", forceRefresh=True))
    ctx.log("  └ Competitor benchmarking complete")
