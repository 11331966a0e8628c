"""Data integration phase: Google Search Console sync."""

from __future__ import annotations

from typing import Any, Dict

from ..constants import GSC_SYNC_MAX_ATTEMPTS
from ..contracts import Severity
from ..errors import StepTimeout
from .base import StepContext, register_handler


def _report_sync(ctx: StepContext, result: Dict[str, Any]) -> None:
    queries = int(result.get("queriesCount") or 0)
    pages = int(result.get("pagesCount") or 0)
    ctx.log(f"  └ GSC connected - synced {queries} queries, {pages} pages")

    sitemaps = int(result.get("sitemapsCount") or 0)
    if sitemaps > 0:
        ctx.log(f"  └ Synced {sitemaps} sitemaps status")
    keywords = int(result.get("keywordsUpserted") or 0)
    if keywords > 0:
        ctx.log(f"  └ Added {keywords} keywords to universe")
        ctx.set_stat("keywords_tracked", keywords)
    pages_created = int(result.get("pagesCreated") or 0)
    if pages_created > 0:
        ctx.log(f"  └ Discovered {pages_created} new pages from GSC")


@register_handler("gsc-connect", "gsc-queries", "gsc-pages")
async def gsc_sync(ctx: StepContext) -> None:
    """One sync covers queries and pages; the runner completes those steps."""
    response = await ctx.call("seo-gsc-sync", ctx.payload())
    data = response.data
    job_id = response.job_id

    if job_id:
        ctx.log(f"  └ GSC sync queued (job {job_id[:8]})...")
        try:
            outcome = await ctx.run_job(
                job_id, "syncing GSC data", ctx.poll_options(GSC_SYNC_MAX_ATTEMPTS)
            )
        except StepTimeout:
            raise StepTimeout("GSC sync timed out after 5 minutes", job_id) from None
        _report_sync(ctx, outcome.result)
    elif data.get("gscConnected"):
        _report_sync(ctx, data)
    elif data.get("error"):
        ctx.log(f"  └ GSC error: {data['error']}", Severity.WARNING)
    else:
        ctx.log("  └ GSC not connected for this site")
