"""Discovery phase: verify the site, crawl it and map its links."""

from __future__ import annotations

import logging

from ..constants import JOB_MAX_ATTEMPTS
from ..contracts import PollStatus, Severity
from ..errors import RemoteError, StepTimeout
from .base import StepContext, register_handler

logger = logging.getLogger(__name__)


@register_handler("connect")
async def connect(ctx: StepContext) -> None:
    result = await ctx.call("seo-sites-get", {"id": ctx.site_id}, method="GET")
    site = result.data.get("site")
    if not site:
        raise RemoteError("Site not found", "seo-sites-get")
    if not ctx.site.domain and site.get("domain"):
        ctx.site.domain = site["domain"]
    if not ctx.site.project_id and site.get("project_id"):
        ctx.site.project_id = site["project_id"]
    ctx.log(f"  └ Connected to {site.get('domain') or ctx.site.domain or ctx.site_id}")


@register_handler("crawl-sitemap")
async def crawl_sitemap(ctx: StepContext) -> None:
    result = await ctx.call("seo-crawl-sitemap", ctx.payload())
    pages_found = int(result.data.get("urlsFound") or result.data.get("pagesFound") or 0)
    ctx.set_stat("pages_discovered", pages_found)
    ctx.log(f"  └ Discovered {pages_found} pages from sitemap")
    pages_created = int(result.data.get("pagesCreated") or 0)
    if pages_created > 0:
        ctx.log(f"  └ Added {pages_created} new pages")


@register_handler("crawl-pages")
async def crawl_pages(ctx: StepContext) -> None:
    """Queue page content extraction; a failed job does not fail the step."""
    ctx.log("  └ Analyzing page content...")
    result = await ctx.call("seo-background-jobs", ctx.payload(jobType="metadata-extract"))
    job_id = result.job_id
    if not job_id:
        ctx.log("  └ Page content analysis will run in background")
        return

    ctx.log(f"  └ Processing pages (job {job_id})")
    outcome = await ctx.wait_for_job(job_id, "analyzing", ctx.poll_options(JOB_MAX_ATTEMPTS))
    if outcome.status is PollStatus.COMPLETED:
        ctx.log("  └ Page content analysis complete")
    elif outcome.status is PollStatus.FAILED:
        logger.warning(f"Content job {job_id} failed: {outcome.error}")
        ctx.log("  └ Content analysis failed, continuing...", Severity.WARNING)
    else:
        raise StepTimeout("Page content analysis timed out after 15 minutes", job_id)


@register_handler("internal-links")
async def internal_links(ctx: StepContext) -> None:
    result = await ctx.call("seo-internal-links", ctx.payload(crawlLinks=True))
    links_found = int(result.data.get("totalLinks") or 0)
    job_id = result.job_id
    if job_id:
        ctx.log(f"  └ Queued internal link analysis (job {job_id})")
        outcome = await ctx.wait_for_job(job_id, "analyzing", ctx.poll_options(JOB_MAX_ATTEMPTS))
        if outcome.status is PollStatus.COMPLETED:
            ctx.log("  └ Internal link analysis complete")
        elif outcome.status is PollStatus.FAILED:
            ctx.log(f"  └ Internal link analysis failed: {outcome.error}", Severity.WARNING)
        else:
            raise StepTimeout("Internal link analysis timed out after 15 minutes", job_id)
    ctx.log(f"  └ Mapped {links_found} internal links")
