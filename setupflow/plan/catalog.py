"""Default Signal setup plan: six phases, thirty-six steps."""

from __future__ import annotations

from typing import List

from ..contracts import Phase, PhaseMode, ProgressRange, StepDefinition
from .registry import PhasePlan, StepRegistry


def _step(
    step_id: str,
    phase_id: str,
    title: str,
    description: str,
    endpoint: str | None = None,
    critical: bool = True,
    auto_completed_by: str | None = None,
) -> StepDefinition:
    return StepDefinition(
        id=step_id,
        phase_id=phase_id,
        title=title,
        description=description,
        endpoint=endpoint,
        critical=critical,
        auto_completed_by=auto_completed_by,
    )


DISCOVERY_STEPS = [
    _step("connect", "discovery", "Connecting to Site",
          "Verifying domain access and configuration", "seo-sites-get"),
    _step("crawl-sitemap", "discovery", "Crawling Sitemap",
          "Discovering all pages from sitemap.xml", "seo-crawl-sitemap"),
    _step("crawl-pages", "discovery", "Analyzing Page Content",
          "Extracting titles, descriptions, headings, and content", "seo-background-jobs"),
    _step("internal-links", "discovery", "Mapping Internal Links",
          "Building site architecture and link graph", "seo-internal-links"),
]

# gsc-queries and gsc-pages are covered by the single GSC sync call.
DATA_SYNC_STEPS = [
    _step("gsc-connect", "data-sync", "Google Search Console Sync",
          "Syncing queries, pages, and performance data", "seo-gsc-sync"),
    _step("gsc-queries", "data-sync", "Search Queries",
          "(Included in GSC sync)", "seo-gsc-sync", auto_completed_by="gsc-connect"),
    _step("gsc-pages", "data-sync", "Page Metrics",
          "(Included in GSC sync)", "seo-gsc-sync", auto_completed_by="gsc-connect"),
]

ANALYSIS_STEPS = [
    _step("gsc-indexing", "analysis", "Indexing Status Check",
          "Detecting 404s, 5xx errors, and indexing issues", "seo-background-jobs", False),
    _step("pagespeed", "analysis", "Core Web Vitals",
          "Measuring LCP, INP, CLS performance", "seo-background-jobs", False),
    _step("topic-clusters", "analysis", "Topic Cluster Mapping",
          "Signal organizing your content clusters", "seo-topic-clusters", False),
    _step("blog-brain", "analysis", "Content Style Training",
          "Signal learning your writing style", "seo-ai-blog-brain", False),
    _step("cannibalization", "analysis", "Keyword Cannibalization",
          "Detecting pages competing for same keywords", "seo-cannibalization", False),
    _step("content-decay", "analysis", "Content Decay Detection",
          "Finding pages losing traffic over time", "seo-content-decay", False),
    _step("content-gap", "analysis", "Content Gap Analysis",
          "Identifying missing topics and opportunities", "seo-content-gap-analysis", False),
    _step("serp-features", "analysis", "SERP Feature Opportunities",
          "Finding featured snippet and FAQ targets", "seo-serp-features", False),
    _step("technical-audit", "analysis", "Technical SEO Audit",
          "Checking robots, canonicals, redirects", "seo-serp-analyze", False),
    _step("backlinks", "analysis", "Backlink Analysis",
          "Mapping external links and authority", "seo-backlinks", False),
    _step("local-seo", "analysis", "Local SEO Check",
          "Analyzing local signals and citations", "seo-local-analyze", False),
    _step("competitors", "analysis", "Competitor Analysis",
          "Benchmarking against top competitors", "seo-competitor-analyze", False),
]

TRAINING_STEPS = [
    _step("ai-train", "training", "Training Signal",
          "Teaching Signal about your business and content", "seo-ai-train"),
    _step("ai-knowledge", "training", "Building Knowledge Base",
          "Signal learning your site structure", "seo-ai-knowledge", False),
]

SIGNAL_STEPS = [
    _step("signal-config-init", "signal", "Initializing Signal Config",
          "Creating AI assistant configuration", "signal-config", False),
    _step("signal-profile-extract", "signal", "Extracting Business Profile",
          "Learning brand, services, and tone from content", "signal-profile-extract", False),
    _step("signal-knowledge-sync", "signal", "Syncing Knowledge Base",
          "Building RAG embeddings from page content", "signal-knowledge-sync", False),
    _step("signal-faq-generate", "signal", "Generating FAQs",
          "Auto-generating common Q&A from content", "signal-faq-generate", False),
    _step("signal-test-chat", "signal", "Testing Chat Response",
          "Verifying Signal can answer questions", "signal-test", False),
]

FINALIZATION_STEPS = [
    _step("schema-generate", "finalization", "Generating Schema Markup",
          "Creating structured data for all page types", "seo-schema-generate", False),
    _step("metadata-optimize", "finalization", "Optimizing Metadata",
          "AI-powered title and description improvements", None, False),
    _step("predictive-ranking", "finalization", "Predictive Ranking Scores",
          "Calculating ranking potential for all pages", None, False),
    _step("opportunities", "finalization", "Detecting Quick Wins",
          "Finding high-impact, low-effort improvements", "seo-opportunities-detect", False),
    _step("ai-recommendations", "finalization", "AI Recommendations",
          "Generating prioritized action items", "seo-ai-analyze", False),
    _step("auto-optimize", "finalization", "Running Auto-Optimization",
          "Applying quick fixes and generating recommendations", "seo-auto-optimize", False),
    _step("keyword-tracking", "finalization", "Setting Up Keyword Tracking",
          "Importing top keywords from GSC for long-term tracking", "seo-keywords-import", False),
    _step("cwv-baseline", "finalization", "Recording CWV Baseline",
          "Measuring initial Core Web Vitals performance", "seo-cwv", False),
    _step("schedule-setup", "finalization", "Setting Up Automation",
          "Configuring recurring analysis schedules", "seo-schedule", False),
    _step("complete", "finalization", "Learning Complete!",
          "Signal AI is fully trained and ready", None, False),
]


def _phase(
    phase_id: str,
    title: str,
    steps: List[StepDefinition],
    start: int,
    end: int,
    banner: str,
    mode: PhaseMode = PhaseMode.SEQUENTIAL,
) -> Phase:
    return Phase(
        id=phase_id,
        title=title,
        mode=mode,
        step_ids=tuple(s.id for s in steps),
        progress_range=ProgressRange(start=start, end=end),
        banner=banner,
    )


def default_phases() -> List[Phase]:
    return [
        _phase("discovery", "Discovery", DISCOVERY_STEPS, 0, 15,
               "Step 1: Discovering your website..."),
        _phase("data-sync", "Data Integration", DATA_SYNC_STEPS, 15, 20,
               "Step 2: Connecting data sources..."),
        _phase("analysis", "Deep Analysis", ANALYSIS_STEPS, 20, 60,
               f"Step 3: Running {len(ANALYSIS_STEPS)} analysis tasks in parallel...",
               mode=PhaseMode.PARALLEL),
        _phase("training", "AI Training", TRAINING_STEPS, 60, 70,
               "Step 4: Training Signal AI on your business..."),
        _phase("signal", "Signal Setup", SIGNAL_STEPS, 70, 85,
               "Step 5: Configuring Signal AI assistant..."),
        _phase("finalization", "Finalization", FINALIZATION_STEPS, 85, 100,
               "Step 6: Finalizing recommendations..."),
    ]


def default_steps() -> List[StepDefinition]:
    return [
        *DISCOVERY_STEPS,
        *DATA_SYNC_STEPS,
        *ANALYSIS_STEPS,
        *TRAINING_STEPS,
        *SIGNAL_STEPS,
        *FINALIZATION_STEPS,
    ]


def build_default_plan() -> PhasePlan:
    """Compile the default plan; raises ``PlanIntegrityError`` if it is corrupt."""
    return PhasePlan(StepRegistry(default_steps()), default_phases())
