"""
Research phase.

The model searches for sources on the topics the analysis asked for and
returns them as JSON. Each source URL is then fetched so synthesis can
cite verified text instead of the model's own paraphrase; the result is
the source cache, one SRC-N entry per source with a URL.
"""

from typing import List, Optional

from ..agent.loop import run_agent
from ..agent.tools import ToolName
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.research import (
    SOURCE_CONTENT_CAP,
    FetchStatus,
    FetchedSource,
    ResearchResult,
    SourceCacheEntry,
    SourceRecord,
)
from ..core.models.review import AnalysisResult
from ..core.parsing import parse_and_validate
from ..integrations.search.source_fetcher import FetchRequest
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import research_prompt


MIN_CONTENT_LENGTH = 50
EXCERPT_SEPARATOR = "\n---\n"


def build_source_cache(
    sources: List[SourceRecord],
    fetched: List[FetchedSource]
) -> List[SourceCacheEntry]:
    """
    Merge research sources with their fetched pages.

    Content preference: joined relevant excerpts, then the fetched text,
    then the research facts when the fetch was dead, paywalled, errored,
    missing or too short. Sources without a URL are skipped.
    """
    by_url = {item.url: item for item in fetched}
    entries: List[SourceCacheEntry] = []

    for source in sources:
        if not source.url:
            continue

        page = by_url.get(source.url)
        if page is not None and page.relevant_excerpts:
            content = EXCERPT_SEPARATOR.join(page.relevant_excerpts)[:SOURCE_CONTENT_CAP]
        elif page is not None and page.status == FetchStatus.OK.value and len(page.content) >= MIN_CONTENT_LENGTH:
            content = page.content[:SOURCE_CONTENT_CAP]
        else:
            content = "\n".join(source.facts)[:SOURCE_CONTENT_CAP]

        entries.append(SourceCacheEntry(
            id=f"SRC-{len(entries) + 1}",
            url=source.url,
            title=(page.title if page is not None and page.title else source.title),
            author=source.author,
            date=source.date,
            content=content,
            facts=list(source.facts)
        ))

    return entries


async def fetch_source_cache(ctx: PipelineContext, research: ResearchResult) -> ResearchResult:
    """Fetch every source URL and attach the source cache."""
    requests = [
        FetchRequest(url=source.url, query=f"{source.topic} {' '.join(source.facts)}".strip())
        for source in research.sources if source.url
    ]
    if not requests or ctx.fetcher is None:
        return research

    phase_logger.log("research", f"Fetching {len(requests)} source URL(s)")
    fetched = await ctx.fetcher.fetch_sources(requests)

    ok = sum(1 for item in fetched if item.status == FetchStatus.OK.value)
    phase_logger.log("research", f"Fetched {ok}/{len(fetched)} source(s) successfully")

    return research.model_copy(update={"source_cache": build_source_cache(research.sources, fetched)})


async def research_phase(
    ctx: PipelineContext,
    page: PageRecord,
    analysis: AnalysisResult,
    options: PipelineOptions,
    deep: bool = False,
    topics: Optional[List[str]] = None,
    snapshot: str = "research.json"
) -> ResearchResult:
    """
    Research the analysis topics, or ``topics`` when given.

    Standard research offers the model web search only; deep research
    adds SCRY forum search.
    """
    phase = "research-deep" if deep else "research"
    phase_logger.log(phase, "Starting research")

    topics = list(topics if topics is not None else analysis.research_needed)
    if not topics:
        phase_logger.log(phase, "No research topics identified, skipping")
        return ResearchResult(sources=[])

    tool_names = [ToolName.SCRY_SEARCH, ToolName.WEB_SEARCH] if deep else [ToolName.WEB_SEARCH]
    raw = await run_agent(
        ctx.llm,
        research_prompt(page, topics, deep),
        AgentOptions(
            model=ctx.model_for(options.research_model),
            max_tokens=8000,
            max_tool_turns=ctx.config.MAX_TOOL_TURNS,
            label=phase
        ),
        tools=ctx.tools,
        tool_names=tool_names
    )

    research = parse_and_validate(
        raw,
        ResearchResult,
        phase,
        lambda raw_text, error: ResearchResult(sources=[], raw=raw_text, error=error)
    )

    if options.fetch_sources and ctx.config.FETCH_SOURCES:
        research = await fetch_source_cache(ctx, research)

    ctx.artifacts(page.id).write(snapshot, research)
    phase_logger.log(
        phase,
        f"Complete ({len(research.sources)} sources found, {len(research.source_cache)} cached)"
    )
    return research
