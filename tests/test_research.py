"""
Tests for the research phase.
"""

import json

from page_improver.core.models.pipeline import PipelineOptions
from page_improver.core.models.review import AnalysisResult
from page_improver.phases.research import research_phase


RESEARCH = json.dumps({
    "sources": [{
        "topic": "publications",
        "title": "Jane Doe papers",
        "url": "https://lab.example.org/jane",
        "facts": ["Published on debate in 2021"],
    }],
    "summary": "One profile page",
})


async def test_research_without_topics_skips_model(ctx, llm, store):
    """Test that an analysis with nothing to research makes no model call."""
    result = await research_phase(ctx, store.find_page("jane-doe"), AnalysisResult(), PipelineOptions())

    assert llm.calls == []
    assert result.sources == []
    assert result.source_cache == []


async def test_research_offers_web_search_only(ctx, llm, store):
    """Test that standard research offers web search and deep research adds SCRY."""
    llm.script["research"] = [RESEARCH]
    llm.script["research-deep"] = [RESEARCH]
    analysis = AnalysisResult(research_needed=["Jane Doe publications"])
    page = store.find_page("jane-doe")
    options = PipelineOptions(fetch_sources=False)

    standard = await research_phase(ctx, page, analysis, options)
    await research_phase(ctx, page, analysis, options, deep=True)

    offered = {label: [tool.name for tool in request.tools] for label, request in llm.calls}
    assert offered["research"] == ["web_search"]
    assert offered["research-deep"] == ["scry_search", "web_search"]
    assert standard.urls == ["https://lab.example.org/jane"]
