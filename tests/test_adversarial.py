"""
Tests for adversarial review normalization, research merging and the
refinement loop.
"""

import json

import pytest

from page_improver.core.models.adversarial import AdversarialReviewResult, Gap, normalize_review
from page_improver.core.models.pipeline import PipelineOptions
from page_improver.core.models.research import ResearchResult, SourceCacheEntry, SourceRecord
from page_improver.core.models.review import AnalysisResult
from page_improver.phases.adversarial_loop import adversarial_loop_phase, build_gap_directions, merge_research
from page_improver.phases.adversarial_review import adversarial_review_phase, page_type

from .conftest import IMPROVED_MDX, JANE_DOE_MDX


def gap(kind, action, query=None, description="gap"):
    return Gap(kind=kind, description=description, action=action, query=query)


def review(gaps, needs=False, queries=None, assessment="Needs work"):
    return AdversarialReviewResult(
        gaps=gaps,
        needs_re_research=needs,
        re_research_queries=queries or [],
        overall_assessment=assessment
    )


def src(url, title="t"):
    return SourceRecord(topic="x", title=title, url=url, facts=["f"], relevance="r")


def cache(url, id_="SRC-1"):
    return SourceCacheEntry(id=id_, url=url, content="c")


def critic_json(queries):
    gaps = [
        {"type": "source-gap", "description": f"missing {q}", "reResearchQuery": q, "actionType": "re-research"}
        for q in queries
    ]
    gaps.append({"type": "redundancy", "description": "repeats itself", "actionType": "edit"})
    return json.dumps({
        "gaps": gaps,
        "needsReResearch": False,
        "reResearchQueries": [],
        "overallAssessment": "Thin on funding data.",
    })


def research_json(url):
    return json.dumps({"sources": [
        {"topic": "funding", "title": "New", "url": url, "facts": ["new fact"], "relevance": "high"}
    ], "summary": "more"})


# ── normalize_review ────────────────────────────────────────────────────────

def test_normalize_review_recomputes_derived_fields():
    """Test that derived fields follow the gap list, not the model's claims."""
    emitted = review([
        gap("source-gap", "re-research", query="funding 2024"),
        gap("source-gap", "re-research", query=None),
        gap("redundancy", "edit"),
        gap("speculation", "none"),
    ], needs=False, queries=["ignored"])

    normalized = normalize_review(emitted)

    assert normalized.needs_re_research is True
    assert normalized.re_research_queries == ["funding 2024"]
    assert len(normalized.gaps) == 4


def test_normalize_review_no_research_gaps():
    """Test that edit-only reviews never request re-research."""
    normalized = normalize_review(review([gap("redundancy", "edit")], needs=True, queries=["q"]))
    assert normalized.needs_re_research is False
    assert normalized.re_research_queries == []


def test_gap_aliases():
    """Test that gaps parse from the model's camelCase keys."""
    parsed = Gap.model_validate({"type": "fact-density", "description": "d", "actionType": "edit"})
    assert parsed.kind == "fact-density"
    assert parsed.action == "edit"
    assert parsed.query is None


# ── merge_research ──────────────────────────────────────────────────────────

def test_merge_research_dedupes_by_url():
    """Test that the first occurrence of a URL wins."""
    base = ResearchResult(sources=[src("https://a.org", "A1"), src("https://b.org")], summary="base")
    extra = ResearchResult(sources=[src("https://a.org", "A2"), src("https://c.org")], summary="extra")

    merged = merge_research(base, extra)

    assert merged.urls == ["https://a.org", "https://b.org", "https://c.org"]
    assert merged.sources[0].title == "A1"
    assert merged.summary == "base extra"


def test_merge_research_renumbers_cache():
    """Test that cache entries are merged by URL and renumbered."""
    base = ResearchResult(sources=[src("https://a.org")], source_cache=[cache("https://a.org", "SRC-1")])
    extra = ResearchResult(
        sources=[src("https://c.org")],
        source_cache=[cache("https://a.org", "SRC-1"), cache("https://c.org", "SRC-2")]
    )

    merged = merge_research(base, extra)

    assert [(e.id, e.url) for e in merged.source_cache] == [("SRC-1", "https://a.org"), ("SRC-2", "https://c.org")]


def test_merge_research_with_itself():
    """Test that a self-merge only concatenates the summaries."""
    base = ResearchResult(sources=[src("https://a.org"), src("https://b.org")], summary="s",
                          source_cache=[cache("https://a.org")])
    merged = merge_research(base, base)
    assert merged.urls == base.urls
    assert merged.summary == "s s"
    assert len(merged.source_cache) == 1


def test_build_gap_directions():
    """Test the directions block handed to the next synthesis pass."""
    text = build_gap_directions(review([
        gap("source-gap", "re-research", query="q", description="No funding figures"),
        gap("redundancy", "edit", description="Repeated intro"),
        gap("speculation", "none", description="Ignored"),
    ], assessment="Mostly fine"))

    assert text.startswith("## Adversarial Review Findings - Address These Gaps\n")
    assert "Overall: Mostly fine" in text
    assert "### Gaps to Fill with New Research\n- [source-gap] No funding figures" in text
    assert "### Gaps to Fix by Editing\n- [redundancy] Repeated intro" in text
    assert "Ignored" not in text
    assert text.endswith("Do not rewrite sections that are already good.")


# ── Phases ──────────────────────────────────────────────────────────────────

def test_page_type(store):
    """Test page type detection from the path."""
    assert page_type(store.find_page("jane-doe")) == "person"
    assert page_type(store.find_page("ai-safety")) == "concept"


async def test_adversarial_review_phase_normalizes(ctx, llm, store):
    """Test that the phase overrides the model's derived fields."""
    llm.script["adversarial-review"] = [critic_json(["funding 2024"])]

    result = await adversarial_review_phase(ctx, store.find_page("jane-doe"), JANE_DOE_MDX, PipelineOptions())

    assert result.needs_re_research is True
    assert result.re_research_queries == ["funding 2024"]


async def test_adversarial_review_unparseable(ctx, llm, store):
    """Test that garbage critic output degrades to no gaps."""
    llm.script["adversarial-review"] = ["not json at all"]

    result = await adversarial_review_phase(ctx, store.find_page("jane-doe"), JANE_DOE_MDX, PipelineOptions())

    assert result.degraded
    assert result.gaps == []
    assert result.needs_re_research is False


async def test_loop_stops_at_iteration_cap(ctx, llm, store):
    """Test that an always-unhappy critic stops after exactly the cap."""
    llm.script["adversarial-review"] = [critic_json([f"query {i}"]) for i in range(5)]
    llm.script["research-deep"] = [research_json(f"https://new{i}.org") for i in range(5)]
    llm.script["improve"] = [IMPROVED_MDX for _ in range(5)]
    base = ResearchResult(sources=[src("https://a.org")])

    result = await adversarial_loop_phase(
        ctx, store.find_page("jane-doe"), JANE_DOE_MDX, AnalysisResult(), base, "",
        PipelineOptions(max_adversarial_iterations=2)
    )

    assert result.iterations == 2
    assert llm.count("adversarial-review") == 3
    assert llm.count("research-deep") == 2
    assert llm.count("improve") == 2
    assert result.research.urls == ["https://a.org", "https://new0.org", "https://new1.org"]
    assert "Jane Doe works on alignment at" in result.content
    improve_prompt = [req for label, req in llm.calls if label == "improve"][0].messages[0]["content"]
    assert "Adversarial Review Findings" in improve_prompt


async def test_loop_stops_when_no_research_needed(ctx, llm, store):
    """Test that an edit-only critique ends the loop at once."""
    llm.script["adversarial-review"] = [critic_json([])]

    result = await adversarial_loop_phase(
        ctx, store.find_page("jane-doe"), JANE_DOE_MDX, AnalysisResult(), ResearchResult(sources=[]), "",
        PipelineOptions()
    )

    assert result.iterations == 0
    assert result.content == JANE_DOE_MDX
    assert llm.labels == ["adversarial-review"]


async def test_loop_keeps_last_good_draft_on_failure(ctx, llm, store):
    """Test that a failing iteration leaves the previous draft in place."""
    llm.script["adversarial-review"] = [critic_json(["q1"]), critic_json(["q2"])]
    llm.script["research-deep"] = [research_json("https://n1.org"), RuntimeError("search down")]
    llm.script["improve"] = [IMPROVED_MDX]

    result = await adversarial_loop_phase(
        ctx, store.find_page("jane-doe"), JANE_DOE_MDX, AnalysisResult(), ResearchResult(sources=[]), "",
        PipelineOptions(max_adversarial_iterations=3)
    )

    assert result.iterations == 1
    assert "Jane Doe works on alignment at" in result.content
    assert result.research.urls == ["https://n1.org"]


@pytest.mark.parametrize("cap", [0, 1])
async def test_loop_respects_small_caps(ctx, llm, store, cap):
    """Test caps of zero and one."""
    llm.script["adversarial-review"] = [critic_json(["q"]) for _ in range(3)]
    llm.script["research-deep"] = [research_json("https://n.org")]
    llm.script["improve"] = [IMPROVED_MDX]

    result = await adversarial_loop_phase(
        ctx, store.find_page("jane-doe"), JANE_DOE_MDX, AnalysisResult(), ResearchResult(sources=[]), "",
        PipelineOptions(max_adversarial_iterations=cap)
    )

    assert result.iterations == cap
    assert llm.count("adversarial-review") == cap + 1
