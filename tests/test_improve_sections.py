"""
Tests for the section-level improve phase.
"""

import json

from page_improver.content.sections import split_into_sections
from page_improver.core.models.pipeline import PipelineOptions
from page_improver.core.models.research import ResearchResult, SourceCacheEntry
from page_improver.core.models.review import AnalysisResult
from page_improver.phases.improve_sections import decide_sections, improve_sections_phase


FILLER = " ".join(["The organization reported steady growth in research output and staff."] * 4)

ORG_MDX = f"""---
title: Example Org
---

## Funding History

{FILLER}

## Team

{FILLER}

## Short

Only a few words.

## References

{FILLER}
"""

CACHE = [
    SourceCacheEntry(id="SRC-1", url="https://a.org", title="Team page", content="Staff list"),
    SourceCacheEntry(id="SRC-2", url="https://b.org", title="Funding announcement", content="Grant of 5M"),
]


def test_decide_sections():
    """Test that short and terminal sections are skipped."""
    sections = split_into_sections(ORG_MDX).sections
    decisions = {d.section_id: d for d in decide_sections(sections, AnalysisResult(gaps=["funding history unclear"]))}

    assert decisions["funding-history"].rewrite
    assert decisions["funding-history"].reason == "mentioned in analysis"
    assert decisions["team"].reason == "substantial content"
    assert not decisions["short"].rewrite
    assert decisions["short"].reason.startswith("too short")
    assert not decisions["references"].rewrite


async def test_improve_sections_phase(ctx, llm, store, project):
    """Test rewriting, failure fallback, footnote renumbering and artifacts."""
    llm.script["improve-sections:funding-history"] = [json.dumps({
        "content": "## Funding History\n\nThe group received a grant of \\$5M.[^SRC-2]\n\n[^SRC-2]: [Grant](https://b.org)",
        "claimMap": [{"claim": "grant of $5M", "sourceId": "SRC-2"}],
        "unsourceableClaims": ["annual budget"],
    })]
    llm.script["improve-sections:team"] = ["not json"]

    result = await improve_sections_phase(
        ctx, store.find_page("jane-doe"), ORG_MDX, AnalysisResult(),
        ResearchResult(sources=[], source_cache=CACHE), "", PipelineOptions()
    )

    assert llm.labels == ["improve-sections:funding-history", "improve-sections:team"]
    funding_prompt = llm.calls[0][1].messages[0]["content"]
    assert funding_prompt.index("[SRC-2]") < funding_prompt.index("[SRC-1]")

    assert "The group received a grant of \\$5M.[^1]" in result
    assert result.rstrip().endswith("[^1]: [Grant](https://b.org)")
    assert "## Team\n\n" + FILLER in result
    assert "Only a few words." in result
    assert result.index("## Funding History") < result.index("## Team") < result.index("## References")

    run_dir = project / ".claude" / "temp" / "page-improver" / "jane-doe"
    claims = json.loads((run_dir / "section-claim-maps.json").read_text())
    assert claims[0]["sectionId"] == "funding-history"
    assert (run_dir / "unsourceable-claims.txt").read_text() == "[funding-history] annual budget"
    assert (run_dir / "improved.mdx").read_text() == result


async def test_improve_sections_without_headings(ctx, llm, store):
    """Test that a page with no sections is returned unchanged."""
    content = "---\ntitle: X\n---\nJust a paragraph.\n"
    result = await improve_sections_phase(
        ctx, store.find_page("jane-doe"), content, AnalysisResult(), ResearchResult(sources=[]), "",
        PipelineOptions()
    )
    assert result == content
    assert llm.calls == []
