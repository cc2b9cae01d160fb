"""
End-to-end tests for the pipeline controller with a scripted model.
"""

import json
import subprocess

import pytest

from page_improver.core.models.errors import (
    AmbiguousPageError,
    ContentFileNotFoundError,
    PageNotFoundError,
    UnknownTierError,
)
from page_improver.core.models.pipeline import PipelineOptions
from page_improver.pipeline.controller import run_grading, run_pipeline

from .conftest import IMPROVED_MDX, JANE_DOE_MDX


ANALYSIS = json.dumps({
    "currentState": "Thin biography",
    "gaps": ["No funding history"],
    "researchNeeded": ["Jane Doe publications"],
    "improvements": ["Add citations"],
})

RESEARCH = json.dumps({
    "sources": [{
        "topic": "publications",
        "title": "Jane Doe papers",
        "url": "https://lab.example.org/jane",
        "facts": ["Published on debate in 2021"],
        "relevance": "Primary source",
    }],
    "summary": "One profile page",
})

VALID_REVIEW = json.dumps({"valid": True, "issues": []})


def triage_json(tier, developments=None):
    return json.dumps({
        "recommendedTier": tier,
        "reason": "checked the news",
        "newDevelopments": developments or [],
    })


def jane_file(project):
    return project / "content" / "docs" / "knowledge-base" / "people" / "jane-doe.mdx"


def run_dir(project):
    return project / ".claude" / "temp" / "page-improver" / "jane-doe"


# ── Fatal inputs ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("page_id,tier,error", [
    ("no-such-page", "standard", PageNotFoundError),
    ("jane-doe", "extreme", UnknownTierError),
    ("ai-safety-research", "standard", ContentFileNotFoundError),
    ("safety", "standard", AmbiguousPageError),
])
async def test_fatal_inputs_fail_before_model_calls(ctx, llm, page_id, tier, error):
    """Test that bad pages, files and tiers raise before any model call."""
    with pytest.raises(error):
        await run_pipeline(ctx, page_id, PipelineOptions(tier=tier))
    assert llm.calls == []


# ── Tiers ───────────────────────────────────────────────────────────────────

async def test_quick_tier(ctx, llm, project, searches):
    """Test that quick runs analyze, improve and validate without research."""
    llm.script["improve"] = [IMPROVED_MDX]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="quick"))

    assert result.phases == ["analyze", "improve", "validate"]
    assert llm.labels == ["analyze", "improve"]
    assert searches == {"web": [], "scry": []}
    assert result.applied is False
    assert result.validation is not None
    assert jane_file(project).read_text() == JANE_DOE_MDX

    final = run_dir(project) / "final.mdx"
    assert result.output_path == str(final)
    assert 'id="E2"' in final.read_text()


async def test_polish_runs_as_quick(ctx, llm):
    """Test that the polish alias runs the quick tier."""
    llm.script["improve"] = [IMPROVED_MDX]
    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="polish"))
    assert result.tier == "quick"
    assert "research" not in llm.labels


async def test_standard_tier(ctx, llm, project):
    """Test the standard phase order and the run summary file."""
    llm.script = {
        "analyze": [ANALYSIS],
        "research": [RESEARCH],
        "improve": [IMPROVED_MDX],
        "review": [VALID_REVIEW],
    }

    result = await run_pipeline(ctx, "jane", PipelineOptions(tier="standard", directions="Add citations"))

    assert result.page_id == "jane-doe"
    assert result.phases == ["analyze", "research", "improve", "enrich", "validate", "review"]
    labels = llm.labels
    assert labels.index("analyze") < labels.index("research") < labels.index("improve") < labels.index("review")
    assert "research-deep" not in labels
    assert result.review.valid is True

    improve_prompt = [req for label, req in llm.calls if label == "improve"][0].messages[0]["content"]
    assert "Add citations" in improve_prompt
    assert "https://lab.example.org/jane" in improve_prompt

    summary = json.loads((run_dir(project) / "pipeline-results.json").read_text())
    assert summary["pageId"] == "jane-doe"
    assert summary["tier"] == "standard"
    assert summary["phases"] == result.phases
    assert summary["review"]["valid"] is True
    for snapshot in ("analysis.json", "research.json", "improved.mdx", "enriched.mdx", "review.json"):
        assert (run_dir(project) / snapshot).exists()


async def test_section_level(ctx, llm):
    """Test that section-level mode substitutes improve-sections."""
    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="quick", section_level=True))

    assert result.phases == ["analyze", "improve-sections", "validate"]
    assert "improve" not in llm.labels


async def test_deep_tier_with_gap_fill(ctx, llm, searches):
    """Test the deep tier through adversarial review and gap filling."""
    llm.script = {
        "analyze": [ANALYSIS],
        "research-deep": [RESEARCH],
        "improve": [IMPROVED_MDX],
        "review": [json.dumps({"valid": False, "issues": ["Background lacks dates"]})],
        "adversarial-review": [json.dumps({
            "gaps": [{"type": "redundancy", "description": "Repeats intro", "actionType": "edit"}],
            "needsReResearch": True,
            "reResearchQueries": ["ignored"],
            "overallAssessment": "Fine",
        })],
        "gap-fill": [IMPROVED_MDX.replace("labs.", "labs since 2019.")],
    }

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="deep"))

    assert result.phases == [
        "analyze", "research-deep", "improve", "enrich", "validate", "review", "adversarial-loop", "gap-fill"
    ]
    assert llm.count("adversarial-review") == 1
    assert llm.count("research-deep") == 1
    assert llm.count("gap-fill") == 1
    assert result.adversarial.iterations == 0
    assert result.adversarial.final_review.needs_re_research is False


async def test_gap_fill_noop_without_issues(ctx, llm):
    """Test that gap-fill makes no call when the review found nothing."""
    llm.script = {
        "analyze": [ANALYSIS],
        "research-deep": [RESEARCH],
        "improve": [IMPROVED_MDX],
        "review": [VALID_REVIEW],
        "adversarial-review": [json.dumps({
            "gaps": [], "needsReResearch": False, "reResearchQueries": [], "overallAssessment": "Good",
        })],
    }

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="deep"))

    assert result.phases[-1] == "gap-fill"
    assert llm.count("gap-fill") == 0


# ── Triage ──────────────────────────────────────────────────────────────────

async def test_triage_skip(ctx, llm, project, searches):
    """Test that a skip recommendation ends the run after triage."""
    llm.script["triage"] = [triage_json("skip")]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="triage", apply=True))

    assert result.tier == "skip"
    assert result.phases == ["triage"]
    assert llm.labels == ["triage"]
    assert len(searches["web"]) == 1
    assert searches["scry"] == [("Jane Doe", "mv_eaforum_posts")]
    assert jane_file(project).read_text() == JANE_DOE_MDX

    summary = json.loads((run_dir(project) / "pipeline-results.json").read_text())
    assert summary["tier"] == "skip"
    assert summary["triage"]["recommendedTier"] == "skip"


async def test_triage_selects_tier(ctx, llm):
    """Test that triage picks the tier and adds new developments to directions."""
    llm.script["triage"] = [triage_json("quick", ["New paper on debate", "Joined a new lab"])]
    llm.script["improve"] = [IMPROVED_MDX]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="triage", directions="Keep it short"))

    assert result.tier == "quick"
    assert result.phases == ["triage", "analyze", "improve", "validate"]
    assert result.directions == (
        "Keep it short\n\nNew developments to incorporate: New paper on debate; Joined a new lab"
    )
    improve_prompt = [req for label, req in llm.calls if label == "improve"][0].messages[0]["content"]
    assert "New paper on debate" in improve_prompt


async def test_triage_unparseable_defaults_to_standard(ctx, llm):
    """Test that garbage triage output falls back to the standard tier."""
    llm.script["triage"] = ["I think it needs work"]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="triage"))

    assert result.tier == "standard"
    assert result.triage.degraded
    assert result.phases[:2] == ["triage", "analyze"]


async def test_triage_partial_result_keeps_model_tier(ctx, llm, caplog):
    """Test that a schema-pruned triage keeps the tier the model chose and logs it."""
    llm.script["triage"] = [json.dumps({
        "recommendedTier": "quick",
        "reason": "minor news",
        "newDevelopments": "not a list",
    })]
    llm.script["improve"] = [IMPROVED_MDX]

    with caplog.at_level("WARNING", logger="page_improver.phase"):
        result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="triage"))

    assert result.tier == "quick"
    assert result.triage.degraded
    assert any("using quick" in record.getMessage() for record in caplog.records)
    assert not any("defaulting to standard" in record.getMessage() for record in caplog.records)


async def test_triage_survives_search_failure(ctx, llm, monkeypatch):
    """Test that a failing search is reported to the model, not raised."""
    async def broken(query):
        raise RuntimeError("linkup down")

    monkeypatch.setattr(ctx.tools, "_web_search", broken)
    llm.script["triage"] = [triage_json("skip")]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="triage"))

    assert result.tier == "skip"
    prompt = llm.calls[0][1].messages[0]["content"]
    assert "Web search failed: linkup down" in prompt


# ── Apply ───────────────────────────────────────────────────────────────────

async def test_apply_writes_file_and_edit_log(ctx, llm, project, store):
    """Test that apply overwrites the page and records the edit."""
    llm.script["improve"] = [IMPROVED_MDX]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="quick", apply=True, grade=False))

    assert result.applied is True
    written = jane_file(project).read_text()
    assert written == (run_dir(project) / "final.mdx").read_text()
    assert "Related Pages" not in written

    entries = store.read_edit_log("jane-doe")
    assert len(entries) == 1
    assert entries[0].note == "Improved (quick)"


async def test_apply_with_failed_grading(ctx, llm, monkeypatch):
    """Test that a failing grading command is reported, not raised."""
    def failing_run(*args, **kwargs):
        raise subprocess.CalledProcessError(2, args[0])

    monkeypatch.setattr(subprocess, "run", failing_run)
    llm.script["improve"] = [IMPROVED_MDX]

    result = await run_pipeline(ctx, "jane-doe", PipelineOptions(tier="quick", apply=True))

    assert result.applied is True
    assert result.grading_error is not None


async def test_run_grading_command(ctx, monkeypatch):
    """Test that the page id is substituted into the grading command."""
    seen = {}

    def fake_run(command, **kwargs):
        seen["command"] = command
        seen["cwd"] = kwargs["cwd"]
        return subprocess.CompletedProcess(command, 0)

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert await run_grading(ctx, "jane-doe") is None
    assert "--page" in seen["command"]
    assert seen["command"][seen["command"].index("--page") + 1] == "jane-doe"
    assert seen["cwd"] == ctx.config.PROJECT_ROOT
