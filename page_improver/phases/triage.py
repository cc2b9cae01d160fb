"""
Triage phase.

A cheap news check: search the web and SCRY for developments since the
page was last edited, and let the fast model pick skip, quick, standard
or deep. Anything unparseable falls back to standard.
"""

import asyncio

from ..agent.loop import run_agent
from ..content.transforms import extract_last_edited, today_iso
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.review import TriageResponse, TriageResult, TriageTier
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..pipeline.tiers import TIER_COSTS
from ..utils.logging import phase_logger
from .prompts import page_preview, triage_prompt


TRIAGE_COST = "~$0.08"


def triage_fallback(raw: str, error: str) -> TriageResponse:
    return TriageResponse(
        recommended_tier=TriageTier.STANDARD,
        reason="Triage parsing failed, using default",
        new_developments=[],
        raw=raw,
        error=error
    )


async def _search_or_note(label: str, search) -> str:
    try:
        return await search
    except Exception as e:
        phase_logger.warn("triage", f"{label} search failed: {e}")
        return f"{label} search failed: {e}"


async def triage_phase(ctx: PipelineContext, page: PageRecord, content: str) -> TriageResult:
    last_edited = extract_last_edited(content)
    phase_logger.log("triage", f"Checking for news since {last_edited}: \"{page.title}\"")

    query = f"{page.title} developments news {last_edited} to {today_iso()}"
    web_results, scry_results = await asyncio.gather(
        _search_or_note("Web", ctx.tools.web_search(query)),
        _search_or_note("SCRY", ctx.tools.scry_search(page.title)),
    )

    raw = await run_agent(
        ctx.llm,
        triage_prompt(page, last_edited, page_preview(content), web_results, scry_results),
        AgentOptions(model=ctx.config.FAST_MODEL, max_tokens=1000, label="triage")
    )
    response = parse_and_validate(raw, TriageResponse, "triage", triage_fallback)
    if response.degraded:
        phase_logger.warn("triage", f"Triage result incomplete ({response.error}), using {response.recommended_tier}")

    tier = response.recommended_tier
    result = TriageResult(
        page_id=page.id,
        title=page.title,
        last_edited=last_edited,
        recommended_tier=tier,
        reason=response.reason,
        new_developments=response.new_developments,
        estimated_cost=TIER_COSTS.get(tier, ""),
        triage_cost=TRIAGE_COST,
        error=response.error
    )

    ctx.artifacts(page.id).write("triage.json", result)
    phase_logger.log("triage", f"Result: {tier}: {response.reason}")
    return result
