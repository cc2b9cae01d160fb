"""
Gap-fill phase: fix the issues the review found.
"""

from ..agent.loop import run_agent
from ..content.transforms import extract_mdx, repair_frontmatter
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.review import ReviewResult
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import gap_fill_prompt


async def gap_fill_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    review: ReviewResult,
    options: PipelineOptions
) -> str:
    phase_logger.log("gap-fill", "Checking for remaining gaps")

    if not review.issues:
        phase_logger.log("gap-fill", "No gaps to fill")
        return content

    raw = await run_agent(ctx.llm, gap_fill_prompt(page, content, review.issues), AgentOptions(
        model=ctx.model_for(options.improve_model),
        max_tokens=ctx.config.LLM_MAX_TOKENS,
        label="gap-fill"
    ))

    fixed = extract_mdx(raw, content)
    if fixed is content:
        phase_logger.warn("gap-fill", "No MDX in response, keeping previous content")
    fixed = repair_frontmatter(fixed)

    ctx.artifacts(page.id).write("gap-filled.mdx", fixed)
    phase_logger.log("gap-fill", f"Complete ({len(review.issues)} issue(s) addressed)")
    return fixed
