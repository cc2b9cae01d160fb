"""
Review phase: model review of the improved page against wiki conventions.
"""

from ..agent.loop import run_agent
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.review import ReviewResult
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import review_prompt


def review_fallback(raw: str, error: str) -> ReviewResult:
    """Unparseable review output must not hold up the run."""
    return ReviewResult(valid=True, issues=[], raw=raw, error=error)


async def review_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    options: PipelineOptions
) -> ReviewResult:
    phase_logger.log("review", "Starting review")

    raw = await run_agent(ctx.llm, review_prompt(page, content), AgentOptions(
        model=ctx.model_for(options.review_model),
        max_tokens=4000,
        label="review"
    ))
    review = parse_and_validate(raw, ReviewResult, "review", review_fallback)

    ctx.artifacts(page.id).write("review.json", review)
    phase_logger.log("review", f"Complete (valid: {review.valid}, issues: {len(review.issues)})")
    return review
