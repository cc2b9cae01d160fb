"""
Adversarial review phase.

A separate reviewer model runs five diagnostic checks over the draft
(fact density, speculation, missing standard data, redundancy, source
gaps) and classifies each gap as re-research, edit or advisory. The
result is always normalized so its derived fields follow the gap list.
"""

from collections import Counter
from typing import Dict, List

from ..agent.loop import run_agent
from ..core.models.adversarial import AdversarialReviewResult, normalize_review
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import adversarial_review_prompt


PAGE_TYPE_STANDARD_DATA: Dict[str, List[str]] = {
    "person": [
        "birth year or estimated age",
        "institutional affiliation",
        "key publications or positions",
        "educational background",
    ],
    "organization": [
        "founding year",
        "funding sources or budget",
        "staff size or key personnel",
        "primary mission statement",
    ],
    "incident": [
        "date and timeline of events",
        "actors involved",
        "community reception metrics (upvotes, comments)",
        "resolution or outcome",
    ],
    "concept": [
        "formal definition with citation",
        "key proponents",
        "examples or applications",
        "criticisms or limitations",
    ],
    "research": [
        "primary finding with sample size or confidence interval",
        "authors and institution",
        "replication status",
        "key limitation",
    ],
}


def page_type(page: PageRecord) -> str:
    path = page.path.lower()
    if "/people/" in path:
        return "person"
    if "/organizations/" in path:
        return "organization"
    if "/incidents/" in path or "/events/" in path:
        return "incident"
    if "/research/" in path or "/papers/" in path:
        return "research"
    return "concept"


def page_type_hint(page: PageRecord) -> str:
    return ", ".join(PAGE_TYPE_STANDARD_DATA[page_type(page)])


def adversarial_fallback(raw: str, error: str) -> AdversarialReviewResult:
    return AdversarialReviewResult(
        gaps=[],
        needs_re_research=False,
        re_research_queries=[],
        overall_assessment="Could not parse adversarial review output.",
        raw=raw,
        error=error
    )


async def adversarial_review_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    options: PipelineOptions,
    snapshot: str = "adversarial-review.json"
) -> AdversarialReviewResult:
    phase_logger.log("adversarial-review", "Starting adversarial review")

    raw = await run_agent(
        ctx.llm,
        adversarial_review_prompt(page, content, page_type_hint(page)),
        AgentOptions(
            model=ctx.model_for(options.adversarial_model),
            max_tokens=6000,
            label="adversarial-review"
        )
    )
    review = normalize_review(parse_and_validate(
        raw, AdversarialReviewResult, "adversarial-review", adversarial_fallback
    ))

    by_type = Counter(gap.kind for gap in review.gaps)
    summary = ", ".join(f"{count} {kind}" for kind, count in by_type.items())
    phase_logger.log("adversarial-review", f"Complete: {len(review.gaps)} gaps found ({summary or 'none'})")
    phase_logger.log("adversarial-review", f"Needs re-research: {review.needs_re_research}")
    if review.overall_assessment:
        phase_logger.log("adversarial-review", f"Assessment: {review.overall_assessment}")

    ctx.artifacts(page.id).write(snapshot, review)
    return review
