"""
Adversarial refinement loop.

critique -> re-research -> re-synthesize, bounded by
``max_adversarial_iterations``. The loop stops as soon as the critic
finds nothing a new search could fix. A failure inside an iteration ends
the loop with the last good draft.
"""

from typing import Dict, List

from ..core.models.adversarial import AdversarialLoopResult, AdversarialReviewResult, GapAction
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.research import ResearchResult, SourceCacheEntry, SourceRecord
from ..core.models.review import AnalysisResult
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .adversarial_review import adversarial_review_phase
from .improve import improve_phase
from .improve_sections import improve_sections_phase
from .prompts import directions_with
from .research import research_phase


def merge_research(base: ResearchResult, additional: ResearchResult) -> ResearchResult:
    """
    Append ``additional`` to ``base``, dropping sources whose URL is already present.

    The first occurrence of a URL wins. Cache entries for new URLs get
    fresh SRC ids after the existing ones. Summaries are joined with a
    space.
    """
    seen = set()
    sources: List[SourceRecord] = []
    for source in list(base.sources) + list(additional.sources):
        if source.url in seen:
            continue
        seen.add(source.url)
        sources.append(source)

    cache: Dict[str, SourceCacheEntry] = {}
    for entry in list(base.source_cache) + list(additional.source_cache):
        if entry.url not in cache:
            cache[entry.url] = entry
    renumbered = [
        entry.model_copy(update={"id": f"SRC-{i}"})
        for i, entry in enumerate(cache.values(), 1)
    ]

    summary = " ".join(s for s in (base.summary, additional.summary) if s)
    return ResearchResult(sources=sources, summary=summary or None, source_cache=renumbered)


def build_gap_directions(review: AdversarialReviewResult) -> str:
    """Turn a critique into extra directions for the next synthesis pass."""
    research_gaps = [g for g in review.gaps if g.action == GapAction.RE_RESEARCH.value]
    edit_gaps = [g for g in review.gaps if g.action == GapAction.EDIT.value]

    parts = [
        "## Adversarial Review Findings - Address These Gaps\n",
        f"Overall: {review.overall_assessment}\n",
    ]
    if research_gaps:
        parts.append("### Gaps to Fill with New Research")
        parts.extend(f"- [{g.kind}] {g.description}" for g in research_gaps)
        parts.append("")
    if edit_gaps:
        parts.append("### Gaps to Fix by Editing")
        parts.extend(f"- [{g.kind}] {g.description}" for g in edit_gaps)
        parts.append("")
    parts.append("Prioritize fixing these specific gaps. Do not rewrite sections that are already good.")

    return "\n".join(parts)


async def adversarial_loop_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    analysis: AnalysisResult,
    research: ResearchResult,
    directions: str,
    options: PipelineOptions,
    tier: str = "deep"
) -> AdversarialLoopResult:
    max_iterations = options.max_adversarial_iterations
    phase_logger.log("adversarial-loop", f"Starting (max {max_iterations} iteration(s))")

    current = content
    corpus = research
    review = None
    iterations = 0

    while True:
        try:
            review = await adversarial_review_phase(ctx, page, current, options)
        except Exception as e:
            phase_logger.warn("adversarial-loop", f"Review failed: {e}; keeping last good draft")
            break

        if not review.needs_re_research:
            phase_logger.log("adversarial-loop", "No re-research gaps, stopping")
            break
        if iterations >= max_iterations:
            phase_logger.log("adversarial-loop", f"Reached iteration cap ({max_iterations}), stopping")
            break

        iteration = iterations + 1
        phase_logger.log(
            "adversarial-loop",
            f"Iteration {iteration}: re-researching {len(review.re_research_queries)} query(ies)"
        )
        try:
            new_research = await research_phase(
                ctx, page, analysis, options,
                deep=True,
                topics=review.re_research_queries,
                snapshot=f"research-adversarial-{iteration}.json"
            )
            merged = merge_research(corpus, new_research)
            gap_directions = directions_with(build_gap_directions(review), directions)

            if options.section_level:
                draft = await improve_sections_phase(ctx, page, current, analysis, merged, gap_directions, options)
            else:
                draft = await improve_phase(ctx, page, current, analysis, merged, gap_directions, options, tier)
        except Exception as e:
            phase_logger.warn("adversarial-loop", f"Iteration {iteration} failed: {e}; keeping last good draft")
            break

        current = draft
        corpus = merged
        iterations = iteration

    result = AdversarialLoopResult(
        iterations=iterations,
        final_review=review,
        research=corpus,
        content=current
    )
    ctx.artifacts(page.id).write("adversarial-loop.json", {
        "iterations": iterations,
        "finalReview": review.to_json_dict() if review else None,
        "sources": len(corpus.sources),
    })
    phase_logger.log("adversarial-loop", f"Complete ({iterations} iteration(s), {len(corpus.sources)} sources)")
    return result
