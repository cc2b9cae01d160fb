"""
Pipeline controller.

Resolves the page, its file and the tier before any model call, then
runs the tier's phases strictly in order. Each phase runs inside a
heartbeat and has its duration logged. Results of one run live on a
RunState owned by that run.
"""

import asyncio
import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from ..content.store import make_edit_log_entry
from ..core.models.adversarial import AdversarialLoopResult
from ..core.models.errors import ContentFileNotFoundError, PageNotFoundError
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions, PipelineRunResult
from ..core.models.research import ResearchResult
from ..core.models.review import AnalysisResult, ReviewResult, TriageResult, TriageTier, ValidationResult
from ..phases.adversarial_loop import adversarial_loop_phase
from ..phases.analyze import analyze_phase
from ..phases.enrich import enrich_phase
from ..phases.gap_fill import gap_fill_phase
from ..phases.improve import improve_phase, log_biographical_warnings, warn_unverified_footnotes
from ..phases.improve_sections import improve_sections_phase
from ..phases.prompts import directions_with
from ..phases.research import research_phase
from ..phases.review import review_phase
from ..phases.triage import triage_phase
from ..phases.validate import validate_phase
from ..utils.heartbeat import heartbeat
from ..utils.logging import phase_logger
from . import tiers
from .context import PipelineContext


logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Mutable state of one pipeline run."""
    page: PageRecord
    tier: str
    directions: str
    options: PipelineOptions
    original: str
    content: str
    analysis: Optional[AnalysisResult] = None
    research: Optional[ResearchResult] = None
    review: Optional[ReviewResult] = None
    validation: Optional[ValidationResult] = None
    adversarial: Optional[AdversarialLoopResult] = None
    triage: Optional[TriageResult] = None
    executed: List[str] = field(default_factory=list)

    @property
    def analysis_or_empty(self) -> AnalysisResult:
        return self.analysis or AnalysisResult()

    @property
    def research_or_empty(self) -> ResearchResult:
        return self.research or ResearchResult(sources=[])

    @property
    def review_or_empty(self) -> ReviewResult:
        return self.review or ReviewResult(valid=True, issues=[])


PhaseRunner = Callable[[PipelineContext, RunState], Awaitable[None]]


async def _analyze(ctx: PipelineContext, state: RunState):
    state.analysis = await analyze_phase(ctx, state.page, state.content, state.directions, state.options)


async def _research(ctx: PipelineContext, state: RunState):
    state.research = await research_phase(ctx, state.page, state.analysis_or_empty, state.options, deep=False)


async def _research_deep(ctx: PipelineContext, state: RunState):
    state.research = await research_phase(ctx, state.page, state.analysis_or_empty, state.options, deep=True)


async def _improve(ctx: PipelineContext, state: RunState):
    state.content = await improve_phase(
        ctx, state.page, state.content, state.analysis_or_empty, state.research_or_empty,
        state.directions, state.options, state.tier
    )
    _improve_warnings(state)


async def _improve_sections(ctx: PipelineContext, state: RunState):
    state.content = await improve_sections_phase(
        ctx, state.page, state.content, state.analysis_or_empty, state.research_or_empty,
        state.directions, state.options
    )
    _improve_warnings(state)


def _improve_warnings(state: RunState):
    warn_unverified_footnotes(state.content, state.research, state.tier)
    if state.page.is_person_or_org:
        log_biographical_warnings(state.content, state.tier)


async def _enrich(ctx: PipelineContext, state: RunState):
    state.content = await enrich_phase(ctx, state.page, state.content)


async def _validate(ctx: PipelineContext, state: RunState):
    state.validation = await validate_phase(ctx, state.page, state.content)
    state.content = state.validation.content
    if state.validation.has_critical:
        phase_logger.warn("validate", "Critical validation issues found - may need manual fixes")


async def _review(ctx: PipelineContext, state: RunState):
    state.review = await review_phase(ctx, state.page, state.content, state.options)


async def _adversarial_loop(ctx: PipelineContext, state: RunState):
    state.adversarial = await adversarial_loop_phase(
        ctx, state.page, state.content, state.analysis_or_empty, state.research_or_empty,
        state.directions, state.options, state.tier
    )
    state.content = state.adversarial.content
    state.research = state.adversarial.research


async def _gap_fill(ctx: PipelineContext, state: RunState):
    state.content = await gap_fill_phase(ctx, state.page, state.content, state.review_or_empty, state.options)


PHASE_RUNNERS: Dict[str, PhaseRunner] = {
    tiers.ANALYZE: _analyze,
    tiers.RESEARCH: _research,
    tiers.RESEARCH_DEEP: _research_deep,
    tiers.IMPROVE: _improve,
    tiers.IMPROVE_SECTIONS: _improve_sections,
    tiers.ENRICH: _enrich,
    tiers.VALIDATE: _validate,
    tiers.REVIEW: _review,
    tiers.ADVERSARIAL_LOOP: _adversarial_loop,
    tiers.GAP_FILL: _gap_fill,
}


def resolve_page(ctx: PipelineContext, page_id: str) -> PageRecord:
    """
    Raises:
        PageNotFoundError: If no page matches
        ContentFileNotFoundError: If the page's MDX file is missing
    """
    page = ctx.store.find_page(page_id)
    if page is None:
        raise PageNotFoundError(page_id)
    path = ctx.store.file_path(page)
    if not os.path.exists(path):
        raise ContentFileNotFoundError(page.id, path)
    return page


async def run_grading(ctx: PipelineContext, page_id: str) -> Optional[str]:
    """Run the grading command. Returns an error message, or None on success."""
    command = ctx.config.GRADE_COMMAND.format(page_id=page_id)
    logger.info(f"Running grading: {command}")
    try:
        await asyncio.to_thread(
            subprocess.run,
            shlex.split(command),
            cwd=ctx.config.PROJECT_ROOT,
            check=True,
            timeout=ctx.config.GRADE_TIMEOUT
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
        logger.error(f"Grading failed: {e}")
        return str(e)
    return None


async def run_pipeline(ctx: PipelineContext, page_id: str, options: PipelineOptions) -> PipelineRunResult:
    """
    Improve one page.

    Args:
        ctx: Pipeline context
        page_id: Page id, or a unique fragment of an id or title
        options: Tier, directions and run switches

    Returns:
        Run summary, also written to pipeline-results.json

    Raises:
        PageNotFoundError, ContentFileNotFoundError, UnknownTierError,
        AmbiguousPageError: Before any model call
    """
    tier = tiers.canonical_tier(options.tier)
    tiers.resolve_tier(tier)
    page = resolve_page(ctx, page_id)
    content = ctx.store.read_content(page)
    artifacts = ctx.artifacts(page.id)
    started = time.monotonic()

    state = RunState(
        page=page,
        tier=tier,
        directions=options.directions,
        options=options,
        original=content,
        content=content
    )

    if tier == tiers.TRIAGE:
        async with heartbeat(tiers.TRIAGE, ctx.config.PHASE_HEARTBEAT_INTERVAL):
            state.triage = await triage_phase(ctx, page, content)
        state.executed.append(tiers.TRIAGE)

        if state.triage.recommended_tier == TriageTier.SKIP.value:
            phase_logger.log("triage", f"SKIP: {state.triage.reason}")
            result = PipelineRunResult(
                page_id=page.id,
                title=page.title,
                tier="skip",
                directions=state.directions,
                duration=time.monotonic() - started,
                phases=list(state.executed),
                triage=state.triage
            )
            artifacts.write("pipeline-results.json", result.summary())
            return result

        state.tier = state.triage.recommended_tier
        if state.triage.new_developments:
            state.directions = directions_with(
                f"New developments to incorporate: {'; '.join(state.triage.new_developments)}",
                state.directions
            )
        phase_logger.log("triage", f"Auto-selected tier: {state.tier}")

    definition = tiers.resolve_tier(state.tier)
    phases = tiers.resolve_phases(state.tier, options.section_level)

    logger.info("=" * 60)
    logger.info(f"Improving: \"{page.title}\"")
    logger.info(f"Tier: {definition.label} ({definition.cost})")
    logger.info(f"Phases: {' -> '.join(phases)}")
    if state.directions:
        logger.info(f"Directions: {state.directions}")
    logger.info("=" * 60)

    for phase in phases:
        phase_started = time.monotonic()
        async with heartbeat(phase, ctx.config.PHASE_HEARTBEAT_INTERVAL):
            await PHASE_RUNNERS[phase](ctx, state)
        state.executed.append(phase)
        phase_logger.log_phase_complete(phase, time.monotonic() - phase_started)

    output_path = artifacts.write("final.mdx", state.content)

    applied = False
    grading_error = None
    if options.apply:
        file_path = ctx.store.write_content(page, state.content)
        applied = True
        logger.info(f"Changes applied to {file_path}")
        ctx.store.append_edit_log(page.id, make_edit_log_entry(state.tier, state.directions))
        if options.grade:
            grading_error = await run_grading(ctx, page.id)
    else:
        logger.info(f"Dry run; review the diff: diff \"{ctx.store.file_path(page)}\" \"{output_path}\"")

    result = PipelineRunResult(
        page_id=page.id,
        title=page.title,
        tier=state.tier,
        directions=state.directions,
        duration=time.monotonic() - started,
        phases=list(state.executed),
        review=state.review,
        validation=state.validation,
        triage=state.triage,
        adversarial=state.adversarial,
        output_path=output_path,
        applied=applied,
        grading_error=grading_error
    )
    artifacts.write("pipeline-results.json", result.summary())
    logger.info(f"Pipeline complete in {result.duration:.1f}s: {output_path}")
    return result
