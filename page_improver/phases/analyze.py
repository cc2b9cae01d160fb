"""
Analyze phase: assess the page and list topics to research.
"""

from ..agent.loop import run_agent
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.review import AnalysisResult
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import analyze_prompt


async def analyze_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    directions: str,
    options: PipelineOptions
) -> AnalysisResult:
    phase_logger.log("analyze", "Starting analysis")

    prompt = analyze_prompt(page, ctx.store.file_path(page), directions, content)
    raw = await run_agent(ctx.llm, prompt, AgentOptions(
        model=ctx.model_for(options.analysis_model),
        max_tokens=4000,
        label="analyze"
    ))

    analysis = parse_and_validate(
        raw,
        AnalysisResult,
        "analyze",
        lambda raw_text, error: AnalysisResult(raw=raw_text, error=error)
    )

    ctx.artifacts(page.id).write("analysis.json", analysis)
    phase_logger.log(
        "analyze",
        f"Complete ({len(analysis.research_needed)} research topics, {len(analysis.gaps)} gaps)"
    )
    return analysis
