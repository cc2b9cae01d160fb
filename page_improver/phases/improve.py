"""
Improve phase: single-pass rewrite of the whole page.
"""

from typing import Optional

from ..agent.loop import run_agent
from ..content.transforms import (
    build_entity_lookup,
    build_objectivity_context,
    convert_slugs_to_numeric_ids,
    count_footnotes,
    entity_link_ids,
    extract_mdx,
    find_unsourced_biographical_claims,
    remove_quality_field,
    repair_frontmatter,
    strip_related_pages_sections,
    update_last_edited,
)
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.research import ResearchResult
from ..core.models.review import AnalysisResult
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import components_import_path, improve_prompt


MAX_BIOGRAPHICAL_WARNINGS = 5


def postprocess_improved(content: str, fallback: str, slug_to_id: dict, today: Optional[str] = None) -> str:
    """Turn a raw improve response into a page."""
    improved = extract_mdx(content, fallback)
    improved = update_last_edited(improved, today)
    improved = remove_quality_field(improved)
    improved = repair_frontmatter(improved)
    improved = strip_related_pages_sections(improved)
    return convert_slugs_to_numeric_ids(improved, slug_to_id)


async def improve_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    analysis: AnalysisResult,
    research: ResearchResult,
    directions: str,
    options: PipelineOptions,
    tier: str
) -> str:
    phase_logger.log("improve", "Starting improvements")

    objectivity_context = build_objectivity_context(page, analysis)

    phase_logger.log("improve", "Building entity lookup table...")
    entity_lookup = build_entity_lookup(content, ctx.store.entities(), ctx.store.entity_titles())
    phase_logger.log("improve", f"  Found {len(entity_lookup.splitlines())} relevant entities for lookup")

    prompt = improve_prompt(
        page=page,
        file_path=ctx.store.file_path(page),
        import_path=components_import_path(),
        directions=directions,
        analysis=analysis,
        research=research,
        objectivity_context=objectivity_context,
        content=content,
        entity_lookup=entity_lookup,
        tier=tier
    )
    raw = await run_agent(ctx.llm, prompt, AgentOptions(
        model=ctx.model_for(options.improve_model),
        max_tokens=ctx.config.LLM_MAX_TOKENS,
        label="improve"
    ))

    slug_to_id = ctx.store.slug_to_id()
    slug_links = sum(1 for entity_id in entity_link_ids(extract_mdx(raw, content)) if entity_id in slug_to_id)
    improved = postprocess_improved(raw, content, slug_to_id)
    if slug_links:
        phase_logger.log("improve", f"  Converted {slug_links} slug-based EntityLink ID(s) to E## format")

    ctx.artifacts(page.id).write("improved.mdx", improved)
    phase_logger.log("improve", "Complete")
    return improved


def warn_unverified_footnotes(improved: str, research: Optional[ResearchResult], tier: str) -> int:
    """On the quick tier, warn about footnotes that no research backs."""
    if tier != "quick" or (research is not None and research.sources):
        return 0
    footnotes = count_footnotes(improved)
    if footnotes:
        phase_logger.warn(
            "improve",
            f"{footnotes} footnote citations present without web research; "
            "citations are model-generated and should be verified"
        )
    return footnotes


def log_biographical_warnings(content: str, tier: str) -> int:
    """Log unsourced biographical claims for a person or organization page."""
    phase_logger.warn("improve", "PERSON/ORG PAGE: high hallucination risk. Verifying biographical claims...")
    findings = find_unsourced_biographical_claims(content)

    for finding in findings[:MAX_BIOGRAPHICAL_WARNINGS]:
        phase_logger.warn("improve", f"  Unsourced {finding['label']}: \"{finding['line'][:70]}...\"")
    if len(findings) > MAX_BIOGRAPHICAL_WARNINGS:
        phase_logger.warn(
            "improve",
            f"  ... and {len(findings) - MAX_BIOGRAPHICAL_WARNINGS} more unsourced biographical claims"
        )
    if findings:
        phase_logger.warn("improve", f"  TOTAL: {len(findings)} biographical claims without citations")
        if tier == "quick":
            phase_logger.log("improve", "  Consider using --tier standard to add research-backed citations")
    return len(findings)
