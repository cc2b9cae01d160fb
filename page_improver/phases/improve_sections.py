"""
Section-level improve phase.

Substitutes for the single-pass improve phase when section-level mode is
on. The page is split on ``##`` headings, each substantial section is
rewritten on its own against the cached sources most relevant to it, and
the page is reassembled with footnotes renumbered into one ``[^N]``
sequence. A section whose rewrite fails keeps its original text.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from pydantic import Field

from ..agent.loop import run_agent
from ..content.sections import (
    ParsedSection,
    SplitPage,
    filter_sources_for_section,
    reassemble_sections,
    renumber_footnotes,
    split_into_sections,
)
from ..content.transforms import update_last_edited
from ..core.models.base import PhaseResult
from ..core.models.errors import PhaseError
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.models.pipeline import PipelineOptions
from ..core.models.research import ResearchResult, SourceCacheEntry
from ..core.models.review import AnalysisResult
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import section_rewrite_prompt


MIN_SECTION_WORDS = 30

SKIP_SECTION_HEADINGS = frozenset({
    'sources',
    'references',
    'further-reading',
    'see-also',
    'related-pages',
    'related-content',
    'external-links',
    'key-links',
})


class SectionRewriteResult(PhaseResult):
    """What the model returns for one section."""

    content: str = Field(..., min_length=1)
    claim_map: List[Dict[str, Any]] = Field(default_factory=list, alias="claimMap")
    unsourceable_claims: List[str] = Field(default_factory=list, alias="unsourceableClaims")


@dataclass
class SectionDecision:
    section_id: str
    rewrite: bool
    reason: str


def decide_sections(sections: List[ParsedSection], analysis: AnalysisResult) -> List[SectionDecision]:
    """Pick the sections worth rewriting."""
    improvement_text = " ".join(analysis.improvements).lower()
    gaps_text = " ".join(analysis.gaps).lower()

    decisions = []
    for section in sections:
        if section.id in SKIP_SECTION_HEADINGS:
            decisions.append(SectionDecision(section.id, False, "terminal section (citations/navigation)"))
            continue

        words = section.word_count
        if words < MIN_SECTION_WORDS:
            decisions.append(SectionDecision(section.id, False, f"too short ({words} words)"))
            continue

        keywords = section.heading.lstrip("#").strip().lower()
        mentioned = keywords in improvement_text or keywords in gaps_text
        decisions.append(SectionDecision(
            section.id, True, "mentioned in analysis" if mentioned else "substantial content"
        ))
    return decisions


async def rewrite_section(
    ctx: PipelineContext,
    page: PageRecord,
    section: ParsedSection,
    sources: List[SourceCacheEntry],
    directions: str,
    options: PipelineOptions
) -> SectionRewriteResult:
    """
    Rewrite one section.

    Raises:
        PhaseError: If the response has no usable section content
    """
    raw = await run_agent(
        ctx.llm,
        section_rewrite_prompt(page, section.id, section.content, sources, directions),
        AgentOptions(
            model=ctx.model_for(options.improve_model),
            max_tokens=8000,
            label=f"improve-sections:{section.id}"
        )
    )
    result = parse_and_validate(
        raw,
        SectionRewriteResult,
        "improve-sections",
        lambda raw_text, error: SectionRewriteResult(content=section.content, raw=raw_text, error=error)
    )
    if result.degraded:
        raise PhaseError(result.error, phase="improve-sections")
    return result


async def improve_sections_phase(
    ctx: PipelineContext,
    page: PageRecord,
    content: str,
    analysis: AnalysisResult,
    research: ResearchResult,
    directions: str,
    options: PipelineOptions
) -> str:
    phase_logger.log("improve-sections", "Starting section-level improvement")

    split = split_into_sections(content)
    if not split.sections:
        phase_logger.log("improve-sections", "No ## sections found, returning content unchanged")
        return content
    phase_logger.log("improve-sections", f"Found {len(split.sections)} section(s)")

    cache = research.source_cache
    if cache:
        phase_logger.log("improve-sections", f"Using {len(cache)} grounded source(s) from cache")
    elif research.sources:
        phase_logger.log(
            "improve-sections",
            f"Research has {len(research.sources)} entries but no fetched source cache"
        )

    decisions = decide_sections(split.sections, analysis)
    phase_logger.log(
        "improve-sections",
        f"Rewriting {sum(1 for d in decisions if d.rewrite)}/{len(decisions)} section(s)"
    )

    rewritten: List[ParsedSection] = []
    claim_maps: List[Dict[str, Any]] = []
    unsourceable: List[str] = []

    for section, decision in zip(split.sections, decisions):
        if not decision.rewrite:
            phase_logger.log("improve-sections", f"  Skip {section.id}: {decision.reason}")
            rewritten.append(section)
            continue

        phase_logger.log("improve-sections", f"  Rewrite {section.id}: {decision.reason}")
        try:
            result = await rewrite_section(
                ctx, page, section, filter_sources_for_section(section, cache), directions, options
            )
        except Exception as e:
            phase_logger.warn("improve-sections", f"  Failed to rewrite {section.id}: {e}; keeping original")
            rewritten.append(section)
            continue

        rewritten.append(ParsedSection(id=section.id, heading=section.heading, content=result.content))
        if result.claim_map:
            claim_maps.append({"sectionId": section.id, "claims": result.claim_map})
        unsourceable.extend(f"[{section.id}] {claim}" for claim in result.unsourceable_claims)

    reassembled = reassemble_sections(SplitPage(
        frontmatter=split.frontmatter,
        preamble=split.preamble,
        sections=rewritten
    ))
    final = update_last_edited(renumber_footnotes(reassembled))

    artifacts = ctx.artifacts(page.id)
    if claim_maps:
        total = sum(len(entry["claims"]) for entry in claim_maps)
        phase_logger.log("improve-sections", f"Claim map: {total} claim(s) across {len(claim_maps)} section(s)")
        artifacts.write("section-claim-maps.json", claim_maps)
    if unsourceable:
        phase_logger.log("improve-sections", f"Unsourceable claims: {len(unsourceable)}")
        artifacts.write("unsourceable-claims.txt", "\n".join(unsourceable))

    artifacts.write("improved.mdx", final)
    phase_logger.log("improve-sections", "Complete")
    return final
