"""
Enrich phase.

Independent sub-steps applied to the improved page. A failing sub-step
is logged and leaves the content as it was.
"""

import re
from typing import Awaitable, Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..agent.loop import run_agent
from ..content.transforms import build_entity_lookup, linkify_bare_urls
from ..core.models.base import PhaseResult
from ..core.models.llm import AgentOptions
from ..core.models.page import PageRecord
from ..core.parsing import parse_and_validate
from ..pipeline.context import PipelineContext
from ..utils.logging import phase_logger
from .prompts import entity_link_prompt


NO_ENTITIES = "(no matching entities)"

# Regions where inserting a link would break markup or double-link
_SKIP_PATTERNS = (
    re.compile(r"\A---\n[\s\S]*?\n---"),
    re.compile(r"^(`{3,}|~{3,})[\s\S]*?^\1", re.MULTILINE),
    re.compile(r"<EntityLink\b[\s\S]*?</EntityLink>"),
    re.compile(r"\[[^\]\n]*\]\([^)\n]*\)"),
    re.compile(r"^#+ .*$", re.MULTILINE),
    re.compile(r"^(?:import|export) .*$", re.MULTILINE),
    re.compile(r"^\[\^[^\]]+\]:.*$", re.MULTILINE),
    re.compile(r"`[^`\n]*`"),
    re.compile(r"<[^>\n]+>"),
)


class EntityLinkReplacement(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    search_text: str = Field(..., min_length=1, alias="searchText")
    entity_id: str = Field(..., pattern=r"^E\d+$", alias="entityId")
    display_name: Optional[str] = Field(None, alias="displayName")


class EntityLinkResult(PhaseResult):
    replacements: List[EntityLinkReplacement] = Field(default_factory=list)


def skip_ranges(content: str) -> List[Tuple[int, int]]:
    ranges = []
    for pattern in _SKIP_PATTERNS:
        ranges.extend(m.span() for m in pattern.finditer(content))
    return sorted(ranges)


def _inside(position: int, length: int, ranges: List[Tuple[int, int]]) -> bool:
    end = position + length
    return any(start < end and position < stop for start, stop in ranges)


def apply_entity_links(content: str, replacements: List[EntityLinkReplacement], known_ids: set) -> Tuple[str, int]:
    """
    Wrap the first eligible occurrence of each search text in an EntityLink.

    Replacements naming an id outside ``known_ids`` are ignored.
    """
    applied = 0
    for replacement in replacements:
        if replacement.entity_id not in known_ids:
            continue

        ranges = skip_ranges(content)
        pattern = re.compile(r"(?<![\w-])" + re.escape(replacement.search_text) + r"(?![\w-])")
        for match in pattern.finditer(content):
            if _inside(match.start(), len(match.group(0)), ranges):
                continue
            label = replacement.display_name or match.group(0)
            link = f'<EntityLink id="{replacement.entity_id}">{label}</EntityLink>'
            content = content[:match.start()] + link + content[match.end():]
            applied += 1
            break

    return content, applied


async def insert_entity_links(ctx: PipelineContext, page: PageRecord, content: str) -> str:
    entities = ctx.store.entities()
    lookup = build_entity_lookup(content, entities, ctx.store.entity_titles())
    if not entities or lookup == NO_ENTITIES:
        phase_logger.log("enrich", "  No registry entities mentioned, skipping entity links")
        return content

    raw = await run_agent(ctx.llm, entity_link_prompt(content, lookup), AgentOptions(
        model=ctx.config.FAST_MODEL,
        max_tokens=2000,
        label="enrich:entity-links"
    ))
    result = parse_and_validate(
        raw,
        EntityLinkResult,
        "enrich",
        lambda raw_text, error: EntityLinkResult(raw=raw_text, error=error)
    )

    enriched, applied = apply_entity_links(content, result.replacements, set(entities))
    phase_logger.log("enrich", f"  Inserted {applied} EntityLink(s)")
    return enriched


async def linkify_urls(ctx: PipelineContext, page: PageRecord, content: str) -> str:
    linked = linkify_bare_urls(content)
    if linked != content:
        phase_logger.log("enrich", "  Converted bare URLs to links")
    return linked


EnrichStep = Callable[[PipelineContext, PageRecord, str], Awaitable[str]]

ENRICH_STEPS: List[Tuple[str, EnrichStep]] = [
    ("entity-links", insert_entity_links),
    ("bare-urls", linkify_urls),
]


async def enrich_phase(ctx: PipelineContext, page: PageRecord, content: str) -> str:
    phase_logger.log("enrich", "Starting enrichment")

    for name, step in ENRICH_STEPS:
        try:
            content = await step(ctx, page, content)
        except Exception as e:
            phase_logger.warn("enrich", f"  {name} failed, skipping: {e}")

    ctx.artifacts(page.id).write("enriched.mdx", content)
    phase_logger.log("enrich", "Complete")
    return content
