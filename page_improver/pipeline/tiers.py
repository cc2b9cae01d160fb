"""
Tier registry.

A tier is an ordered list of phase names. ``triage`` is not a tier of
its own: it runs the triage phase and then the tier it recommends.
"""

from typing import Dict, List

from ..core.models.errors import UnknownTierError
from ..core.models.page import TierDefinition


ANALYZE = "analyze"
RESEARCH = "research"
RESEARCH_DEEP = "research-deep"
IMPROVE = "improve"
IMPROVE_SECTIONS = "improve-sections"
ENRICH = "enrich"
VALIDATE = "validate"
REVIEW = "review"
ADVERSARIAL_LOOP = "adversarial-loop"
GAP_FILL = "gap-fill"
TRIAGE = "triage"

PHASE_NAMES = frozenset({
    ANALYZE, RESEARCH, RESEARCH_DEEP, IMPROVE, IMPROVE_SECTIONS, ENRICH,
    VALIDATE, REVIEW, ADVERSARIAL_LOOP, GAP_FILL, TRIAGE,
})

TIERS: Dict[str, TierDefinition] = {
    "quick": TierDefinition(
        name="quick",
        label="Quick",
        phases=[ANALYZE, IMPROVE, VALIDATE],
        cost="$2-3",
        description="Single-pass improvement without research",
    ),
    "standard": TierDefinition(
        name="standard",
        label="Standard",
        phases=[ANALYZE, RESEARCH, IMPROVE, ENRICH, VALIDATE, REVIEW],
        cost="$5-8",
        description="Light research, improvement, enrichment, validation and review",
    ),
    "deep": TierDefinition(
        name="deep",
        label="Deep",
        phases=[ANALYZE, RESEARCH_DEEP, IMPROVE, ENRICH, VALIDATE, REVIEW, ADVERSARIAL_LOOP, GAP_FILL],
        cost="$10-15",
        description="Web and SCRY research, adversarial refinement and gap filling",
    ),
}

TRIAGE_TIER = TierDefinition(
    name=TRIAGE,
    label="Triage",
    phases=[TRIAGE],
    cost="~$0.08",
    description="News check that picks skip, quick, standard or deep",
)

TIER_ALIASES = {"polish": "quick"}

TIER_COSTS = {"skip": "$0", **{name: tier.cost for name, tier in TIERS.items()}}


def available_tiers() -> List[str]:
    return list(TIERS) + [TRIAGE]


def canonical_tier(name: str) -> str:
    key = (name or "").strip().lower()
    return TIER_ALIASES.get(key, key)


def resolve_tier(name: str) -> TierDefinition:
    """
    Look up a tier by name or alias.

    Raises:
        UnknownTierError: If the name is not a tier
    """
    key = canonical_tier(name)
    if key == TRIAGE:
        return TRIAGE_TIER
    if key not in TIERS:
        raise UnknownTierError(name, available_tiers())
    return TIERS[key]


def resolve_phases(tier: str, section_level: bool = False) -> List[str]:
    """Phase list for a tier, with improve-sections substituted when requested."""
    phases = list(resolve_tier(tier).phases)
    if section_level:
        phases = [IMPROVE_SECTIONS if phase == IMPROVE else phase for phase in phases]
    return phases
