"""
Adversarial review models.

The reviewer classifies gaps in a draft; the refinement loop uses the
re-research gaps to decide whether to fetch new evidence. The derived
fields of AdversarialReviewResult are never trusted as emitted by the
model: normalize_review() recomputes them from the gap list.
"""

from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from .base import PhaseResult
from .research import ResearchResult


class GapType(str, Enum):
    """Diagnostic check that produced a gap."""
    FACT_DENSITY = "fact-density"
    SPECULATION = "speculation"
    MISSING_STANDARD_DATA = "missing-standard-data"
    REDUNDANCY = "redundancy"
    SOURCE_GAP = "source-gap"


class GapAction(str, Enum):
    """What the loop should do about a gap."""
    RE_RESEARCH = "re-research"
    EDIT = "edit"
    NONE = "none"


class Gap(BaseModel):
    """A deficiency found by the adversarial reviewer."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, use_enum_values=True)

    kind: GapType = Field(..., alias="type")
    description: str = Field(..., min_length=1)
    query: Optional[str] = Field(None, alias="reResearchQuery")
    action: GapAction = Field(..., alias="actionType")

    @property
    def needs_research(self) -> bool:
        return self.action == GapAction.RE_RESEARCH.value and bool(self.query)


class AdversarialReviewResult(PhaseResult):
    """Output of the adversarial-review phase."""

    gaps: List[Gap] = Field(...)
    needs_re_research: bool = Field(..., alias="needsReResearch")
    re_research_queries: List[str] = Field(..., alias="reResearchQueries")
    overall_assessment: str = Field(..., alias="overallAssessment")

    @property
    def research_gaps(self) -> List[Gap]:
        return [gap for gap in self.gaps if gap.needs_research]

    @property
    def edit_gaps(self) -> List[Gap]:
        return [gap for gap in self.gaps if gap.action == GapAction.EDIT.value]


def normalize_review(review: AdversarialReviewResult) -> AdversarialReviewResult:
    """Return a copy whose derived fields agree with its gaps."""
    research_gaps = review.research_gaps
    return review.model_copy(update={
        "needs_re_research": len(research_gaps) > 0,
        "re_research_queries": [gap.query for gap in research_gaps],
    })


class AdversarialLoopResult(PhaseResult):
    """Output of the adversarial refinement loop."""

    iterations: int = Field(default=0, ge=0)
    final_review: Optional[AdversarialReviewResult] = Field(None, alias="finalReview")
    research: ResearchResult = Field(...)
    content: str = Field(default="")
