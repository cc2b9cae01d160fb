"""
Analysis, review, validation and triage result models.
"""

from enum import Enum
from typing import Optional, List, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import PhaseResult


class AnalysisResult(PhaseResult):
    """Output of the analyze phase. Every field is optional."""

    current_state: Optional[str] = Field(None, alias="currentState")
    gaps: List[str] = Field(default_factory=list)
    research_needed: List[str] = Field(default_factory=list, alias="researchNeeded")
    improvements: List[str] = Field(default_factory=list)
    entity_links: List[str] = Field(default_factory=list, alias="entityLinks")
    citations: Any = Field(None)
    objectivity_issues: List[str] = Field(default_factory=list, alias="objectivityIssues")


class ReviewResult(PhaseResult):
    """Output of the review phase."""

    valid: bool = Field(..., description="Whether the page passes review")
    issues: List[str] = Field(..., description="Problems found")
    objectivity_issues: List[str] = Field(default_factory=list, alias="objectivityIssues")
    suggestions: List[str] = Field(default_factory=list)
    quality_score: Optional[float] = Field(None, ge=0, le=100, alias="qualityScore")


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    QUALITY = "quality"


class ValidationIssue(BaseModel):
    """One rule violation."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    rule: str = Field(..., description="Rule id")
    severity: IssueSeverity = Field(..., description="Bucket")
    count: int = Field(default=1, ge=1, description="Number of occurrences")
    output: str = Field(default="", description="First matches, for humans")


class ValidationResult(PhaseResult):
    """Output of the validate phase."""

    critical: List[ValidationIssue] = Field(default_factory=list)
    quality: List[ValidationIssue] = Field(default_factory=list)
    fixes_applied: List[str] = Field(default_factory=list, alias="fixesApplied")
    content: str = Field(default="", description="Content after auto-fixes")

    @property
    def has_critical(self) -> bool:
        return len(self.critical) > 0


class TriageTier(str, Enum):
    """Recommendation emitted by triage."""
    SKIP = "skip"
    QUICK = "quick"
    STANDARD = "standard"
    DEEP = "deep"


class TriageResult(PhaseResult):
    """Output of the triage phase."""

    model_config = ConfigDict(use_enum_values=True)

    page_id: str = Field(..., alias="pageId")
    title: str = Field(default="")
    last_edited: str = Field(default="unknown", alias="lastEdited")
    recommended_tier: TriageTier = Field(default=TriageTier.STANDARD, alias="recommendedTier")
    reason: str = Field(default="")
    new_developments: List[str] = Field(default_factory=list, alias="newDevelopments")
    estimated_cost: str = Field(default="", alias="estimatedCost")
    triage_cost: str = Field(default="~$0.08", alias="triageCost")


class TriageResponse(PhaseResult):
    """What the triage model is asked to return."""

    model_config = ConfigDict(use_enum_values=True)

    recommended_tier: TriageTier = Field(..., alias="recommendedTier")
    reason: str = Field(...)
    new_developments: List[str] = Field(..., alias="newDevelopments")

    @field_validator('recommended_tier', mode='before')
    @classmethod
    def accept_polish(cls, v):
        if isinstance(v, str) and v.strip().lower() == "polish":
            return TriageTier.QUICK.value
        return v.strip().lower() if isinstance(v, str) else v
