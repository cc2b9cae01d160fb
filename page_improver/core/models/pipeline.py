"""
Pipeline request and result models.
"""

from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .adversarial import AdversarialLoopResult
from .base import PhaseResult
from .review import ReviewResult, TriageResult, ValidationResult


class PipelineOptions(BaseModel):
    """Options for one pipeline run."""

    tier: str = Field(default="standard", description="quick, standard, deep or triage")
    directions: str = Field(default="", description="Free-text instructions for the improve phase")
    apply: bool = Field(default=False, description="Overwrite the source file when done")
    grade: bool = Field(default=True, description="Run the grading command after apply")
    section_level: bool = Field(default=False, description="Substitute improve-sections for improve")
    fetch_sources: bool = Field(default=True, description="Fetch and verify research source URLs")

    # Per-phase model overrides
    analysis_model: Optional[str] = Field(None, description="Model for analyze")
    research_model: Optional[str] = Field(None, description="Model for research")
    improve_model: Optional[str] = Field(None, description="Model for improve and gap-fill")
    review_model: Optional[str] = Field(None, description="Model for review")
    adversarial_model: Optional[str] = Field(None, description="Model for adversarial review")

    max_adversarial_iterations: int = Field(default=2, ge=0, le=10, description="Refinement loop cap")

    @field_validator('tier')
    @classmethod
    def normalize_tier(cls, v):
        return (v or "").strip().lower()


class PipelineRunResult(PhaseResult):
    """Summary of a pipeline run, written to pipeline-results.json."""

    model_config = ConfigDict(use_enum_values=True)

    page_id: str = Field(..., alias="pageId")
    title: str = Field(default="")
    tier: str = Field(...)
    directions: str = Field(default="")
    duration: float = Field(default=0.0, ge=0.0, description="Seconds")
    phases: List[str] = Field(default_factory=list, description="Executed phases, in order")
    review: Optional[ReviewResult] = None
    validation: Optional[ValidationResult] = None
    triage: Optional[TriageResult] = None
    adversarial: Optional[AdversarialLoopResult] = None
    output_path: Optional[str] = Field(None, alias="outputPath")
    applied: bool = Field(default=False)
    grading_error: Optional[str] = Field(None, alias="gradingError")

    def summary(self) -> dict:
        """Compact form for pipeline-results.json."""
        data = {
            "pageId": self.page_id,
            "title": self.title,
            "tier": self.tier,
            "directions": self.directions,
            "duration": f"{self.duration:.1f}s",
            "phases": self.phases,
            "outputPath": self.output_path,
            "applied": self.applied,
        }
        if self.review is not None:
            data["review"] = self.review.to_json_dict()
        if self.validation is not None:
            data["validation"] = {
                "critical": [i.rule for i in self.validation.critical],
                "quality": [i.rule for i in self.validation.quality],
                "fixesApplied": self.validation.fixes_applied,
            }
        if self.triage is not None:
            data["triage"] = self.triage.to_json_dict()
        if self.adversarial is not None:
            data["adversarial"] = {
                "iterations": self.adversarial.iterations,
                "finalReview": (
                    self.adversarial.final_review.to_json_dict()
                    if self.adversarial.final_review else None
                ),
                "sources": len(self.adversarial.research.sources),
            }
        if self.grading_error:
            data["gradingError"] = self.grading_error
        return data
