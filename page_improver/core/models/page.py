"""
Page and tier models.

PageRecord is loaded from the site's page index and is read-only to the
pipeline. TierDefinition entries form the static tier registry.
"""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class PageRecord(BaseModel):
    """One entry of the page index."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: str = Field(..., description="Page slug")
    title: str = Field(default="", description="Page title")
    path: str = Field(default="", description="Site path, e.g. /knowledge-base/people/jane-doe/")
    quality: Optional[float] = Field(None, description="Quality score 0-100")
    reader_importance: Optional[float] = Field(None, alias="readerImportance", description="Reader importance 0-100")
    ratings: Dict[str, Any] = Field(default_factory=dict, description="Frontmatter sub-ratings")
    last_edited: Optional[str] = Field(None, alias="lastEdited", description="ISO date of last edit")

    @property
    def objectivity(self) -> Optional[float]:
        value = self.ratings.get("objectivity")
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def is_person_or_org(self) -> bool:
        return "/people/" in self.path or "/organizations/" in self.path


class TierDefinition(BaseModel):
    """Static description of an improvement tier."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Tier key")
    label: str = Field(..., description="Human-readable name")
    phases: List[str] = Field(..., min_length=1, description="Ordered phase names")
    cost: str = Field(..., description="Estimated cost range")
    description: str = Field(default="", description="What the tier does")


class EditLogEntry(BaseModel):
    """One line of a page's edit history."""

    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., description="ISO date")
    tool: str = Field(..., description="Tool that made the edit, e.g. crux-improve")
    agency: str = Field(..., description="human, ai-directed or automated")
    requested_by: Optional[str] = Field(None, alias="requestedBy", description="Who asked for the edit")
    note: Optional[str] = Field(None, description="Free-text summary")
