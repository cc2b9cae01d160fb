"""
Research-related data models.

Sources come back from the research phase, fetched pages come back from
the source fetcher, and cache entries are the verified text the
synthesis phases cite as SRC-N.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from .base import PhaseResult


SOURCE_CONTENT_CAP = 5000


class FetchStatus(str, Enum):
    """Outcome of fetching a source URL."""
    OK = "ok"
    PAYWALL = "paywall"
    DEAD = "dead"
    ERROR = "error"


class SourceRecord(BaseModel):
    """A source the research phase found."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    topic: str = Field(..., description="Research topic this source answers")
    title: str = Field(..., description="Source title")
    url: str = Field(..., description="Source URL")
    author: Optional[str] = Field(None, description="Author")
    date: Optional[str] = Field(None, description="Publication date")
    facts: List[str] = Field(..., description="Extracted facts")
    relevance: str = Field(..., description="Why the source matters")


class FetchedSource(BaseModel):
    """A fetched and text-extracted source page."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    url: str = Field(..., description="Requested URL")
    title: str = Field(default="", description="Page title")
    fetched_at: datetime = Field(default_factory=datetime.utcnow, description="Fetch timestamp")
    content: str = Field(default="", description="Extracted text")
    relevant_excerpts: List[str] = Field(default_factory=list, description="Paragraphs matching the query")
    status: FetchStatus = Field(..., description="Fetch outcome")


class SourceCacheEntry(BaseModel):
    """Verified source text handed to synthesis."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., pattern=r"^SRC-\d+$", description="Stable id, SRC-N")
    url: str = Field(..., description="Source URL")
    title: str = Field(default="", description="Title")
    author: Optional[str] = Field(None, description="Author")
    date: Optional[str] = Field(None, description="Publication date")
    content: str = Field(default="", max_length=SOURCE_CONTENT_CAP, description="Verified text")
    facts: List[str] = Field(default_factory=list, description="Facts from the research phase")


class ResearchResult(PhaseResult):
    """Output of the research phase."""

    sources: List[SourceRecord] = Field(..., description="Ordered sources")
    summary: Optional[str] = Field(None, description="Research summary")
    source_cache: List[SourceCacheEntry] = Field(default_factory=list, alias="sourceCache")

    @property
    def urls(self) -> List[str]:
        return [s.url for s in self.sources if s.url]
