"""
Shared base for phase result models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PhaseResult(BaseModel):
    """
    Base for values produced by a phase.

    Results are frozen once built, accept the camelCase keys the model
    emits, and keep unknown keys. ``error`` and ``raw`` are set when the
    value was degraded from unparseable or invalid model output.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    error: Optional[str] = Field(None, description="Why the value was degraded")
    raw: Optional[str] = Field(None, description="Raw model output kept for debugging")

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
