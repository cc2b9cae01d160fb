"""
Pipeline orchestration: tiers, run context and artifacts.

The controller lives in ``page_improver.pipeline.controller``.
"""

from .tiers import TIERS, TIER_ALIASES, resolve_tier, resolve_phases
from .artifacts import RunArtifacts
from .context import PipelineContext

__all__ = [
    'TIERS',
    'TIER_ALIASES',
    'resolve_tier',
    'resolve_phases',
    'RunArtifacts',
    'PipelineContext'
]
