"""
Pipeline phases.

Each phase is an async function taking the PipelineContext first and
returning a typed result (or the improved MDX text).
"""

from .analyze import analyze_phase
from .research import research_phase, build_source_cache
from .improve import improve_phase
from .improve_sections import improve_sections_phase
from .enrich import enrich_phase
from .validate import validate_phase
from .review import review_phase
from .gap_fill import gap_fill_phase
from .triage import triage_phase
from .adversarial_review import adversarial_review_phase
from .adversarial_loop import adversarial_loop_phase, merge_research, build_gap_directions

__all__ = [
    'analyze_phase',
    'research_phase',
    'build_source_cache',
    'improve_phase',
    'improve_sections_phase',
    'enrich_phase',
    'validate_phase',
    'review_phase',
    'gap_fill_phase',
    'triage_phase',
    'adversarial_review_phase',
    'adversarial_loop_phase',
    'merge_research',
    'build_gap_directions'
]
