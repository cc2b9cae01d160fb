"""
In-process validation rules for improved pages.
"""

from .rules import (
    CRITICAL_RULES,
    QUALITY_RULES,
    RULES,
    AUTO_FIXES,
    RuleContext,
    run_rules,
    fix_dollar_signs,
    fix_comparison_operators
)

__all__ = [
    'CRITICAL_RULES',
    'QUALITY_RULES',
    'RULES',
    'AUTO_FIXES',
    'RuleContext',
    'run_rules',
    'fix_dollar_signs',
    'fix_comparison_operators'
]
