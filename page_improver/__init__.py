"""
Page Improver.

Multi-phase, model-driven pipeline that improves encyclopedia-style
wiki pages (MDX with YAML frontmatter).
"""

__version__ = "2.0.0"
__author__ = "Page Improver Team"
