"""
Core components for Page Improver.

This package holds the data models, error types and the structured
response recovery parser shared by every phase.
"""
