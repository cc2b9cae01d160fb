"""
External service integrations for Page Improver.

This package contains the model service client and the search and
source-fetching clients used as agent tools.
"""
