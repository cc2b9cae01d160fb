"""
Search integrations for Page Improver.

Web search (Linkup), domain search (SCRY) and source fetching.
"""

from .linkup_client import LinkupClient, LinkupConfig, SearchResult, format_results
from .scry_client import ScryClient, ALLOWED_TABLES, build_search_sql, format_rows
from .source_fetcher import SourceFetcher, FetchRequest, extract_relevant_excerpts

__all__ = [
    'LinkupClient',
    'LinkupConfig',
    'SearchResult',
    'format_results',
    'ScryClient',
    'ALLOWED_TABLES',
    'build_search_sql',
    'format_rows',
    'SourceFetcher',
    'FetchRequest',
    'extract_relevant_excerpts'
]
