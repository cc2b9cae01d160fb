"""
SCRY domain search client.

SCRY exposes full-text search over EA Forum and LessWrong posts as a
read-only SQL endpoint. Only the two post tables are queryable; any
other table name is rejected before a request is made.
"""

import logging
from typing import Dict, Any, List, Optional

import aiohttp

from ...core.models.errors import ExternalServiceError, SearchError


logger = logging.getLogger(__name__)

ALLOWED_TABLES = frozenset({"mv_eaforum_posts", "mv_lesswrong_posts"})
DEFAULT_TABLE = "mv_eaforum_posts"


def escape_sql_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "''")


def build_search_sql(query: str, table: str, limit: int = 10) -> str:
    """
    Build the SCRY search statement.

    Raises:
        SearchError: If ``table`` is not an allowed post table
    """
    if table not in ALLOWED_TABLES:
        raise SearchError(
            f"Invalid SCRY table: {table}. Allowed: {', '.join(sorted(ALLOWED_TABLES))}",
            query=query,
            provider="scry"
        )
    return (
        "SELECT title, uri, snippet, original_author, original_timestamp::date as date "
        f"FROM scry.search('{escape_sql_literal(query)}', '{table}') "
        f"WHERE title IS NOT NULL AND kind = 'post' LIMIT {int(limit)}"
    )


class ScryClient:
    """Async client for the SCRY SQL endpoint."""

    def __init__(self, endpoint: str, api_key: str, timeout: int = 30):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    async def search(self, query: str, table: str = DEFAULT_TABLE, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Run a full-text search.

        Args:
            query: Search terms
            table: One of ALLOWED_TABLES
            limit: Maximum rows

        Returns:
            Row dicts with title, uri, snippet, original_author, date
        """
        sql = build_search_sql(query, table, limit)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "text/plain",
        }

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            async with session.post(self.endpoint, data=sql, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(f"SCRY search failed: {response.status} - {body[:200]}")
                    raise ExternalServiceError(
                        f"SCRY HTTP {response.status}: {body[:200]}",
                        service="scry",
                        status_code=response.status
                    )
                data = await response.json(content_type=None)

        rows = data.get("rows", []) if isinstance(data, dict) else data
        logger.info(f"SCRY search '{query[:60]}' on {table}: {len(rows or [])} rows")
        return [row for row in rows or [] if isinstance(row, dict)]


def format_rows(rows: List[Dict[str, Any]], snippet_chars: Optional[int] = 300) -> str:
    """Render SCRY rows as a compact text block."""
    if not rows:
        return "No results found."
    lines = []
    for row in rows:
        author = row.get("original_author") or "unknown"
        date = row.get("date") or ""
        lines.append(f"[{row.get('title', '')}]({row.get('uri', '')}) by {author} ({date})")
        snippet = (row.get("snippet") or "").strip()
        if snippet:
            lines.append(f"  {snippet[:snippet_chars] if snippet_chars else snippet}")
    return "\n".join(lines)
