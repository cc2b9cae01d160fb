"""
Linkup web search client for Page Improver.

This module backs the agent's ``web_search`` tool and the triage
news check with Linkup's search API.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
from urllib.parse import urlparse

import requests

from ...core.models.errors import ConfigurationError, ExternalServiceError, SearchError


logger = logging.getLogger(__name__)


@dataclass
class LinkupConfig:
    """Configuration for Linkup requests."""
    api_key: Optional[str]
    endpoint: str = "https://api.linkup.so/v1/search"
    timeout: int = 30
    max_results: int = 8
    depth: str = "standard"


@dataclass
class SearchResult:
    """One web search hit."""
    title: str
    url: str
    snippet: str
    published_date: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def domain(self) -> str:
        try:
            return urlparse(self.url).netloc.lower()
        except ValueError:
            return ""


class LinkupClient:
    """
    Linkup web search client.

    ``search`` is synchronous (requests); ``asearch`` runs it in a worker
    thread for use from the event loop.
    """

    def __init__(self, config: LinkupConfig, session: Optional[requests.Session] = None):
        """
        Initialize the Linkup client.

        Args:
            config: Linkup configuration
            session: Optional requests session, mainly for tests
        """
        self.config = config
        self.session = session
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def search(self, query: str, max_results: Optional[int] = None) -> List[SearchResult]:
        """
        Search the web.

        Args:
            query: Search query
            max_results: Result cap override

        Returns:
            Ranked results

        Raises:
            ConfigurationError: If no API key is configured
            ExternalServiceError: On a non-200 response
            SearchError: On timeouts or transport failures
        """
        if not self.config.api_key:
            raise ConfigurationError("LINKUP_API_KEY is not set", config_key="LINKUP_API_KEY")

        start_time = time.time()
        search_params = {
            "q": query,
            "depth": self.config.depth,
            "outputType": "searchResults",
            "num": max_results or self.config.max_results,
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": "PageImprover/2.0",
            "Accept": "application/json"
        }

        session = self.session or requests.Session()
        try:
            response = session.post(
                self.config.endpoint,
                json=search_params,
                headers=headers,
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Web search timeout for '{query[:60]}'")
            raise SearchError(f"Search timeout: {e}", query=query, provider="linkup") from e
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Web search error: {str(e)}")
            raise SearchError(str(e), query=query, provider="linkup") from e
        finally:
            if self.session is None:
                session.close()

        if response.status_code != 200:
            self.logger.error(f"Web search failed: {response.status_code} - {response.text[:200]}")
            raise ExternalServiceError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                service="linkup",
                status_code=response.status_code
            )

        results = self._parse_search_results(response.json())
        limit = max_results or self.config.max_results
        self.logger.info(
            f"Web search successful: {len(results)} results in {time.time() - start_time:.2f}s"
        )
        return results[:limit]

    async def asearch(self, query: str, max_results: Optional[int] = None) -> List[SearchResult]:
        return await asyncio.to_thread(self.search, query, max_results)

    def _parse_search_results(self, data: Any) -> List[SearchResult]:
        if isinstance(data, dict):
            items = data.get("results", data.get("items", []))
        elif isinstance(data, list):
            items = data
        else:
            items = []

        results = []
        for item in items:
            if not isinstance(item, dict):
                continue
            url = item.get("url", item.get("link", ""))
            if not url:
                continue
            results.append(SearchResult(
                title=item.get("name", item.get("title", "")) or url,
                url=url,
                snippet=item.get("content", item.get("snippet", item.get("description", ""))) or "",
                published_date=item.get("published_date", item.get("datePublished", "")) or "",
                metadata={"author": item.get("author", "")}
            ))
        return results


def format_results(results: List[SearchResult], snippet_chars: int = 600) -> str:
    """Render results as the numbered text block handed to the model."""
    if not results:
        return "No results found."
    lines = []
    for rank, result in enumerate(results, start=1):
        header = f"{rank}. {result.title}"
        if result.published_date:
            header += f" ({result.published_date})"
        lines.append(header)
        lines.append(f"   URL: {result.url}")
        snippet = " ".join(result.snippet.split())
        if snippet:
            lines.append(f"   {snippet[:snippet_chars]}")
    return "\n".join(lines)
