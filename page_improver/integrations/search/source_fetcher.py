"""
Source fetcher.

Fetches research source URLs, converts HTML to plain text, classifies
the outcome (ok, paywall, dead, error) and extracts the paragraphs most
relevant to a query. Results are cached per URL on the fetcher instance
for the life of a run; call clear_cache() to reset.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup, Comment

from ...core.models.errors import ExternalServiceError, RetryExhaustedError
from ...core.models.research import FetchedSource, FetchStatus
from ..llm.retry_handler import RetryHandler


logger = logging.getLogger(__name__)

# Domains that block automated access
UNVERIFIABLE_DOMAINS = (
    "twitter.com", "x.com", "linkedin.com", "facebook.com", "t.co",
    "instagram.com", "tiktok.com",
)

PAYWALL_SIGNALS = (
    "subscribe to read", "sign in to read", "create a free account",
    "this content is for subscribers", "subscriber-only", "paywall",
    "to continue reading", "unlimited access", "login required",
    "please sign in", "register to read",
)

STOPWORDS = frozenset({
    "the", "and", "for", "that", "are", "was", "with", "from", "this", "has",
    "have", "had", "its", "not", "but", "can", "all", "one", "more", "also",
    "about", "into", "such", "than", "then", "when", "which", "will", "been",
})

USER_AGENT = "Mozilla/5.0 (compatible; PageImproverSourceFetcher/2.0)"
MAX_CONTENT_CHARS = 100_000
MIN_PARAGRAPH_CHARS = 40

# Page chrome dropped before text extraction
REMOVE_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "title"]

# Elements that end a paragraph in the extracted text
BLOCK_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "div", "blockquote", "pre", "tr"]


@dataclass
class FetchRequest:
    """One URL to fetch, optionally with a query for excerpt extraction."""
    url: str
    query: Optional[str] = None


def get_domain(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def is_unverifiable(url: str) -> bool:
    domain = get_domain(url)
    return any(domain == d or domain.endswith("." + d) for d in UNVERIFIABLE_DOMAINS)


def _parse(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    return soup


def extract_title(html: str) -> str:
    soup = _parse(html)
    if soup.title is None:
        return ""
    return " ".join(soup.title.get_text().split())


def html_to_text(html: str) -> str:
    """Strip markup down to paragraph-separated plain text."""
    soup = _parse(html)
    for tag in soup(REMOVE_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.append("\n\n")

    text = soup.get_text().replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def detect_paywall(content: str) -> bool:
    """Short pages need one signal; longer pages need two near the top."""
    if not content:
        return False
    lower = content.lower()
    if len(content) < 500:
        return any(signal in lower for signal in PAYWALL_SIGNALS)
    early = lower[:2000]
    return sum(1 for signal in PAYWALL_SIGNALS if signal in early) >= 2


def tokenize_query(query: str) -> List[str]:
    return [t for t in re.split(r"\W+", query.lower()) if len(t) >= 3 and t not in STOPWORDS]


def extract_relevant_excerpts(content: str, query: str, max_excerpts: int = 5) -> List[str]:
    """
    Return the paragraphs with the highest keyword overlap with ``query``.

    Paragraphs of 40 characters or fewer and paragraphs sharing no
    keyword with the query are ignored.
    """
    if not query or not query.strip():
        return []
    tokens = tokenize_query(query)
    if not tokens:
        return []

    paragraphs = [" ".join(p.split()) for p in re.split(r"\n\n+", content)]
    scored = []
    for paragraph in paragraphs:
        if len(paragraph) <= MIN_PARAGRAPH_CHARS:
            continue
        lower = paragraph.lower()
        score = sum(1 for t in tokens if t in lower) / len(tokens)
        if score > 0:
            scored.append((score, paragraph))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [paragraph for _, paragraph in scored[:max_excerpts]]


class SourceFetcher:
    """Fetch source pages with a per-instance URL cache."""

    def __init__(
        self,
        timeout: int = 15,
        concurrency: int = 3,
        delay: float = 0.5,
        max_retries: int = 2
    ):
        self.timeout = timeout
        self.concurrency = concurrency
        self.delay = delay
        self.retry_handler = RetryHandler(max_retries=max_retries, base_delay=2.0)
        self._cache: Dict[str, FetchedSource] = {}

    def clear_cache(self):
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def fetch_source(
        self,
        request: FetchRequest,
        session: Optional[aiohttp.ClientSession] = None
    ) -> FetchedSource:
        """
        Fetch one URL.

        Args:
            request: URL and optional excerpt query
            session: Shared session; one is created when omitted

        Returns:
            FetchedSource; failures are reported through ``status``
        """
        url = request.url

        cached = self._cache.get(url)
        if cached is not None:
            if request.query:
                return cached.model_copy(update={
                    "relevant_excerpts": extract_relevant_excerpts(cached.content, request.query)
                })
            return cached

        if is_unverifiable(url):
            result = FetchedSource(url=url, status=FetchStatus.ERROR)
            self._cache[url] = result
            return result

        if session is None:
            async with self._new_session() as own_session:
                title, content, http_status, error = await self._fetch_network(own_session, url)
        else:
            title, content, http_status, error = await self._fetch_network(session, url)

        if error and http_status == 0:
            status = FetchStatus.ERROR
        elif http_status >= 400:
            status = FetchStatus.DEAD
        elif detect_paywall(content):
            status = FetchStatus.PAYWALL
        elif content:
            status = FetchStatus.OK
        elif error:
            status = FetchStatus.ERROR
        else:
            status = FetchStatus.OK  # PDF or other non-HTML body

        excerpts = extract_relevant_excerpts(content, request.query) if request.query and content else []
        result = FetchedSource(
            url=url,
            title=title,
            fetched_at=datetime.utcnow(),
            content=content,
            relevant_excerpts=excerpts,
            status=status
        )
        self._cache[url] = result
        logger.debug(f"Fetched {url}: {result.status} ({len(content)} chars)")
        return result

    async def fetch_sources(self, requests: List[FetchRequest]) -> List[FetchedSource]:
        """
        Fetch many URLs, ``concurrency`` at a time with ``delay`` between batches.

        Results keep the input order.
        """
        results: List[FetchedSource] = []
        async with self._new_session() as session:
            for start in range(0, len(requests), self.concurrency):
                batch = requests[start:start + self.concurrency]
                results.extend(await asyncio.gather(
                    *(self.fetch_source(req, session) for req in batch)
                ))
                if start + self.concurrency < len(requests) and self.delay > 0:
                    await asyncio.sleep(self.delay)
        return results

    def _new_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,*/*;q=0.9",
            }
        )

    async def _fetch_network(
        self,
        session: aiohttp.ClientSession,
        url: str
    ) -> Tuple[str, str, int, Optional[str]]:
        try:
            return await self.retry_handler.execute_with_retry(
                self._fetch_once, session, url, label=f"fetch {get_domain(url)}"
            )
        except RetryExhaustedError as e:
            cause = e.__cause__
            status = getattr(cause, "status_code", None) or 0
            message = "timeout" if isinstance(cause, asyncio.TimeoutError) else str(cause)
            return "", "", status, message
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError, ValueError) as e:
            return "", "", 0, str(e) or e.__class__.__name__

    async def _fetch_once(
        self,
        session: aiohttp.ClientSession,
        url: str
    ) -> Tuple[str, str, int, Optional[str]]:
        async with session.get(url, allow_redirects=True) as response:
            status = response.status
            if status >= 500 or status == 429:
                raise ExternalServiceError(f"HTTP {status}", service=get_domain(url), status_code=status)
            if status >= 400:
                return "", "", status, f"HTTP {status}"

            content_type = response.headers.get("content-type", "")
            if "application/pdf" in content_type:
                return "(PDF)", "", status, "PDF content"
            if "text/html" not in content_type and "application/xhtml" not in content_type:
                return "", "", status, f"non-HTML: {content_type}"

            html = await response.text(errors="replace")

        return extract_title(html), html_to_text(html)[:MAX_CONTENT_CHARS], status, None
