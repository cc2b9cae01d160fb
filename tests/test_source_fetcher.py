"""
Tests for source fetching and the research source cache.
"""

from page_improver.core.models.research import FetchedSource, FetchStatus, SourceRecord
from page_improver.integrations.search.source_fetcher import (
    FetchRequest,
    SourceFetcher,
    detect_paywall,
    extract_relevant_excerpts,
    extract_title,
    get_domain,
    html_to_text,
    is_unverifiable,
)
from page_improver.phases.research import build_source_cache


LONG_TEXT = "Verified page content about the funding round and the organization's budget. " * 3


def record(url, facts=None, title="Research title"):
    return SourceRecord(
        topic="funding",
        title=title,
        url=url,
        facts=facts if facts is not None else ["Raised $10M in 2023"],
        relevance="high"
    )


def fetched(url, status=FetchStatus.OK, content=LONG_TEXT, excerpts=None, title=""):
    return FetchedSource(url=url, status=status, content=content, relevant_excerpts=excerpts or [], title=title)


# ── build_source_cache ──────────────────────────────────────────────────────

def test_cache_prefers_excerpts():
    """Test that relevant excerpts win over full content."""
    entries = build_source_cache(
        [record("https://a.org")],
        [fetched("https://a.org", excerpts=["first excerpt", "second excerpt"])]
    )
    assert entries[0].content == "first excerpt\n---\nsecond excerpt"


def test_cache_uses_content_when_no_excerpts():
    """Test that fetched text is used when there are no excerpts."""
    entries = build_source_cache([record("https://a.org")], [fetched("https://a.org")])
    assert entries[0].content == LONG_TEXT


def test_cache_falls_back_to_facts():
    """Test fact fallback for dead, paywalled, short and unfetched sources."""
    sources = [
        record("https://dead.org", facts=["dead fact"]),
        record("https://paywall.org", facts=["paywall fact"]),
        record("https://short.org", facts=["short fact"]),
        record("https://missing.org", facts=["missing fact", "second"]),
    ]
    results = [
        fetched("https://dead.org", status=FetchStatus.DEAD, content=""),
        fetched("https://paywall.org", status=FetchStatus.PAYWALL),
        fetched("https://short.org", content="too short"),
    ]

    entries = build_source_cache(sources, results)

    assert [e.content for e in entries] == ["dead fact", "paywall fact", "short fact", "missing fact\nsecond"]


def test_cache_ids_and_metadata():
    """Test SRC numbering, skipped URL-less sources and title preference."""
    sources = [
        record("https://a.org"),
        record("", title="No url"),
        record("https://b.org", title="Research B"),
    ]
    entries = build_source_cache(sources, [fetched("https://a.org", title="Fetched A")])

    assert [e.id for e in entries] == ["SRC-1", "SRC-2"]
    assert entries[0].title == "Fetched A"
    assert entries[1].title == "Research B"
    assert entries[1].facts == ["Raised $10M in 2023"]


def test_cache_content_capped():
    """Test that cached content is capped at 5000 characters."""
    entries = build_source_cache([record("https://a.org")], [fetched("https://a.org", content="x" * 9000)])
    assert len(entries[0].content) == 5000


# ── Helpers ─────────────────────────────────────────────────────────────────

def test_domains():
    """Test domain extraction and unverifiable domains."""
    assert get_domain("https://www.nytimes.com/a") == "nytimes.com"
    assert is_unverifiable("https://twitter.com/someone")
    assert is_unverifiable("https://mobile.twitter.com/someone")
    assert not is_unverifiable("https://arxiv.org/abs/1")


def test_html_to_text():
    """Test markup stripping."""
    html = "<html><head><title>T &amp; U</title><style>p{}</style></head>" \
           "<body><nav>menu</nav><p>First&nbsp;para</p><p>Second</p></body></html>"
    assert extract_title(html) == "T & U"
    text = html_to_text(html)
    assert "menu" not in text
    assert "First para" in text
    assert "\n\n" in text


def test_html_to_text_ignores_attributes_and_comments():
    """Test that attribute values and comments never reach the text."""
    html = '<p><a title="x > y" href="/z">Link</a> body</p><!-- note > here -->'
    assert html_to_text(html) == "Link body"
    assert extract_title("<p>No head</p>") == ""


def test_detect_paywall():
    """Test that short pages need one signal and long pages two."""
    assert detect_paywall("Subscribe to read the full story.")
    long_one_signal = "Subscribe to read. " + "Body text. " * 100
    assert not detect_paywall(long_one_signal)
    long_two_signals = "Subscribe to read. Already a member? Please sign in. " + "Body text. " * 100
    assert detect_paywall(long_two_signals)
    assert not detect_paywall("")


def test_extract_relevant_excerpts():
    """Test paragraph ranking by keyword overlap."""
    content = "\n\n".join([
        "Short.",
        "The organization announced a funding round led by a large philanthropy last spring.",
        "Unrelated paragraph about the weather in a faraway city during the winter.",
        "Its annual budget grew after the funding round according to the filing.",
    ])
    excerpts = extract_relevant_excerpts(content, "funding round budget")
    assert excerpts[0].startswith("Its annual budget")
    assert len(excerpts) == 2
    assert extract_relevant_excerpts(content, "  ") == []


# ── Fetcher ─────────────────────────────────────────────────────────────────

async def test_fetch_source_classification_and_cache():
    """Test outcome classification and per-instance caching."""
    fetcher = SourceFetcher(delay=0)
    calls = []
    responses = {
        "https://ok.org": ("OK", LONG_TEXT, 200, None),
        "https://gone.org": ("", "", 404, "HTTP 404"),
        "https://down.org": ("", "", 0, "timeout"),
        "https://pay.org": ("", "Subscribe to read this article.", 200, None),
    }

    async def fake_network(session, url):
        calls.append(url)
        return responses[url]

    fetcher._fetch_network = fake_network
    session = object()

    ok = await fetcher.fetch_source(FetchRequest("https://ok.org", query="funding budget"), session)
    assert ok.status == FetchStatus.OK.value
    assert ok.relevant_excerpts

    assert (await fetcher.fetch_source(FetchRequest("https://gone.org"), session)).status == "dead"
    assert (await fetcher.fetch_source(FetchRequest("https://down.org"), session)).status == "error"
    assert (await fetcher.fetch_source(FetchRequest("https://pay.org"), session)).status == "paywall"
    assert (await fetcher.fetch_source(FetchRequest("https://x.com/post"), session)).status == "error"

    await fetcher.fetch_source(FetchRequest("https://ok.org"), session)
    assert calls.count("https://ok.org") == 1
    assert fetcher.cache_size == 5

    fetcher.clear_cache()
    assert fetcher.cache_size == 0


async def test_fetch_sources_keeps_order():
    """Test that batched fetching returns results in input order."""
    fetcher = SourceFetcher(concurrency=2, delay=0)

    async def fake_network(session, url):
        return ("", LONG_TEXT, 200, None)

    fetcher._fetch_network = fake_network
    urls = [f"https://s{i}.org" for i in range(5)]

    results = await fetcher.fetch_sources([FetchRequest(u) for u in urls])

    assert [r.url for r in results] == urls
