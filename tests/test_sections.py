"""
Tests for section splitting, reassembly and footnote renumbering.
"""

from page_improver.content.sections import (
    ParsedSection,
    filter_sources_for_section,
    heading_to_id,
    reassemble_sections,
    renumber_footnotes,
    split_into_sections,
)
from page_improver.core.models.research import SourceCacheEntry

from .conftest import JANE_DOE_MDX


def test_heading_to_id():
    """Test heading slugs."""
    assert heading_to_id("## Key Challenges & Risks") == "key-challenges-risks"


def test_split_into_sections():
    """Test frontmatter, preamble and section boundaries."""
    split = split_into_sections(JANE_DOE_MDX)

    assert split.frontmatter.startswith("---\ntitle: Jane Doe")
    assert "import {EntityLink}" in split.preamble
    assert [s.id for s in split.sections] == ["background", "research"]
    assert split.sections[0].content.startswith("## Background\n")
    assert split.sections[0].word_count > 20


def test_split_ignores_headings_in_code_fences():
    """Test that ## inside a fenced block does not start a section."""
    content = "## One\n\n```md\n## Not a heading\n```\n\n## Two\n\nText"
    split = split_into_sections(content)
    assert [s.heading for s in split.sections] == ["## One", "## Two"]


def test_reassemble_preserves_sections():
    """Test that split then reassemble keeps every section in order."""
    split = split_into_sections(JANE_DOE_MDX)
    result = reassemble_sections(split)

    assert result.startswith("---\ntitle: Jane Doe")
    assert result.index("## Background") < result.index("## Research")
    assert "\n\n\n" not in result
    assert result.endswith("\n")


def test_renumber_footnotes():
    """Test renumbering in order of first use and moving definitions to the end."""
    content = (
        "Claim A.[^SRC-3] Claim B.[^7]\n\n"
        "[^7]: Second source\n\n"
        "More on A.[^SRC-3]\n\n"
        "[^SRC-3]: First source\n"
    )
    result = renumber_footnotes(content)

    assert result.startswith("Claim A.[^1] Claim B.[^2]")
    assert "More on A.[^1]" in result
    assert result.endswith("[^1]: First source\n[^2]: Second source\n")


def test_renumber_without_footnotes():
    """Test that content without footnotes is unchanged."""
    assert renumber_footnotes("Plain text.\n") == "Plain text.\n"


def test_filter_sources_for_section():
    """Test ranking of cached sources by heading overlap."""
    section = ParsedSection(id="funding", heading="## Funding History", content="## Funding History\n\nText")
    sources = [
        SourceCacheEntry(id="SRC-1", url="https://a.org", title="Team page", content="staff"),
        SourceCacheEntry(id="SRC-2", url="https://b.org", title="Funding announcement", facts=["history of grants"]),
    ]
    ranked = filter_sources_for_section(section, sources)
    assert [s.id for s in ranked] == ["SRC-2", "SRC-1"]
    assert filter_sources_for_section(section, []) == []
