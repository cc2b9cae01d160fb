"""
Split MDX pages into ``##`` sections and put them back together.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List

from ..core.models.research import SourceCacheEntry


@dataclass
class ParsedSection:
    """One ``##`` section, heading line included in ``content``."""
    id: str
    heading: str
    content: str

    @property
    def body(self) -> str:
        return self.content[len(self.heading):].strip()

    @property
    def word_count(self) -> int:
        return len(self.body.split())


@dataclass
class SplitPage:
    frontmatter: str = ""
    preamble: str = ""
    sections: List[ParsedSection] = field(default_factory=list)


def heading_to_id(heading: str) -> str:
    """``## Key Challenges`` -> ``key-challenges``."""
    text = re.sub(r"^#+\s*", "", heading).lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def split_into_sections(content: str) -> SplitPage:
    """Split on ``## `` headings outside code fences."""
    frontmatter = ""
    body = content
    match = re.match(r"^(---\n[\s\S]*?\n---\n?)", content)
    if match:
        frontmatter = match.group(1)
        body = content[len(frontmatter):]

    sections: List[ParsedSection] = []
    preamble: List[str] = []
    current: List[str] = None
    heading = ""
    in_fence = False

    def _flush():
        sections.append(ParsedSection(
            id=heading_to_id(heading),
            heading=heading,
            content="\n".join([heading] + current),
        ))

    for line in body.split("\n"):
        if re.match(r"^(`{3,}|~{3,})", line):
            in_fence = not in_fence
        if not in_fence and line.startswith("## "):
            if current is not None:
                _flush()
            heading = line
            current = []
        elif current is not None:
            current.append(line)
        else:
            preamble.append(line)

    if current is not None and heading:
        _flush()

    return SplitPage(frontmatter=frontmatter, preamble="\n".join(preamble), sections=sections)


def reassemble_sections(split: SplitPage) -> str:
    parts = []
    if split.frontmatter:
        parts.append(split.frontmatter.rstrip())
    if split.preamble.strip():
        parts.append(split.preamble.rstrip())
    parts.extend(section.content.rstrip() for section in split.sections)
    result = "\n\n".join(parts) + "\n"
    return re.sub(r"\n{3,}", "\n\n", result)


def renumber_footnotes(content: str) -> str:
    """
    Renumber footnote markers to ``[^1]..[^N]`` in order of first use.

    Definitions are collected, removed from their original positions and
    re-emitted together at the end of the page. Markers such as
    ``[^SRC-3]`` become plain numbers.
    """
    definition_re = re.compile(r"^\[\^([^\]]+)\]:\s*(.+)$", re.MULTILINE)
    definitions: Dict[str, str] = {}
    for marker, text in definition_re.findall(content):
        definitions.setdefault(marker, text)

    if not definitions and not re.search(r"\[\^[^\]]+\]", content):
        return content

    stripped = re.sub(r"^\[\^([^\]]+)\]:\s*.+\n?", "", content, flags=re.MULTILINE)
    stripped = re.sub(r"\n{3,}", "\n\n", stripped).rstrip()

    mapping: Dict[str, int] = {}
    for marker in re.findall(r"\[\^([^\]]+)\]", stripped):
        if marker not in mapping:
            mapping[marker] = len(mapping) + 1

    if not mapping:
        return stripped + "\n"

    renumbered = re.sub(
        r"\[\^([^\]]+)\]",
        lambda m: f"[^{mapping[m.group(1)]}]" if m.group(1) in mapping else m.group(0),
        stripped
    )

    definition_lines = [
        f"[^{number}]: {definitions[marker]}"
        for marker, number in sorted(mapping.items(), key=lambda item: item[1])
        if marker in definitions
    ]
    if not definition_lines:
        return renumbered + "\n"
    return renumbered + "\n\n" + "\n".join(definition_lines) + "\n"


def filter_sources_for_section(section: ParsedSection, sources: List[SourceCacheEntry]) -> List[SourceCacheEntry]:
    """Rank cached sources by overlap with the section heading."""
    if not sources:
        return []
    words = [w for w in re.sub(r"^#+\s*", "", section.heading).lower().split() if len(w) > 3]
    if not words:
        return list(sources)

    scored = []
    for src in sources:
        title = src.title.lower()
        facts = " ".join(src.facts).lower()
        snippet = src.content.lower()[:1000]
        score = 0
        for word in words:
            if word in title:
                score += 2
            if word in facts:
                score += 2
            if word in snippet:
                score += 1
        scored.append((score, src))

    if not any(score > 0 for score, _ in scored):
        return list(sources)
    return [src for _, src in sorted(scored, key=lambda item: item[0], reverse=True)]
