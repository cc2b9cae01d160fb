"""
MDX content transforms applied after model synthesis.

All functions here are pure string-to-string (or string-to-value)
helpers; none of them touch the filesystem.
"""

import re
from datetime import date
from typing import Dict, List, Optional

from ..core.models.page import PageRecord
from ..core.models.review import AnalysisResult


FRONTMATTER_RE = re.compile(r"^---\n([\s\S]*?)\n---")
LAST_EDITED_RE = re.compile(r"lastEdited:\s*[\"']?(\d{4}-\d{2}-\d{2})[\"']?")
QUALITY_LINE_RE = re.compile(r"^quality:\s*\d+\s*\n", re.MULTILINE)
ENTITY_LINK_ID_RE = re.compile(r'<EntityLink\s+id="([^"]+)"')
NUMERIC_ENTITY_ID_RE = re.compile(r"^E\d+$")

RELATED_SECTION_PATTERNS = (
    re.compile(r"^## Related Pages\s*$"),
    re.compile(r"^## See Also\s*$"),
    re.compile(r"^## Related Content\s*$"),
)

KNOWN_SUB_KEYS = frozenset({
    "novelty", "rigor", "actionability", "completeness",
    "objectivity", "focus", "concreteness", "order", "label",
})
TOP_LEVEL_KEYS = frozenset({
    "title", "description", "sidebar", "quality", "readerImportance", "lastEdited",
    "update_frequency", "evergreen", "llmSummary", "ratings", "clusters",
    "draft", "aliases", "redirects", "tags",
})

OBJECTIVITY_THRESHOLD = 6


def today_iso() -> str:
    return date.today().isoformat()


def extract_frontmatter(content: str) -> Optional[str]:
    match = FRONTMATTER_RE.match(content)
    return match.group(1) if match else None


def extract_last_edited(content: str) -> str:
    match = LAST_EDITED_RE.search(content)
    return match.group(1) if match else "unknown"


def update_last_edited(content: str, today: Optional[str] = None) -> str:
    """Set the first lastEdited value to ``today`` (ISO date)."""
    return LAST_EDITED_RE.sub(f'lastEdited: "{today or today_iso()}"', content, count=1)


def remove_quality_field(content: str) -> str:
    """Drop a numeric quality line; grading owns that field."""
    return QUALITY_LINE_RE.sub("", content, count=1)


def parse_ratings(frontmatter: str) -> Dict[str, float]:
    """Read the ``ratings:`` block of a frontmatter string."""
    match = re.search(r"^ratings:\s*\n((?:\s+\w+:\s*[\d.]+\n?)*)", frontmatter, re.MULTILINE)
    if not match:
        return {}
    ratings = {}
    for line in match.group(1).split("\n"):
        kv = re.match(r"^\s+(\w+):\s*([\d.]+)", line)
        if kv:
            try:
                ratings[kv.group(1)] = float(kv.group(2))
            except ValueError:
                continue
    return ratings


def extract_mdx(response: str, fallback: str) -> str:
    """
    Pull the MDX document out of a model response.

    A response starting with ``---`` is taken as-is; otherwise the first
    fenced block is used. Returns ``fallback`` when neither is present.
    """
    text = (response or "").strip()
    if text.startswith("---"):
        return text if text.endswith("\n") else text + "\n"
    match = re.search(r"```(?:mdx|markdown|md)?\s*\n([\s\S]*?)\n```", text)
    if match and match.group(1).lstrip().startswith("---"):
        return match.group(1).strip() + "\n"
    return fallback


def repair_frontmatter(content: str) -> str:
    """Fix common model mistakes in YAML frontmatter."""
    match = re.match(r"^(---\n)([\s\S]*?)(\n---)", content)
    if not match:
        return content

    fm = match.group(2)
    rest = content[match.end():]

    # Key/value merged with the next key on one line
    fm = re.sub(r"^([ \t]+\w+:[ \t]*\S+?)([a-zA-Z_]\w*:[ \t])", r"\1\n\2", fm, flags=re.MULTILINE)

    # Backslash-escaped dollars are only needed in MDX body text
    fm = re.sub(r"^(\w+:.*)\\\$", r"\1$", fm, flags=re.MULTILINE)
    fm = re.sub(r"^([ \t]+\w+:.*)\\\$", r"\1$", fm, flags=re.MULTILINE)

    # Top-level keys indented under a block
    repaired = []
    for line in fm.split("\n"):
        indented = re.match(r"^(\s{2,})(\w+):\s", line)
        if indented and indented.group(2) in TOP_LEVEL_KEYS and indented.group(2) not in KNOWN_SUB_KEYS:
            repaired.append(line.lstrip())
        else:
            repaired.append(line)

    return "---\n" + "\n".join(repaired) + "\n---" + rest


def strip_related_pages_sections(content: str) -> str:
    """Remove Related Pages / See Also / Related Content sections."""
    lines = content.split("\n")
    starts = [i for i, line in enumerate(lines) if line.rstrip().startswith("## ")]

    ranges = []
    for index in starts:
        heading = lines[index].rstrip()
        if not any(p.match(heading) for p in RELATED_SECTION_PATTERNS):
            continue

        following = [s for s in starts if s > index]
        end = following[0] if following else len(lines)
        while end > index and lines[end - 1].strip() == "":
            end -= 1

        start = index
        check = index - 1
        while check >= 0 and lines[check].strip() == "":
            check -= 1
        if check >= 0 and re.match(r"^---\s*$", lines[check]):
            start = check
        while start > 0 and lines[start - 1].strip() == "":
            start -= 1

        ranges.append((start, end))

    for start, end in sorted(ranges, reverse=True):
        del lines[start:end]

    result = "\n".join(lines)

    # Drop the Backlinks import once nothing uses it
    without_imports = re.sub(r"^import\s.*$", "", result, flags=re.MULTILINE)
    if not re.search(r"<Backlinks[\s/>]", without_imports):
        def _drop_backlinks(match):
            names = [n.strip() for n in match.group(2).split(",") if n.strip()]
            if "Backlinks" not in names:
                return match.group(0)
            names = [n for n in names if n != "Backlinks"]
            if not names:
                return ""
            return f"{match.group(1)}{', '.join(names)}{match.group(3)}"

        result = re.sub(
            r"^(import\s*\{)([^}]*)(}\s*from\s*['\"]@components/wiki['\"];?\s*)$",
            _drop_backlinks,
            result,
            flags=re.MULTILINE
        )
        result = re.sub(r"\n{3,}", "\n\n", result)

    result = re.sub(r"\n{3,}$", "\n", result)
    if not result.endswith("\n"):
        result += "\n"
    return result


def convert_slugs_to_numeric_ids(content: str, slug_to_id: Dict[str, str]) -> str:
    """Rewrite ``<EntityLink id="slug">`` to the registry's ``E##`` id."""
    def _replace(match):
        entity_id = match.group(1)
        if NUMERIC_ENTITY_ID_RE.match(entity_id):
            return match.group(0)
        numeric = slug_to_id.get(entity_id)
        return f'<EntityLink id="{numeric}"' if numeric else match.group(0)

    return ENTITY_LINK_ID_RE.sub(_replace, content)


def entity_link_ids(content: str) -> List[str]:
    return ENTITY_LINK_ID_RE.findall(content)


def count_footnotes(content: str) -> int:
    return len(set(re.findall(r"\[\^\d+\]", content)))


def build_objectivity_context(page: PageRecord, analysis: AnalysisResult) -> str:
    """Prompt block flagging a low objectivity rating and known issues."""
    parts: List[str] = []
    score = page.objectivity

    if score is not None and score < OBJECTIVITY_THRESHOLD:
        parts.append("## Objectivity Alert")
        parts.append(
            f"This page's previous objectivity rating was **{score:g}/10** "
            f"(below the {OBJECTIVITY_THRESHOLD}.0 threshold)."
        )
        parts.append("Pay special attention to neutrality; this page has a history of biased framing.")
        parts.append("")

    if analysis.objectivity_issues:
        parts.append("### Specific Issues Identified" if parts else "## Objectivity Issues Found in Analysis")
        parts.extend(f"- {issue}" for issue in analysis.objectivity_issues)
        parts.append("")
        parts.append(
            "**Fix all of these objectivity issues** in your improvement. "
            "Replace evaluative language with neutral descriptions backed by data."
        )
        parts.append("")

    return "\n" + "\n".join(parts) + "\n" if parts else ""


def build_entity_lookup(
    content: str,
    entities: Dict[str, str],
    titles: Dict[str, str],
    limit: int = 200
) -> str:
    """
    Entity table for prompts, one ``E## = slug -> "Title"`` line each.

    Only entities whose slug or title appears in ``content`` are listed.
    """
    lower = content.lower()
    lines = []
    for entity_id, slug in entities.items():
        title = titles.get(slug, slug)
        if slug.lower() in lower or (title and title.lower() in lower):
            lines.append(f'{entity_id} = {slug} -> "{title}"')
        if len(lines) >= limit:
            break
    return "\n".join(lines) if lines else "(no matching entities)"


BIOGRAPHICAL_PATTERNS = (
    (re.compile(r"\b(?:joined|left|departed)\b.*\b(?:in|since)\s+\d{4}\b", re.IGNORECASE), "employment dates"),
    (re.compile(r"\bPhD|Ph\.D\.|doctorate|master's|bachelor's|degree\b.*\b(?:from|at)\s+[A-Z]"), "education claims"),
    (re.compile(r"\b(?:founded|co-founded|established)\b.*\b(?:in|circa)\s+\d{4}\b", re.IGNORECASE), "founding dates"),
)
_CITED_LINE_RE = re.compile(r"\[\^\d+\]|<R\s+id=|\]\(https?://")


def find_unsourced_biographical_claims(content: str) -> List[Dict[str, str]]:
    """Lines with dates or credentials but no citation on the same line."""
    findings = []
    for line in content.split("\n"):
        if _CITED_LINE_RE.search(line):
            continue
        for pattern, label in BIOGRAPHICAL_PATTERNS:
            if pattern.search(line):
                findings.append({"label": label, "line": line.strip()})
    return findings


_BARE_URL_RE = re.compile(r"(?<![(\[<\"'=`/])\bhttps?://[^\s)<>\]\"'`]+")
_FENCE_RE = re.compile(r"^(`{3,}|~{3,})")


def linkify_bare_urls(content: str) -> str:
    """Turn bare URLs in prose into markdown links."""
    def _link(match):
        url = match.group(0)
        trailing = ""
        while url and url[-1] in ".,;:!?":
            trailing = url[-1] + trailing
            url = url[:-1]
        return f"[{url}]({url}){trailing}"

    out = []
    in_frontmatter = False
    in_code = False
    for i, line in enumerate(content.split("\n")):
        if i == 0 and line.strip() == "---":
            in_frontmatter = True
        elif in_frontmatter:
            if line.strip() == "---":
                in_frontmatter = False
        elif _FENCE_RE.match(line):
            in_code = not in_code
        elif not in_code and not re.match(r"^\[\^[^\]]+\]:", line) \
                and not line.lstrip().startswith(("import ", "<")):
            line = _BARE_URL_RE.sub(_link, line)
        out.append(line)
    return "\n".join(out)
