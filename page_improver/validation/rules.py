"""
In-process MDX validation rules.

Rules are split into a critical bucket (breaks the build or links) and a
quality bucket (style and sourcing). Each rule scans the page body and
returns the offending snippets; the engine turns non-empty results into
ValidationIssue entries. Two critical problems are auto-fixable: bare
dollar signs and ``<`` directly before a digit.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from ..content.transforms import (
    ENTITY_LINK_ID_RE,
    NUMERIC_ENTITY_ID_RE,
    extract_frontmatter,
    find_unsourced_biographical_claims,
)
from ..core.models.review import IssueSeverity, ValidationIssue


MAX_OUTPUT_MATCHES = 5

CRITICAL_RULES = [
    'dollar-signs',
    'comparison-operators',
    'frontmatter-schema',
    'entitylink-ids',
    'internal-links',
    'fake-urls',
    'component-props',
    'citation-urls',
]

QUALITY_RULES = [
    'tilde-dollar',
    'markdown-lists',
    'consecutive-bold-labels',
    'placeholders',
    'vague-citations',
    'temporal-artifacts',
    'evaluative-framing',
    'tone-markers',
    'false-certainty',
    'prescriptive-language',
    'unsourced-biographical-claims',
    'evaluative-flattery',
]


@dataclass
class RuleContext:
    """What the rules know about the page and the site."""
    page_path: str = ""
    entity_ids: Set[str] = field(default_factory=set)
    page_ids: Set[str] = field(default_factory=set)
    page_paths: Set[str] = field(default_factory=set)

    @property
    def is_person_or_org(self) -> bool:
        return "/people/" in self.page_path or "/organizations/" in self.page_path


RuleFn = Callable[[str, RuleContext], List[str]]


# ── Body scanning ───────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})")
_INLINE_CODE_RE = re.compile(r"`[^`\n]*`")
_MDX_COMMENT_RE = re.compile(r"\{/\*[\s\S]*?\*/\}")


def body_lines(content: str) -> Iterator[Tuple[int, str]]:
    """
    Yield ``(index, line)`` for prose lines.

    Frontmatter and fenced code blocks are skipped; inline code spans and
    MDX comments are blanked out of each yielded line.
    """
    lines = content.split("\n")
    start = 0
    if lines and lines[0].strip() == "---":
        for i in range(1, len(lines)):
            if lines[i].strip() == "---":
                start = i + 1
                break

    in_fence = False
    for index in range(start, len(lines)):
        line = lines[index]
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        line = _INLINE_CODE_RE.sub("", line)
        yield index, _MDX_COMMENT_RE.sub("", line)


def _is_import(line: str) -> bool:
    return line.lstrip().startswith(("import ", "export "))


def _scan(pattern: re.Pattern, content: str, skip_imports: bool = True) -> List[str]:
    hits = []
    for _, line in body_lines(content):
        if skip_imports and _is_import(line):
            continue
        if pattern.search(line):
            hits.append(line.strip())
    return hits


# ── Critical rules ──────────────────────────────────────────────────────────

UNESCAPED_DOLLAR_RE = re.compile(r"(?<!\\)\$(?=\d)")
BARE_LT_DIGIT_RE = re.compile(r"<(?=\d)")


def check_dollar_signs(content: str, ctx: RuleContext) -> List[str]:
    return _scan(UNESCAPED_DOLLAR_RE, content)


def check_comparison_operators(content: str, ctx: RuleContext) -> List[str]:
    return _scan(BARE_LT_DIGIT_RE, content)


def check_frontmatter_schema(content: str, ctx: RuleContext) -> List[str]:
    frontmatter = extract_frontmatter(content)
    if frontmatter is None:
        return ["missing frontmatter block"]

    problems = []
    if not re.search(r"^title:\s*\S", frontmatter, re.MULTILINE):
        problems.append("missing title")
    if re.search(r"^metrics:", frontmatter, re.MULTILINE):
        problems.append("metrics block is computed at build time")
    for line in frontmatter.split("\n"):
        if re.match(r"^\s+\w+:[ \t]*\S+?[a-zA-Z_]\w*:[ \t]", line):
            problems.append(f"merged keys: {line.strip()}")
        elif line.strip() and not re.match(r"^(\s*[\w-]+:|\s*- |\s+\S|#)", line):
            problems.append(f"unparseable line: {line.strip()}")
    return problems


def check_entitylink_ids(content: str, ctx: RuleContext) -> List[str]:
    bad = []
    for entity_id in dict.fromkeys(ENTITY_LINK_ID_RE.findall(content)):
        if NUMERIC_ENTITY_ID_RE.match(entity_id.upper()):
            if ctx.entity_ids and entity_id.upper() not in ctx.entity_ids:
                bad.append(f"{entity_id} (not in id registry)")
        elif entity_id not in ctx.page_ids:
            bad.append(f"{entity_id} (unknown slug)")
    return bad


INTERNAL_LINK_RE = re.compile(r"\]\((/[^)\s#]*)(?:#[^)\s]*)?\)")


def check_internal_links(content: str, ctx: RuleContext) -> List[str]:
    if not ctx.page_paths:
        return []
    known = {p.rstrip("/") for p in ctx.page_paths}
    bad = []
    for _, line in body_lines(content):
        for target in INTERNAL_LINK_RE.findall(line):
            if target.rstrip("/") and target.rstrip("/") not in known:
                bad.append(target)
    return bad


FAKE_URL_RE = re.compile(
    r"https?://(?:www\.)?(?:example\.(?:com|org|net)|placeholder\.|url-here|your-?url|link-to-)"
    r"|\]\((?:url|link|URL|#)\)",
    re.IGNORECASE
)


def check_fake_urls(content: str, ctx: RuleContext) -> List[str]:
    return _scan(FAKE_URL_RE, content)


def check_component_props(content: str, ctx: RuleContext) -> List[str]:
    bad = []
    for _, line in body_lines(content):
        for tag in re.findall(r"<EntityLink\b[^>]*>", line):
            if not re.search(r'\bid="[^"]+"', tag):
                bad.append(tag)
        for tag in re.findall(r"<R\b[^>]*>", line):
            if not re.search(r'\bid="[^"]+"', tag):
                bad.append(tag)
        for tag in re.findall(r"<F\b[^>]*>", line):
            if not (re.search(r'\be="[^"]+"', tag) and re.search(r'\bf="[^"]+"', tag)):
                bad.append(tag)
    return bad


FOOTNOTE_DEF_RE = re.compile(r"^\[\^([^\]]+)\]:\s*(.*)$")


def check_citation_urls(content: str, ctx: RuleContext) -> List[str]:
    bad = []
    for _, line in body_lines(content):
        match = FOOTNOTE_DEF_RE.match(line)
        if not match:
            continue
        text = match.group(2).strip()
        if not text:
            bad.append(f"[^{match.group(1)}]: empty definition")
            continue
        for url in re.findall(r"\]\(([^)]*)\)", text):
            if not re.match(r"^https?://[^\s/]+\.[^\s/]+", url):
                bad.append(f"[^{match.group(1)}]: {url or '(empty url)'}")
        if re.search(r"https?://(?:localhost|127\.0\.0\.1)", text):
            bad.append(f"[^{match.group(1)}]: local url")
    return bad


# ── Quality rules ───────────────────────────────────────────────────────────

TILDE_DOLLAR_RE = re.compile(r"~\\?\$")
PLACEHOLDER_RE = re.compile(
    r"\b(?:TODO|TBD|FIXME|XXX)\b|\[citation needed\]|\[INSERT|lorem ipsum",
    re.IGNORECASE
)
VAGUE_CITATION_RE = re.compile(
    r"^\[\^[^\]]+\]:\s*(?:an?\s+)?(?:interviews?|earnings calls?|conference talks?|reports?|various"
    r"|news reports|media reports|public statements)\.?\s*$",
    re.IGNORECASE
)
TEMPORAL_RE = re.compile(
    r"\b(?:as of this writing|at the time of writing|as of now|currently|recently|to date)\b",
    re.IGNORECASE
)
EVALUATIVE_FRAMING_RE = re.compile(
    r"\brepresents? an? (?:complete|significant|major|fundamental|dramatic|clear|critical)\b"
    r"|\bproved (?:decisive|crucial|pivotal|instrumental)\b",
    re.IGNORECASE
)
TONE_RE = re.compile(
    r"\b(?:remarkable|unprecedented|formidable|alarming|troubling|devastating|watershed"
    r"|groundbreaking|pioneering|game-changing|staggering|shocking)\b",
    re.IGNORECASE
)
FALSE_CERTAINTY_RE = re.compile(
    r"\b(?:clearly|undoubtedly|obviously|certainly|unquestionably|it is evident that|without doubt)\b",
    re.IGNORECASE
)
PRESCRIPTIVE_RE = re.compile(
    r"\b(?:we|you|policymakers|governments|labs|researchers) (?:should|must|need to|ought to)\b"
    r"|\bit is (?:essential|imperative|crucial) (?:that|to)\b",
    re.IGNORECASE
)
FLATTERY_RE = re.compile(
    r"\b(?:prominent|renowned|world-class|leading expert|visionary|exceptional|brilliant|legendary"
    r"|highly respected|distinguished)\b",
    re.IGNORECASE
)
LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+")
BOLD_LABEL_RE = re.compile(r"^\*\*[^*]+:\*\*|^\*\*[^*]+\*\*:")


def check_tilde_dollar(content: str, ctx: RuleContext) -> List[str]:
    return _scan(TILDE_DOLLAR_RE, content)


def check_markdown_lists(content: str, ctx: RuleContext) -> List[str]:
    """List items that directly follow a paragraph line with no blank line."""
    hits = []
    previous = ""
    for _, line in body_lines(content):
        if LIST_ITEM_RE.match(line) and previous.strip() \
                and not LIST_ITEM_RE.match(previous) \
                and not previous.lstrip().startswith(("#", "|", "<", ">")) \
                and not previous.startswith((" ", "\t")):
            hits.append(line.strip())
        previous = line
    return hits


def check_consecutive_bold_labels(content: str, ctx: RuleContext) -> List[str]:
    """``**Label:** text`` lines stacked without list markers render as one paragraph."""
    hits = []
    previous = ""
    for _, line in body_lines(content):
        if BOLD_LABEL_RE.match(line) and BOLD_LABEL_RE.match(previous):
            hits.append(line.strip())
        previous = line
    return hits


def check_placeholders(content: str, ctx: RuleContext) -> List[str]:
    return _scan(PLACEHOLDER_RE, content)


def check_vague_citations(content: str, ctx: RuleContext) -> List[str]:
    return _scan(VAGUE_CITATION_RE, content)


def check_temporal_artifacts(content: str, ctx: RuleContext) -> List[str]:
    return _scan(TEMPORAL_RE, content)


def check_evaluative_framing(content: str, ctx: RuleContext) -> List[str]:
    return _scan(EVALUATIVE_FRAMING_RE, content)


def check_tone_markers(content: str, ctx: RuleContext) -> List[str]:
    return _scan(TONE_RE, content)


def check_false_certainty(content: str, ctx: RuleContext) -> List[str]:
    return _scan(FALSE_CERTAINTY_RE, content)


def check_prescriptive_language(content: str, ctx: RuleContext) -> List[str]:
    return _scan(PRESCRIPTIVE_RE, content)


def check_unsourced_biographical_claims(content: str, ctx: RuleContext) -> List[str]:
    if not ctx.is_person_or_org:
        return []
    body = "\n".join(line for _, line in body_lines(content))
    return [f"{f['label']}: {f['line']}" for f in find_unsourced_biographical_claims(body)]


def check_evaluative_flattery(content: str, ctx: RuleContext) -> List[str]:
    return _scan(FLATTERY_RE, content)


RULES: Dict[str, RuleFn] = {
    'dollar-signs': check_dollar_signs,
    'comparison-operators': check_comparison_operators,
    'frontmatter-schema': check_frontmatter_schema,
    'entitylink-ids': check_entitylink_ids,
    'internal-links': check_internal_links,
    'fake-urls': check_fake_urls,
    'component-props': check_component_props,
    'citation-urls': check_citation_urls,
    'tilde-dollar': check_tilde_dollar,
    'markdown-lists': check_markdown_lists,
    'consecutive-bold-labels': check_consecutive_bold_labels,
    'placeholders': check_placeholders,
    'vague-citations': check_vague_citations,
    'temporal-artifacts': check_temporal_artifacts,
    'evaluative-framing': check_evaluative_framing,
    'tone-markers': check_tone_markers,
    'false-certainty': check_false_certainty,
    'prescriptive-language': check_prescriptive_language,
    'unsourced-biographical-claims': check_unsourced_biographical_claims,
    'evaluative-flattery': check_evaluative_flattery,
}


# ── Engine ──────────────────────────────────────────────────────────────────

def run_rule(rule: str, content: str, ctx: RuleContext, severity: IssueSeverity) -> Optional[ValidationIssue]:
    """Run one rule; None when it finds nothing."""
    hits = RULES[rule](content, ctx)
    if not hits:
        return None
    return ValidationIssue(
        rule=rule,
        severity=severity,
        count=len(hits),
        output="\n".join(hits[:MAX_OUTPUT_MATCHES])
    )


def run_rules(content: str, ctx: RuleContext) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
    """Run every rule. Returns ``(critical, quality)``."""
    critical = [
        issue for issue in (run_rule(r, content, ctx, IssueSeverity.CRITICAL) for r in CRITICAL_RULES)
        if issue is not None
    ]
    quality = [
        issue for issue in (run_rule(r, content, ctx, IssueSeverity.QUALITY) for r in QUALITY_RULES)
        if issue is not None
    ]
    return critical, quality


def _fix_body(content: str, pattern: re.Pattern, replacement: str) -> Tuple[str, int]:
    """Apply ``pattern`` outside frontmatter, code fences and inline code."""
    lines = content.split("\n")
    prose = {index for index, _ in body_lines(content)}
    total = 0
    for index in prose:
        line = lines[index]
        if _is_import(line):
            continue
        # Leave inline code spans untouched
        parts = re.split(r"(`[^`\n]*`)", line)
        for i in range(0, len(parts), 2):
            parts[i], n = pattern.subn(replacement, parts[i])
            total += n
        lines[index] = "".join(parts)
    return "\n".join(lines), total


def fix_dollar_signs(content: str) -> Tuple[str, int]:
    return _fix_body(content, UNESCAPED_DOLLAR_RE, r"\\$")


def fix_comparison_operators(content: str) -> Tuple[str, int]:
    return _fix_body(content, BARE_LT_DIGIT_RE, "&lt;")


AUTO_FIXES: Dict[str, Callable[[str], Tuple[str, int]]] = {
    'dollar-signs': fix_dollar_signs,
    'comparison-operators': fix_comparison_operators,
}
