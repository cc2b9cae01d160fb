"""
Prompt templates for the pipeline phases.

Each builder is a pure function of its inputs so prompts can be tested
without a model. Structured phases ask for a single JSON object; the
synthesis phases ask for a complete MDX document starting with ``---``.
"""

import json
import re
from typing import Any, List, Optional

from ..core.models.page import PageRecord
from ..core.models.research import SourceCacheEntry
from ..core.models.review import AnalysisResult


def _dump(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(value, indent=2)


def _numbered(items: List[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))


# ── Analyze ─────────────────────────────────────────────────────────────────

def analyze_prompt(page: PageRecord, file_path: str, directions: str, content: str) -> str:
    return f"""Analyze this wiki page for improvement opportunities.

## Page Info
- ID: {page.id}
- Title: {page.title}
- Quality: {page.quality if page.quality is not None else 'N/A'}
- Importance: {page.reader_importance if page.reader_importance is not None else 'N/A'}
- Path: {file_path}

## User-Specified Directions
{directions or 'No specific directions provided - do a general quality improvement.'}

## Current Content
```mdx
{content}
```

## Analysis Required

Analyze the page and output a JSON object with:

1. **currentState**: Brief assessment of the page's current quality
2. **gaps**: Array of specific content gaps or issues
3. **researchNeeded**: Array of specific topics to research (for SCRY/web search)
4. **improvements**: Array of specific improvements to make, prioritized
5. **entityLinks**: Array of entity IDs that should be linked but aren't
6. **citations**: Assessment of citation quality (count, authoritative sources, gaps)
7. **objectivityIssues**: Array of specific objectivity or neutrality problems (loaded language, evaluative labels, asymmetric framing, missing counterarguments)

Focus especially on the user's directions: "{directions or 'general improvement'}"

Output ONLY valid JSON, no markdown code blocks."""


# ── Research ────────────────────────────────────────────────────────────────

def research_prompt(page: PageRecord, topics: List[str], deep: bool) -> str:
    steps = (
        "1. Search SCRY (EA Forum/LessWrong) for relevant discussions\n"
        "2. Search the web for authoritative sources"
        if deep else
        "1. Search the web for authoritative sources"
    )
    return f"""Research the following topics to improve a wiki page about "{page.title}".

## Topics to Research
{_numbered(topics)}

## Research Instructions

For each topic:
{steps}

Use the tools provided to search. For each source found, extract:
- Title
- URL
- Author (if available)
- Date (if available)
- Key facts or quotes relevant to the topic

After researching, output a JSON object with:
{{
  "sources": [
    {{
      "topic": "which research topic this addresses",
      "title": "source title",
      "url": "source URL",
      "author": "author name",
      "date": "publication date",
      "facts": ["key fact 1", "key fact 2"],
      "relevance": "high/medium/low"
    }}
  ],
  "summary": "brief summary of what was found"
}}

Output ONLY valid JSON at the end."""


# ── Improve ─────────────────────────────────────────────────────────────────

QUICK_TIER_RULES = """
### Quick Tier Rules (NO RESEARCH AVAILABLE)
You have NO new research sources. Therefore:
- **DO NOT add new footnote citations**. Any new [^N] citation would be fabricated.
- **DO NOT invent citation sources** such as "Based on statements in blog posts" without a specific URL.
- **KEEP all existing citations exactly as they are**. Do not renumber, modify or remove existing footnotes.
- You MAY fix formatting, improve prose clarity, add EntityLinks, fix escaping and restructure sections.
- If you add a NEW specific claim that needs verification, flag it with {/* NEEDS CITATION */}.
- Use {/* NEEDS CITATION */} sparingly: at most 3-5 per page.
"""

PERSON_STRUCTURE = """
**Person pages MUST include, in order:**
1. **Quick Assessment**: a summary table (Primary Role, Key Contributions, Key Publications, Institutional Affiliation). Keep and improve an existing one.
2. **Overview**: a 1-3 paragraph narrative introduction. This is not the same as Background.
3. **Background** / **Professional Background**: career history, education, positions held.
4. Additional sections as appropriate.
"""

ORG_STRUCTURE = """
**Organization pages MUST include an Overview section** as the first content section: a 1-3 paragraph summary of the organization's mission and key activities.
"""

DEFAULT_STRUCTURE = """
**All pages should include an Overview section** as the first content section when the page is longer than 500 words.
"""


def improve_prompt(
    page: PageRecord,
    file_path: str,
    import_path: str,
    directions: str,
    analysis: AnalysisResult,
    research: Any,
    objectivity_context: str,
    content: str,
    entity_lookup: str,
    tier: str
) -> str:
    if "/people/" in page.path:
        structure = PERSON_STRUCTURE
    elif "/organizations/" in page.path:
        structure = ORG_STRUCTURE
    else:
        structure = DEFAULT_STRUCTURE

    return f"""Improve this wiki page based on the analysis and research.

## Page Info
- ID: {page.id}
- Title: {page.title}
- File: {file_path}
- Import path for components: {import_path}

## User Directions
{directions or 'General quality improvement'}

## Analysis
{_dump(analysis)}

## Research Sources
{_dump(research)}
{objectivity_context}
## Current Content
```mdx
{content}
```

## Improvement Instructions

### Content Preservation (CRITICAL)
You are EDITING an existing page, not rewriting it from scratch. Preserve:
- **ALL existing sections**: do not drop, merge away or summarize existing sections
- **ALL existing footnotes and citations**: keep every [^N] reference and its definition
- **ALL existing EntityLinks and data tables**
- **Specific details**: dates, numbers, names and quotes verbatim
- **Word count**: your output should be AT LEAST as long as the input

### Section Deduplication
Do not create sections that repeat content covered elsewhere on the page. Do not add thin or padding sections.

### No Editorial Meta-Comments
The only acceptable MDX comments are {{/* NEEDS CITATION */}} markers.
{QUICK_TIER_RULES if tier == 'quick' else ''}
### Wiki Conventions
- Use GFM footnotes for prose citations: [^1], [^2], etc.
- Use inline links in tables: [Source Name](url)
- EntityLinks use **numeric IDs**: `<EntityLink id="E22">Anthropic</EntityLink>`
- Escape dollar signs: \\$100M not $100M
- Write "less than 5" rather than "<5"
- Import from: '{import_path}'

### Entity Lookup Table

Use the numeric IDs below when writing EntityLinks. The format is: E## = slug -> "Display Name"
ONLY use IDs from this table. If an entity is not listed here, use plain text instead.

```
{entity_lookup}
```

### Quality Standards
- Add citations from the research sources
- Replace vague claims with specific numbers
- Add EntityLinks for related concepts (using E## IDs from the lookup table above)
- Ensure tables have source links
- **NEVER use vague citations** like "Interview", "Earnings call", "Conference talk", "Reports", "Various"
- Always specify the exact source name, date and context

### Objectivity & Neutrality (CRITICAL)
Write in an encyclopedic, analytical tone, not advocacy or journalism.
- NEVER use evaluative adjectives: "remarkable", "unprecedented", "formidable", "alarming", "troubling", "devastating"
- NEVER use "represents a [judgment]" or "proved [judgment]" framing; state what happened
- NEVER use evaluative labels in tables ("Concerning", "Weak", "Poor"); use data
- Present competing perspectives with equal depth and attribute opinions explicitly
- Hedge uncertain claims: "evidence suggests", "approximately", "estimated at"

### Biographical Accuracy (CRITICAL for person/org pages)
- NEVER add biographical facts from training data; only from research sources or existing cited content
- NEVER guess dates, statistics or affiliations
- Remove flattery ("prominent researcher", "exceptional track record")
- Prefer omission over hallucination
- Every specific claim needs a citation

### Required Page Structure
{structure}
### Bare URLs
Convert bare URLs in prose to markdown links. Leave URLs inside footnote definitions and existing links as-is.

### Related Pages (DO NOT INCLUDE)
Do NOT include "## Related Pages", "## See Also" or "## Related Content" sections; they are rendered automatically.
Remove any existing such sections, and any <Backlinks> usage and its import if no other usage remains.

### Frontmatter Rules
- Do NOT add a `metrics:` block; it is computed at build time.
- Do NOT change the `quality:` field; a separate grading pipeline manages it.

### Output Format
Output the COMPLETE improved MDX file content, including all frontmatter.
Do not wrap it in a markdown code block.

Start your response with "---" (the frontmatter delimiter)."""


# ── Section rewrite ─────────────────────────────────────────────────────────

def section_rewrite_prompt(
    page: PageRecord,
    section_id: str,
    section_content: str,
    sources: List[SourceCacheEntry],
    directions: str
) -> str:
    if sources:
        source_block = "\n\n".join(
            f"[{src.id}] {src.title}\nURL: {src.url}\n{src.content[:2000]}" for src in sources
        )
        citation_rules = (
            "Cite sources with footnote markers using their ids, e.g. [^SRC-1], and add a matching "
            "definition line `[^SRC-1]: [Title](url)` at the end of the section. "
            "Record every sourced claim in claimMap."
        )
    else:
        source_block = "(no verified sources for this section)"
        citation_rules = "Do not add new footnotes. Keep existing citations unchanged."

    return f"""Rewrite one section of the wiki page "{page.title}" (id: {page.id}).

## Directions
{directions or 'General quality improvement'}

## Section: {section_id}
```mdx
{section_content}
```

## Verified Sources
{source_block}

## Rules
- Keep the section heading line exactly as it is.
- Preserve every existing fact, footnote reference and EntityLink.
- {citation_rules}
- Escape dollar signs as \\$. Use a neutral, encyclopedic tone.
- List claims you could not source in unsourceableClaims.

## Output Format
Output ONLY a JSON object:
{{
  "content": "the rewritten section, heading included",
  "claimMap": [{{"claim": "text of the claim", "sourceId": "SRC-1"}}],
  "unsourceableClaims": ["claim that needs a source"]
}}"""


# ── Enrich ──────────────────────────────────────────────────────────────────

def entity_link_prompt(content: str, entity_lookup: str) -> str:
    return f"""Find mentions in this wiki page that should be EntityLinks.

## Entities (E## = slug -> "Display Name")
```
{entity_lookup}
```

## Page
```mdx
{content}
```

For each entity above that is mentioned in the prose but is not yet wrapped in an <EntityLink>,
return the exact text of its first mention. Only use ids from the table.

Output ONLY a JSON object:
{{
  "replacements": [
    {{"searchText": "exact text as it appears", "entityId": "E22", "displayName": "text to show"}}
  ]
}}"""


# ── Review ──────────────────────────────────────────────────────────────────

def review_prompt(page: PageRecord, content: str) -> str:
    return f"""Review this improved wiki page for quality and wiki conventions.

## Page: {page.title}

## Improved Content
```mdx
{content}
```

## Review Checklist

Check for:
1. **Frontmatter**: Valid YAML, required fields present
2. **Dollar signs**: All escaped as \\$ (not raw $)
3. **Comparisons**: No <NUMBER patterns (use "less than")
4. **EntityLinks**: Properly formatted with valid IDs
5. **Citations**: Mix of footnotes (prose) and inline links (tables)
6. **Tables**: Properly formatted markdown tables
7. **Components**: Imports match usage
8. **Objectivity**: No evaluative adjectives, no "represents a [judgment]" framing, no evaluative table labels, competing perspectives given equal depth, opinions attributed to specific actors

Output a JSON review:
{{
  "valid": true/false,
  "issues": ["issue 1", "issue 2"],
  "objectivityIssues": ["specific objectivity problem 1"],
  "suggestions": ["optional improvement 1"],
  "qualityScore": 70-100
}}

Output ONLY valid JSON."""


# ── Gap fill ────────────────────────────────────────────────────────────────

def gap_fill_prompt(page: PageRecord, content: str, issues: List[str]) -> str:
    return f"""Fix the issues identified in the review of this wiki page.

## Page: {page.title}

## Issues to Fix
{_numbered(issues)}

## Current Content
```mdx
{content}
```

Fix each issue. Output the COMPLETE fixed MDX content.
Start your response with "---" (the frontmatter delimiter)."""


# ── Triage ──────────────────────────────────────────────────────────────────

def triage_prompt(
    page: PageRecord,
    last_edited: str,
    preview: str,
    web_results: str,
    scry_results: str
) -> str:
    return f"""You are triaging whether a wiki page needs updating.

## Page
- Title: {page.title}
- ID: {page.id}
- Last edited: {last_edited}
- Content preview: {preview}

## Recent Web Results
{web_results}

## Recent EA Forum / LessWrong Results (SCRY)
{scry_results}

## Task

Based on the search results, determine if there are significant new developments since {last_edited} that warrant updating this page.

Classify into one of these tiers:

- **skip**: No meaningful new developments found. Page content is still current.
- **quick**: Minor updates only: small corrections, formatting or very minor new info. (~$2-3)
- **standard**: Notable new developments that should be added: new papers, policy changes, funding rounds. (~$5-8)
- **deep**: Major developments requiring thorough research: new organizations, major incidents. (~$10-15)

Output ONLY a JSON object:
{{
  "recommendedTier": "skip|quick|standard|deep",
  "reason": "1-2 sentence explanation of why this tier",
  "newDevelopments": ["list", "of", "specific", "new", "developments", "found"]
}}"""


# ── Adversarial review ──────────────────────────────────────────────────────

def adversarial_review_prompt(page: PageRecord, content: str, standard_data: str) -> str:
    return f"""You are a skeptical research editor reviewing a draft wiki page. Your job is to find SPECIFIC, ACTIONABLE gaps, not to praise what is already there.

## Page: {page.title}
## Path: {page.path}

## Content to Review
```mdx
{content}
```

## Five Diagnostic Checks

Run ALL five checks and report every gap you find.

### 1. Fact Density
Flag any paragraph that contains ZERO specific facts (numbers, dates, named people, named organizations, direct quotes or cited URLs).
- For each: quote its first sentence and state what type of specific fact is missing.

### 2. Speculation Detection
Flag claims presented as facts but not supported by any cited source (footnote, inline URL or <R> tag).
- For each: quote the claim and explain why it is speculative.

### 3. Missing Standard Data
For a page about "{page.title}", standard data includes: {standard_data}.
Flag each type of standard data that is MISSING from the page.
- For each: describe what is missing and write a targeted search query that would find it.

### 4. Redundancy
Flag any two sections that substantially cover the same ground.
- For each pair: name the two sections and describe the overlap.

### 5. Source Gap
List the 3 most important questions a skeptical reader would ask that the page does NOT answer. Focus on verifiable facts.
- For each: state the question and write a targeted search query to answer it.

## Output Format

Output ONLY a JSON object matching this exact schema:

{{
  "gaps": [
    {{
      "type": "fact-density" | "speculation" | "missing-standard-data" | "redundancy" | "source-gap",
      "description": "specific description of the gap",
      "reResearchQuery": "targeted search query (omit for edit-only gaps)",
      "actionType": "re-research" | "edit" | "none"
    }}
  ],
  "needsReResearch": true | false,
  "reResearchQueries": ["query 1", "query 2"],
  "overallAssessment": "1-2 sentence summary of the most important gaps"
}}

Rules:
- "re-research" = a targeted web/SCRY search can fill this gap with verifiable data
- "edit" = can be fixed without new sources (merge sections, remove speculation, rephrase)
- "none" = advisory, no action required
- If there are NO gaps, return {{ "gaps": [], "needsReResearch": false, "reResearchQueries": [], "overallAssessment": "Page meets quality standards." }}"""


def page_preview(content: str, chars: int = 500) -> str:
    """First ``chars`` characters after the frontmatter."""
    return re.sub(r"^---[\s\S]*?---\n", "", content, count=1)[:chars]


def components_import_path() -> str:
    return "@components/wiki"


def directions_with(extra: Optional[str], directions: str) -> str:
    """Append ``extra`` to ``directions`` as a new paragraph."""
    if not extra:
        return directions
    return f"{directions}\n\n{extra}" if directions else extra
