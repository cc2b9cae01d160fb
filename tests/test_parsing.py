"""
Tests for the structured-response recovery parser.
"""

import json

from page_improver.core.models.research import ResearchResult
from page_improver.core.models.review import AnalysisResult, ReviewResult
from page_improver.core.parsing import (
    extract_complete_json,
    extract_partial_array,
    parse_and_validate,
    parse_json_from_llm,
    strip_code_fences,
)


def fallback(raw, error):
    return {"fallback": True, "error": error}


def source(i):
    return {
        "topic": "t",
        "title": f"Source {i}",
        "url": f"https://example.org/{i}",
        "facts": [f"fact {i}"],
        "relevance": "high",
    }


def test_strip_code_fences():
    """Test that fence markers are removed."""
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1]\n```') == '[1]'


def test_extract_complete_json_ignores_braces_in_strings():
    """Test that braces inside quoted strings do not change depth."""
    text = '{"a": "has } and { inside", "b": "escaped \\" quote }"} trailing'
    assert extract_complete_json(text, 0) == '{"a": "has } and { inside", "b": "escaped \\" quote }"}'


def test_extract_complete_json_unclosed():
    """Test that an unclosed value yields None."""
    assert extract_complete_json('{"a": [1, 2', 0) is None


def test_parse_embedded_object():
    """Test that an object surrounded by prose parses to the object itself."""
    obj = {"valid": False, "issues": ["x"], "nested": {"k": [1, 2]}}
    raw = f"Here is my review:\n```json\n{json.dumps(obj)}\n```\nHope that helps."
    assert parse_json_from_llm(raw, "review", fallback) == obj


def test_parse_array_without_object():
    """Test that a bare JSON array is accepted."""
    assert parse_json_from_llm("[1, 2, 3]", "x", fallback) == [1, 2, 3]


def test_parse_garbage_returns_fallback():
    """Test that unparseable text returns the fallback with an error."""
    result = parse_json_from_llm("I could not do it.", "analyze", fallback)
    assert result["fallback"] is True
    assert "analyze" in result["error"]


def test_parse_empty_and_none():
    """Test that empty input never raises."""
    assert parse_json_from_llm("", "x", fallback)["fallback"] is True
    assert parse_json_from_llm(None, "x", fallback)["fallback"] is True


def test_truncated_sources_are_salvaged():
    """Test that exactly the complete sources survive truncation."""
    complete = ", ".join(json.dumps(source(i)) for i in range(3))
    raw = '{"summary": "Overview", "sources": [' + complete + ', {"topic": "t", "title": "cut'
    result = parse_json_from_llm(raw, "research", fallback)

    assert [s["title"] for s in result["sources"]] == ["Source 0", "Source 1", "Source 2"]
    assert result["summary"] == "Overview"


def test_salvaged_string_fields_last_occurrence_wins():
    """Test that a repeated key in truncated output keeps its last value."""
    raw = '{"reason": "first draft", "recommendedTier": "quick", "reason": "final", "newDevelopments": ["cut'
    result = parse_json_from_llm(raw, "triage", fallback)

    assert result["reason"] == "final"
    assert result["recommendedTier"] == "quick"


def test_extract_partial_array_stops_at_non_object():
    """Test that salvage stops at the first non-object element."""
    text = '[{"a": 1}, {"b": 2}, 3, {"c": 4}]'
    assert extract_partial_array(text) == [{"a": 1}, {"b": 2}]
    assert extract_partial_array('{"a": 1}') == []


def test_parse_and_validate_valid():
    """Test that a valid object validates without error."""
    review = parse_and_validate('{"valid": true, "issues": []}', ReviewResult, "review",
                                lambda raw, error: ReviewResult(valid=True, issues=[], error=error))
    assert review.valid is True
    assert review.error is None
    assert not review.degraded


def test_parse_and_validate_degrades_bad_list_items():
    """Test that invalid sources are dropped and the result carries an error."""
    bad = {"title": "No url or facts"}
    raw = json.dumps({"sources": [source(1), bad, source(2)], "summary": "s"})
    research = parse_and_validate(
        raw, ResearchResult, "research",
        lambda raw_text, error: ResearchResult(sources=[], raw=raw_text, error=error)
    )

    assert [s.title for s in research.sources] == ["Source 1", "Source 2"]
    assert research.summary == "s"
    assert research.degraded


def test_parse_and_validate_non_object_uses_fallback():
    """Test that a JSON array where an object is expected falls back."""
    analysis = parse_and_validate(
        "[1, 2]", AnalysisResult, "analyze",
        lambda raw, error: AnalysisResult(raw=raw, error=error)
    )
    assert analysis.degraded
    assert analysis.research_needed == []


def test_parse_and_validate_camel_case_aliases():
    """Test that camelCase keys from the model populate snake_case fields."""
    analysis = parse_and_validate(
        '{"currentState": "thin", "researchNeeded": ["funding"], "objectivityIssues": ["tone"]}',
        AnalysisResult, "analyze",
        lambda raw, error: AnalysisResult(raw=raw, error=error)
    )
    assert analysis.current_state == "thin"
    assert analysis.research_needed == ["funding"]
    assert analysis.objectivity_issues == ["tone"]
