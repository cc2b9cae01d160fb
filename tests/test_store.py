"""
Tests for the content store.
"""

import json

import pytest

from page_improver.content.store import ContentStore, make_edit_log_entry
from page_improver.core.models.errors import AmbiguousPageError, ConfigurationError
from page_improver.utils.config import TestingConfig


def test_find_page_exact(store):
    """Test exact id lookup, even when the id is a substring of another."""
    page = store.find_page("ai-safety")
    assert page.id == "ai-safety"
    assert page.title == "AI Safety"


def test_find_page_unique_fragment(store):
    """Test lookup by a fragment that matches one page."""
    assert store.find_page("jane").id == "jane-doe"
    assert store.find_page("Agendas").id == "ai-safety-research"


def test_find_page_ambiguous(store):
    """Test that a fragment matching several pages raises."""
    with pytest.raises(AmbiguousPageError) as exc_info:
        store.find_page("safety")
    assert len(exc_info.value.candidates) == 2


def test_find_page_none(store):
    """Test that an unmatched query returns None."""
    assert store.find_page("nonexistent-page") is None


def test_find_page_merges_ratings(store):
    """Test that frontmatter ratings are merged into the record."""
    page = store.find_page("jane-doe")
    assert page.ratings == {"objectivity": 5.0, "rigor": 6.0}
    assert page.objectivity == 5.0
    assert page.is_person_or_org


def test_missing_page_index(tmp_path):
    """Test that a missing index is a configuration error."""
    store = ContentStore(TestingConfig(PROJECT_ROOT=str(tmp_path)))
    with pytest.raises(ConfigurationError):
        store.load_pages()


def test_list_candidates(store):
    """Test ranking by importance minus quality, excluding model pages."""
    candidates = store.list_candidates()
    assert [p.id for p in candidates] == ["jane-doe", "ai-safety-research", "ai-safety"]
    assert [p.id for p in store.list_candidates(limit=1)] == ["jane-doe"]


def test_file_paths(store, project):
    """Test that page paths map onto MDX files under the content dir."""
    page = store.find_page("jane-doe")
    path = store.file_path(page)
    assert path == str(project / "content" / "docs" / "knowledge-base" / "people" / "jane-doe.mdx")
    assert store.read_content(page).startswith("---\ntitle: Jane Doe")


def test_entities(store):
    """Test registry loading and the reverse mapping."""
    assert store.entities() == {"E1": "jane-doe", "E2": "ai-safety"}
    assert store.slug_to_id() == {"jane-doe": "E1", "ai-safety": "E2"}
    assert store.entity_titles() == {"jane-doe": "Jane Doe", "ai-safety": "AI Safety"}


def test_entities_alternate_key(project, config):
    """Test registries keyed by byNumericId."""
    (project / "data" / "id-registry.json").write_text(json.dumps({"byNumericId": {"e5": "x"}}))
    assert ContentStore(config).entities() == {"E5": "x"}


def test_entities_missing_registry(tmp_path):
    """Test that a missing registry gives an empty table."""
    store = ContentStore(TestingConfig(PROJECT_ROOT=str(tmp_path)))
    assert store.entities() == {}


def test_clear_cache(store, project):
    """Test that cached indexes are reloaded after clear_cache."""
    store.load_pages()
    (project / "app" / "src" / "data" / "pages.json").write_text(json.dumps([{"id": "only"}]))
    assert len(store.load_pages()) == 4
    store.clear_cache()
    assert [p.id for p in store.load_pages()] == ["only"]


def test_edit_log(store, monkeypatch):
    """Test appending and reading edit log entries."""
    monkeypatch.setenv("PAGE_IMPROVER_REQUESTED_BY", "alex")
    store.append_edit_log("jane-doe", make_edit_log_entry("standard", "add funding"))
    store.append_edit_log("jane-doe", make_edit_log_entry("quick", ""))

    entries = store.read_edit_log("jane-doe")
    assert [e.note for e in entries] == ["Improved (standard): add funding", "Improved (quick)"]
    assert entries[0].tool == "crux-improve"
    assert entries[0].agency == "ai-directed"
    assert entries[0].requested_by == "alex"
    assert store.read_edit_log("ai-safety") == []
