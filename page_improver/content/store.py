"""
Content store.

Read-only access to the page index and entity id registry written by the
site build, plus read/write access to page MDX files and their edit
logs. Loaded indexes are cached on the store; clear_cache() resets them.
"""

import json
import logging
import os
from typing import Dict, List, Optional

from ..core.models.errors import AmbiguousPageError, ConfigurationError
from ..core.models.page import EditLogEntry, PageRecord
from ..utils.config import Config
from .transforms import extract_frontmatter, parse_ratings, today_iso


logger = logging.getLogger(__name__)


class ContentStore:
    """Pages, files, entity registry and edit logs under PROJECT_ROOT."""

    def __init__(self, config: Config):
        self.config = config
        self.root = config.PROJECT_ROOT
        self._pages: Optional[List[PageRecord]] = None
        self._entities: Optional[Dict[str, str]] = None

    def clear_cache(self):
        self._pages = None
        self._entities = None

    # ── Page index ──────────────────────────────────────────────────────────

    def load_pages(self) -> List[PageRecord]:
        """
        Load the page index.

        Raises:
            ConfigurationError: If the index file does not exist
        """
        if self._pages is not None:
            return self._pages

        path = self.config.resolve(self.config.PAGES_FILE)
        if not os.path.exists(path):
            raise ConfigurationError(
                f"Page index not found: {path} (build the site first)",
                config_key="PAGES_FILE"
            )
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        pages = []
        for item in raw:
            if isinstance(item, dict) and item.get("id"):
                pages.append(PageRecord.model_validate(item))
        self._pages = pages
        logger.debug(f"Loaded {len(pages)} pages from {path}")
        return pages

    def find_page(self, query: str) -> Optional[PageRecord]:
        """
        Find a page by exact id, else by a unique id or title substring.

        Returns:
            The page with frontmatter ratings merged in, or None

        Raises:
            AmbiguousPageError: If a partial query matches several pages
        """
        pages = self.load_pages()
        for page in pages:
            if page.id == query:
                return self._with_frontmatter_ratings(page)

        lowered = query.lower()
        matches = [p for p in pages if query in p.id or lowered in p.title.lower()]
        if len(matches) == 1:
            return self._with_frontmatter_ratings(matches[0])
        if len(matches) > 1:
            raise AmbiguousPageError(query, [f"{p.id} ({p.title})" for p in matches])
        return None

    def _with_frontmatter_ratings(self, page: PageRecord) -> PageRecord:
        path = self.file_path(page)
        if not os.path.exists(path):
            return page
        with open(path, "r", encoding="utf-8") as f:
            frontmatter = extract_frontmatter(f.read())
        if not frontmatter:
            return page
        ratings = parse_ratings(frontmatter)
        if not ratings:
            return page
        return page.model_copy(update={"ratings": {**page.ratings, **ratings}})

    def list_candidates(
        self,
        limit: int = 20,
        max_quality: float = 80,
        min_importance: float = 30
    ) -> List[PageRecord]:
        """Pages most in need of improvement, ranked by importance minus quality."""
        candidates = [
            p for p in self.load_pages()
            if (p.quality or 0) <= max_quality
            and (p.reader_importance or 0) >= min_importance
            and "/models/" not in p.path
        ]
        candidates.sort(key=lambda p: (p.reader_importance or 0) - (p.quality or 0), reverse=True)
        return candidates[:limit]

    # ── Files ───────────────────────────────────────────────────────────────

    def file_path(self, page: PageRecord) -> str:
        clean = page.path.strip("/")
        return os.path.join(self.root, self.config.CONTENT_DIR, clean + ".mdx")

    def read_content(self, page: PageRecord) -> str:
        with open(self.file_path(page), "r", encoding="utf-8") as f:
            return f.read()

    def write_content(self, page: PageRecord, content: str) -> str:
        path = self.file_path(page)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    # ── Entity registry ─────────────────────────────────────────────────────

    def entities(self) -> Dict[str, str]:
        """``E##`` -> slug. Empty when no registry file exists."""
        if self._entities is not None:
            return self._entities

        path = self.config.resolve(self.config.ID_REGISTRY_FILE)
        entities: Dict[str, str] = {}
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            table = data.get("entities") or data.get("byNumericId") or {}
            entities = {str(k).upper(): str(v) for k, v in table.items()}
        else:
            logger.warning(f"Entity id registry not found: {path}")
        self._entities = entities
        return entities

    def slug_to_id(self) -> Dict[str, str]:
        return {slug: entity_id for entity_id, slug in self.entities().items()}

    def entity_titles(self) -> Dict[str, str]:
        """slug -> page title, for entities that have a page."""
        try:
            pages = self.load_pages()
        except ConfigurationError:
            return {}
        slugs = set(self.entities().values())
        return {p.id: p.title for p in pages if p.id in slugs}

    # ── Edit logs ───────────────────────────────────────────────────────────

    def edit_log_path(self, page_id: str) -> str:
        return os.path.join(self.config.resolve(self.config.EDIT_LOG_DIR), f"{page_id}.jsonl")

    def append_edit_log(self, page_id: str, entry: EditLogEntry) -> str:
        path = self.edit_log_path(page_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.model_dump(by_alias=True, exclude_none=True)) + "\n")
        logger.info(f"Edit log updated for {page_id}: {entry.note or entry.tool}")
        return path

    def read_edit_log(self, page_id: str) -> List[EditLogEntry]:
        path = self.edit_log_path(page_id)
        if not os.path.exists(path):
            return []
        entries = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    entries.append(EditLogEntry.model_validate(json.loads(line)))
        return entries


def default_requested_by() -> str:
    return os.environ.get("PAGE_IMPROVER_REQUESTED_BY") or os.environ.get("USER") or "system"


def make_edit_log_entry(tier: str, directions: str) -> EditLogEntry:
    note = f"Improved ({tier}): {directions[:120]}" if directions else f"Improved ({tier})"
    return EditLogEntry(
        date=today_iso(),
        tool="crux-improve",
        agency="ai-directed",
        requested_by=default_requested_by(),
        note=note
    )
