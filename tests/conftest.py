"""
Shared fixtures for Page Improver tests.

Provides a scripted fake model client, a temporary project tree with a
page index, id registry and MDX pages, and a PipelineContext wired to
both.
"""

import json
from typing import Dict, List, Optional, Union

import pytest

from page_improver.agent.tools import ToolRegistry
from page_improver.content.store import ContentStore
from page_improver.core.models.llm import LLMRequest, LLMResponse
from page_improver.pipeline.context import PipelineContext
from page_improver.utils.config import TestingConfig


JANE_DOE_MDX = """---
title: Jane Doe
description: AI safety researcher.
quality: 40
lastEdited: "2025-01-01"
ratings:
  objectivity: 5
  rigor: 6
---
import {EntityLink} from '@components/wiki';

## Background

Jane Doe works on alignment at a research lab. She has written about interpretability
and evaluation methods for several years and speaks at conferences on the topic.

## Research

Her work covers reward modeling and scalable oversight, with papers on debate
and recursive reward modeling published alongside collaborators.
"""

AI_SAFETY_MDX = """---
title: AI Safety
description: The field of AI safety.
lastEdited: "2024-06-01"
---

## Overview

AI safety studies how to make advanced systems behave as intended.
"""

IMPROVED_MDX = """---
title: Jane Doe
description: AI safety researcher.
quality: 40
lastEdited: "2025-01-01"
---
import {EntityLink} from '@components/wiki';

## Background

Jane Doe works on alignment at <EntityLink id="ai-safety">AI Safety</EntityLink> labs.[^1]

[^1]: [Lab profile](https://lab.example.org/jane)

## Related Pages

<Backlinks />
"""

PAGES = [
    {
        "id": "jane-doe",
        "title": "Jane Doe",
        "path": "/knowledge-base/people/jane-doe/",
        "quality": 40,
        "readerImportance": 90,
    },
    {
        "id": "ai-safety",
        "title": "AI Safety",
        "path": "/knowledge-base/concepts/ai-safety/",
        "quality": 70,
        "readerImportance": 80,
    },
    {
        "id": "ai-safety-research",
        "title": "AI Safety Research Agendas",
        "path": "/knowledge-base/concepts/ai-safety-research/",
        "quality": 20,
        "readerImportance": 60,
    },
    {
        "id": "gpt-4",
        "title": "GPT-4",
        "path": "/knowledge-base/models/gpt-4/",
        "quality": 10,
        "readerImportance": 95,
    },
]

REGISTRY = {"entities": {"E1": "jane-doe", "E2": "ai-safety"}}


Scripted = Union[str, LLMResponse, Exception]


class FakeLLM:
    """
    Scripted stand-in for LLMClient.

    Responses are queued per call label. A call whose label has nothing
    queued gets ``default``.
    """

    def __init__(self, script: Optional[Dict[str, List[Scripted]]] = None, default: str = ""):
        self.default_model = "test/model"
        self.script = {label: list(items) for label, items in (script or {}).items()}
        self.default = default
        self.calls: List[tuple] = []

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.calls]

    def count(self, label: str) -> int:
        return sum(1 for called in self.labels if called == label)

    async def create_message(self, request: LLMRequest, label: str = "api") -> LLMResponse:
        self.calls.append((label, request))
        queue = self.script.get(label)
        item = queue.pop(0) if queue else self.default
        if isinstance(item, Exception):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(content=item)


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def project(tmp_path):
    """Temporary project root with pages, registry and MDX files."""
    write_json(tmp_path / "app" / "src" / "data" / "pages.json", PAGES)
    write_json(tmp_path / "data" / "id-registry.json", REGISTRY)

    docs = tmp_path / "content" / "docs" / "knowledge-base"
    (docs / "people").mkdir(parents=True)
    (docs / "concepts").mkdir(parents=True)
    (docs / "people" / "jane-doe.mdx").write_text(JANE_DOE_MDX, encoding="utf-8")
    (docs / "concepts" / "ai-safety.mdx").write_text(AI_SAFETY_MDX, encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(project):
    return TestingConfig(PROJECT_ROOT=str(project))


@pytest.fixture
def store(config):
    return ContentStore(config)


@pytest.fixture
def searches():
    """Records queries sent to the fake search tools."""
    return {"web": [], "scry": []}


@pytest.fixture
def tools(project, searches):
    async def web_search(query):
        searches["web"].append(query)
        return f"1. Result for {query}\n   URL: https://news.example.org/{len(searches['web'])}"

    async def scry_search(query, table):
        searches["scry"].append((query, table))
        return "No results found."

    return ToolRegistry(str(project), web_search=web_search, scry_search=scry_search)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def ctx(config, llm, tools, store):
    return PipelineContext(config=config, llm=llm, tools=tools, store=store, fetcher=None)
