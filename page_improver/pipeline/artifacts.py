"""
Per-run debug artifacts under ``<TEMP_DIR>/<page-id>/``.
"""

import json
import logging
import os
from typing import Any

from pydantic import BaseModel


logger = logging.getLogger(__name__)


class RunArtifacts:
    """Writes phase snapshots for one page."""

    def __init__(self, temp_dir: str, page_id: str):
        self.directory = os.path.join(temp_dir, page_id)

    def path(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    def write(self, filename: str, content: Any) -> str:
        """
        Write a snapshot and return its path.

        Strings are written as-is; pydantic models and other values are
        written as indented JSON.
        """
        os.makedirs(self.directory, exist_ok=True)
        path = self.path(filename)

        if isinstance(content, str):
            text = content
        elif isinstance(content, BaseModel):
            text = json.dumps(content.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2)
        else:
            text = json.dumps(content, indent=2, default=_json_default)

        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.debug(f"Wrote {path}")
        return path

    def read(self, filename: str) -> str:
        with open(self.path(filename), "r", encoding="utf-8") as f:
            return f.read()


def _json_default(value: Any):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return str(value)
