"""
Agent tools.

The tool table is closed: every tool the model may call is a ToolName
member, and any other name yields an explicit ``Unknown tool`` result.
Tool failures never propagate into the agent loop; they come back to
the model as ``Error: <message>`` text.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..core.models.errors import ToolError
from ..core.models.llm import ToolCall, ToolDefinition
from ..integrations.llm.retry_handler import with_retry, with_timeout
from ..integrations.search.linkup_client import LinkupClient, format_results
from ..integrations.search.scry_client import DEFAULT_TABLE, ScryClient, format_rows


logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied: path must be within project root"
MAX_FILE_CHARS = 100_000
SEARCH_TIMEOUT = 60.0
SEARCH_MAX_RETRIES = 2
SEARCH_RETRY_DELAY = 2.0

WebSearchFn = Callable[[str], Awaitable[str]]
ScrySearchFn = Callable[[str, str], Awaitable[str]]


class ToolName(str, Enum):
    WEB_SEARCH = "web_search"
    SCRY_SEARCH = "scry_search"
    READ_FILE = "read_file"


TOOL_DEFINITIONS: Dict[ToolName, ToolDefinition] = {
    ToolName.WEB_SEARCH: ToolDefinition(
        name=ToolName.WEB_SEARCH.value,
        description="Search the web. Returns ranked results with titles, URLs and snippets.",
        parameters={
            "type": "object",
            "properties": {"query": {"type": "string", "description": "Search query"}},
            "required": ["query"],
        },
    ),
    ToolName.SCRY_SEARCH: ToolDefinition(
        name=ToolName.SCRY_SEARCH.value,
        description="Search EA Forum and LessWrong posts via SCRY full-text search.",
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search terms"},
                "table": {
                    "type": "string",
                    "enum": ["mv_eaforum_posts", "mv_lesswrong_posts"],
                    "description": "Which forum to search",
                },
            },
            "required": ["query"],
        },
    ),
    ToolName.READ_FILE: ToolDefinition(
        name=ToolName.READ_FILE.value,
        description="Read a file from the project, by path relative to the project root.",
        parameters={
            "type": "object",
            "properties": {"path": {"type": "string", "description": "File path"}},
            "required": ["path"],
        },
    ),
}


def resolve_within_root(root: Path, path: str) -> Optional[Path]:
    """Resolve ``path`` against ``root``; None if it escapes the root."""
    root = root.resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if resolved == root or root in resolved.parents:
        return resolved
    return None


class ToolRegistry:
    """Dispatch table from ToolName to handler."""

    def __init__(
        self,
        project_root: str,
        web_search: Optional[WebSearchFn] = None,
        scry_search: Optional[ScrySearchFn] = None,
        max_file_chars: int = MAX_FILE_CHARS
    ):
        self.project_root = Path(project_root)
        self._web_search = web_search
        self._scry_search = scry_search
        self.max_file_chars = max_file_chars

        self._handlers: Dict[ToolName, Callable[[dict], Awaitable[str]]] = {
            ToolName.WEB_SEARCH: lambda args: self.web_search(args.get("query", "")),
            ToolName.SCRY_SEARCH: lambda args: self.scry_search(
                args.get("query", ""), args.get("table") or DEFAULT_TABLE
            ),
            ToolName.READ_FILE: lambda args: self.read_file(args.get("path", "")),
        }

    @classmethod
    def from_clients(
        cls,
        project_root: str,
        linkup: Optional[LinkupClient] = None,
        scry: Optional[ScryClient] = None,
        max_retries: int = SEARCH_MAX_RETRIES,
        retry_delay: float = SEARCH_RETRY_DELAY,
        timeout: float = SEARCH_TIMEOUT
    ) -> "ToolRegistry":
        """
        Build a registry backed by the real search clients.

        Each search runs under a deadline and is retried on transient
        failures before the error reaches the model as tool output.
        """

        async def web_search(query: str) -> str:
            results = await with_retry(
                lambda: with_timeout(linkup.asearch(query), timeout, label="web_search"),
                max_retries=max_retries,
                base_delay=retry_delay,
                label="web_search"
            )
            return format_results(results)

        async def scry_search(query: str, table: str) -> str:
            rows = await with_retry(
                lambda: with_timeout(scry.search(query, table), timeout, label="scry_search"),
                max_retries=max_retries,
                base_delay=retry_delay,
                label="scry_search"
            )
            return format_rows(rows)

        return cls(
            project_root,
            web_search=web_search if linkup else None,
            scry_search=scry_search if scry else None,
        )

    def definitions(self, names: Iterable[ToolName]) -> List[ToolDefinition]:
        return [TOOL_DEFINITIONS[ToolName(name)] for name in names]

    async def web_search(self, query: str) -> str:
        if self._web_search is None:
            raise ToolError("web search is not configured", tool_name=ToolName.WEB_SEARCH.value)
        if not query.strip():
            raise ToolError("query is required", tool_name=ToolName.WEB_SEARCH.value)
        return await self._web_search(query)

    async def scry_search(self, query: str, table: str = DEFAULT_TABLE) -> str:
        if self._scry_search is None:
            raise ToolError("SCRY search is not configured", tool_name=ToolName.SCRY_SEARCH.value)
        if not query.strip():
            raise ToolError("query is required", tool_name=ToolName.SCRY_SEARCH.value)
        return await self._scry_search(query, table)

    async def read_file(self, path: str) -> str:
        if not path:
            raise ToolError("path is required", tool_name=ToolName.READ_FILE.value)
        resolved = resolve_within_root(self.project_root, path)
        if resolved is None:
            logger.warning(f"[tools] read_file rejected path outside root: {path}")
            return ACCESS_DENIED
        with open(resolved, "r", encoding="utf-8") as f:
            return f.read(self.max_file_chars)

    async def execute(self, call: ToolCall) -> str:
        """
        Run one tool call. Never raises.

        Returns:
            Tool output, ``Unknown tool: <name>`` or ``Error: <message>``
        """
        try:
            name = ToolName(call.name)
        except ValueError:
            logger.warning(f"[tools] Model requested unknown tool: {call.name}")
            return f"Unknown tool: {call.name}"

        try:
            return await self._handlers[name](call.arguments or {})
        except Exception as e:
            logger.warning(f"[tools] {name.value} failed: {e}")
            return f"Error: {e}"
