"""
Error models and exception classes.

This module defines the custom exception hierarchy for Page Improver.
Fatal input conditions (unknown page, missing file, unknown tier) are
raised by the controller before any model call; transient I/O failures
are retried and then surfaced as RetryExhaustedError.
"""

from typing import Optional, Dict, Any, List


class PageImproverError(Exception):
    """Base exception for Page Improver."""

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class LLMError(PageImproverError):
    """Model service error."""

    def __init__(
        self,
        message: str,
        model: str = None,
        retryable: bool = False,
        status_code: Optional[int] = None
    ):
        self.model = model
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(
            message,
            "LLM_ERROR",
            {"model": model, "retryable": retryable, "status_code": status_code}
        )


class SearchError(PageImproverError):
    """Search-related error."""

    def __init__(self, message: str, query: str = None, provider: str = None):
        self.query = query
        self.provider = provider
        super().__init__(
            message,
            "SEARCH_ERROR",
            {"query": query, "provider": provider}
        )


class ExternalServiceError(PageImproverError):
    """HTTP-level failure from an external service."""

    def __init__(self, message: str, service: str = None, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(
            message,
            "EXTERNAL_SERVICE_ERROR",
            {"service": service, "status_code": status_code}
        )


class ToolError(PageImproverError):
    """Tool execution error."""

    def __init__(self, message: str, tool_name: str = None):
        self.tool_name = tool_name
        super().__init__(message, "TOOL_ERROR", {"tool_name": tool_name})


class RetryExhaustedError(PageImproverError):
    """Raised when an operation keeps failing after every retry."""

    def __init__(self, message: str, label: str = None, attempts: int = 0):
        self.label = label
        self.attempts = attempts
        super().__init__(
            message,
            "RETRY_EXHAUSTED",
            {"label": label, "attempts": attempts}
        )


class ConfigurationError(PageImproverError):
    """Configuration error."""

    def __init__(self, message: str, config_key: str = None):
        self.config_key = config_key
        super().__init__(
            message,
            "CONFIGURATION_ERROR",
            {"config_key": config_key}
        )


class PageNotFoundError(PageImproverError):
    """The requested page id is not in the page index."""

    def __init__(self, page_id: str):
        self.page_id = page_id
        super().__init__(f"Page not found: {page_id}", "PAGE_NOT_FOUND", {"page_id": page_id})


class AmbiguousPageError(PageImproverError):
    """A partial page id matched more than one page."""

    def __init__(self, query: str, candidates: List[str]):
        self.query = query
        self.candidates = candidates
        super().__init__(
            f"Ambiguous page id '{query}': {', '.join(candidates[:10])}",
            "AMBIGUOUS_PAGE",
            {"query": query, "candidates": candidates}
        )


class ContentFileNotFoundError(PageImproverError):
    """The page exists in the index but its MDX file is missing."""

    def __init__(self, page_id: str, path: str):
        self.page_id = page_id
        self.path = path
        super().__init__(
            f"File not found for page {page_id}: {path}",
            "FILE_NOT_FOUND",
            {"page_id": page_id, "path": path}
        )


class UnknownTierError(PageImproverError):
    """The requested tier has no definition."""

    def __init__(self, tier: str, available: List[str] = None):
        self.tier = tier
        self.available = available or []
        super().__init__(
            f"Unknown tier: {tier} (available: {', '.join(self.available)})",
            "UNKNOWN_TIER",
            {"tier": tier, "available": self.available}
        )


class PhaseError(PageImproverError):
    """A phase or one of its steps failed."""

    def __init__(self, message: str, phase: str = None):
        self.phase = phase
        super().__init__(message, "PHASE_ERROR", {"phase": phase})
