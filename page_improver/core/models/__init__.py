"""
Data models and schemas for Page Improver.

This module contains the data models, validation schemas, and
type definitions used throughout the pipeline.
"""

from .base import PhaseResult

from .page import (
    PageRecord,
    TierDefinition,
    EditLogEntry
)

from .research import (
    FetchStatus,
    SourceRecord,
    FetchedSource,
    SourceCacheEntry,
    ResearchResult,
    SOURCE_CONTENT_CAP
)

from .review import (
    AnalysisResult,
    ReviewResult,
    IssueSeverity,
    ValidationIssue,
    ValidationResult,
    TriageTier,
    TriageResult,
    TriageResponse
)

from .adversarial import (
    GapType,
    GapAction,
    Gap,
    AdversarialReviewResult,
    AdversarialLoopResult,
    normalize_review
)

from .llm import (
    StopReason,
    ToolCall,
    ToolDefinition,
    LLMRequest,
    LLMResponse,
    AgentOptions
)

from .pipeline import (
    PipelineOptions,
    PipelineRunResult
)

from .errors import (
    PageImproverError,
    LLMError,
    SearchError,
    ExternalServiceError,
    ToolError,
    RetryExhaustedError,
    ConfigurationError,
    PageNotFoundError,
    AmbiguousPageError,
    ContentFileNotFoundError,
    UnknownTierError,
    PhaseError
)

__all__ = [
    'PhaseResult',

    # Page models
    'PageRecord',
    'TierDefinition',
    'EditLogEntry',

    # Research models
    'FetchStatus',
    'SourceRecord',
    'FetchedSource',
    'SourceCacheEntry',
    'ResearchResult',
    'SOURCE_CONTENT_CAP',

    # Review models
    'AnalysisResult',
    'ReviewResult',
    'IssueSeverity',
    'ValidationIssue',
    'ValidationResult',
    'TriageTier',
    'TriageResult',
    'TriageResponse',

    # Adversarial models
    'GapType',
    'GapAction',
    'Gap',
    'AdversarialReviewResult',
    'AdversarialLoopResult',
    'normalize_review',

    # LLM models
    'StopReason',
    'ToolCall',
    'ToolDefinition',
    'LLMRequest',
    'LLMResponse',
    'AgentOptions',

    # Pipeline models
    'PipelineOptions',
    'PipelineRunResult',

    # Error models
    'PageImproverError',
    'LLMError',
    'SearchError',
    'ExternalServiceError',
    'ToolError',
    'RetryExhaustedError',
    'ConfigurationError',
    'PageNotFoundError',
    'AmbiguousPageError',
    'ContentFileNotFoundError',
    'UnknownTierError',
    'PhaseError'
]
