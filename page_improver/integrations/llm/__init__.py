"""
LLM integration for Page Improver.

This module provides the model service client, the LiteLLM transport
and the retry primitives.
"""

from .client import LLMClient
from .litellm_client import LiteLLMClient
from .retry_handler import RetryHandler, with_retry, with_timeout, is_retryable_error

__all__ = [
    'LLMClient',
    'LiteLLMClient',
    'RetryHandler',
    'with_retry',
    'with_timeout',
    'is_retryable_error'
]
