"""
Main LLM client for Page Improver.

This module provides the interface every phase uses to reach the model
service: each call is bracketed by a heartbeat and retried on
transient failures.
"""

import logging
from typing import Optional

from ...core.models.llm import LLMRequest, LLMResponse
from ...utils.heartbeat import heartbeat
from .litellm_client import LiteLLMClient
from .retry_handler import RetryHandler


logger = logging.getLogger(__name__)


class LLMClient:
    """
    Main LLM client.

    This client handles:
    - Default model selection
    - Retry with exponential backoff
    - Heartbeat logging while a call is in flight
    - Token usage accounting for the run
    """

    def __init__(
        self,
        default_model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 600,
        max_retries: int = 2,
        retry_delay: float = 2.0,
        heartbeat_interval: float = 30.0,
        transport: Optional[LiteLLMClient] = None
    ):
        """
        Initialize LLM client.

        Args:
            default_model: LiteLLM model string used when a call names none
            api_key: API key for the model provider
            base_url: Base URL for a LiteLLM proxy
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries
            retry_delay: Base delay between retries in seconds
            heartbeat_interval: Seconds between heartbeat log lines
            transport: Pre-built LiteLLMClient
        """
        self.default_model = default_model
        self.heartbeat_interval = heartbeat_interval

        self.litellm_client = transport or LiteLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout
        )

        self.retry_handler = RetryHandler(
            max_retries=max_retries,
            base_delay=retry_delay
        )

        self.call_count = 0
        self.total_tokens = 0

        logger.info(f"LLMClient initialized with model: {default_model}")

    async def create_message(self, request: LLMRequest, label: str = "api") -> LLMResponse:
        """
        Send one request with retry and heartbeat.

        Args:
            request: Model request
            label: Heartbeat and retry label

        Returns:
            Normalized response
        """
        async with heartbeat(label, self.heartbeat_interval):
            response = await self.retry_handler.execute_with_retry(
                self.litellm_client.create_message,
                request,
                label=label
            )

        self.call_count += 1
        self.total_tokens += response.total_tokens
        logger.debug(f"{label}: call {self.call_count}, {self.total_tokens} tokens so far")
        return response
