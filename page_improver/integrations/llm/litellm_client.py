"""
LiteLLM client implementation.

This module provides the core LiteLLM integration: it sends a
conversation (optionally with function tools) and normalizes the reply
into an LLMResponse with text, stop reason and tool calls.
"""

import json
import logging
import time
from datetime import datetime
from typing import Optional, Dict, Any, List

import litellm
from litellm import acompletion
from litellm.exceptions import (
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    RateLimitError,
    APIConnectionError,
    APIError,
    Timeout,
    ServiceUnavailableError
)

from ...core.models.errors import LLMError
from ...core.models.llm import LLMRequest, LLMResponse, StopReason, ToolCall


logger = logging.getLogger(__name__)


class LiteLLMClient:
    """
    LiteLLM client for unified model provider access.

    Provider exceptions are mapped onto LLMError with ``retryable`` set
    for timeouts, connection failures, rate limits and 5xx responses.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 600
    ):
        """
        Initialize LiteLLM client.

        Args:
            api_key: API key for the model provider
            base_url: Base URL for a LiteLLM proxy
            timeout: Default request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

        litellm.drop_params = True

        logger.info(f"LiteLLMClient initialized with timeout: {timeout}s")

    async def create_message(self, request: LLMRequest) -> LLMResponse:
        """
        Send one request to the model service.

        Args:
            request: Model, conversation, tools and limits

        Returns:
            Normalized LLMResponse

        Raises:
            LLMError: If the call fails
        """
        messages: List[Dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend(request.messages)

        params: Dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "timeout": request.timeout or self.timeout,
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.tools:
            params["tools"] = [tool.to_function_spec() for tool in request.tools]
        if self.api_key:
            params["api_key"] = self.api_key
        if self.base_url:
            params["api_base"] = self.base_url

        try:
            start_time = time.time()
            response = await acompletion(**params)
            response_time = time.time() - start_time

        except AuthenticationError as e:
            logger.error(f"Authentication error: {str(e)}")
            raise LLMError(f"Authentication failed: {str(e)}", model=request.model,
                           retryable=False, status_code=401)

        except (BadRequestError, NotFoundError) as e:
            logger.error(f"Request rejected: {str(e)}")
            raise LLMError(f"Request rejected: {str(e)}", model=request.model,
                           retryable=False, status_code=getattr(e, "status_code", 400))

        except RateLimitError as e:
            logger.warning(f"Rate limit error: {str(e)}")
            raise LLMError(f"Rate limit exceeded: {str(e)}", model=request.model,
                           retryable=True, status_code=429)

        except Timeout as e:
            logger.warning(f"Timeout error: {str(e)}")
            raise LLMError(f"Request timeout: {str(e)}", model=request.model, retryable=True)

        except ServiceUnavailableError as e:
            logger.warning(f"Service unavailable: {str(e)}")
            raise LLMError(f"Service unavailable: {str(e)}", model=request.model,
                           retryable=True, status_code=503)

        except APIConnectionError as e:
            logger.warning(f"Connection error: {str(e)}")
            raise LLMError(f"Connection error: {str(e)}", model=request.model, retryable=True)

        except APIError as e:
            status = getattr(e, "status_code", None)
            retryable = status is None or status == 429 or status >= 500 or "overloaded" in str(e).lower()
            logger.error(f"API error ({status}): {str(e)}")
            raise LLMError(f"API error: {str(e)}", model=request.model,
                           retryable=retryable, status_code=status)

        return self._normalize(response, request.model, response_time)

    def _normalize(self, response: Any, model: str, response_time: float) -> LLMResponse:
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for call in getattr(message, "tool_calls", None) or []:
            raw_arguments = call.function.arguments or "{}"
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError:
                logger.warning(f"Tool call {call.function.name} sent invalid JSON arguments")
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {"value": arguments}
            tool_calls.append(ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=arguments,
                raw_arguments=raw_arguments
            ))

        stop_reason = StopReason.from_finish_reason(choice.finish_reason)
        if tool_calls and stop_reason != StopReason.TOOL_USE:
            # Some providers report "stop" alongside tool calls
            stop_reason = StopReason.TOOL_USE

        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=message.content or "",
            stop_reason=stop_reason,
            tool_calls=tool_calls,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
            model=model,
            response_time=response_time,
            created_at=datetime.utcnow()
        )
