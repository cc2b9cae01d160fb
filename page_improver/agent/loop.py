"""
Agent loop.

Drives a multi-turn tool-calling conversation: send the prompt, run any
tools the model asks for, feed the results back, and repeat until the
model answers in text or the tool-turn cap is reached.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from ..core.models.llm import AgentOptions, LLMRequest, LLMResponse, ToolCall
from .tools import ToolName, ToolRegistry


logger = logging.getLogger(__name__)

MAX_TOOL_TURNS = 10


class MessageClient(Protocol):
    default_model: str

    async def create_message(self, request: LLMRequest, label: str = "api") -> LLMResponse:
        ...


def _assistant_message(response: LLMResponse) -> Dict[str, Any]:
    return {
        "role": "assistant",
        "content": response.content or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.raw_arguments or json.dumps(call.arguments)},
            }
            for call in response.tool_calls
        ],
    }


def _tool_message(call: ToolCall, result: str) -> Dict[str, Any]:
    return {
        "role": "tool",
        "tool_call_id": call.id,
        "name": call.name,
        "content": result,
    }


async def run_agent(
    llm: MessageClient,
    prompt: str,
    options: Optional[AgentOptions] = None,
    tools: Optional[ToolRegistry] = None,
    tool_names: Optional[List[ToolName]] = None
) -> str:
    """
    Run the model with tools until it produces a final answer.

    Args:
        llm: Client exposing ``create_message``
        prompt: Initial user message
        options: Model, token limit, system prompt and tool-turn cap
        tools: Registry that executes tool calls
        tool_names: Tools offered to the model; none when omitted

    Returns:
        Text of the last response. When the turn cap is hit this may be
        empty or partial.
    """
    options = options or AgentOptions()
    offered = tools.definitions(tool_names) if tools and tool_names else []
    model = options.model or llm.default_model
    messages: List[Dict[str, Any]] = [{"role": "user", "content": prompt}]

    def build_request() -> LLMRequest:
        return LLMRequest(
            model=model,
            messages=list(messages),
            system_prompt=options.system_prompt,
            max_tokens=options.max_tokens,
            tools=offered,
            timeout=options.timeout
        )

    response = await llm.create_message(build_request(), label=options.label)

    tool_turns = 0
    while response.wants_tools and tool_turns < options.max_tool_turns:
        tool_turns += 1
        messages.append(_assistant_message(response))

        # Sequential within a turn; results keep call order
        for call in response.tool_calls:
            if tools is None:
                result = f"Unknown tool: {call.name}"
            else:
                result = await tools.execute(call)
            messages.append(_tool_message(call, result))

        response = await llm.create_message(build_request(), label=f"{options.label}-tool-loop")

    if response.wants_tools:
        logger.warning(
            f"[{options.label}] Hit tool turn limit ({options.max_tool_turns}), stopping agent loop"
        )

    return response.content or ""
