"""
LLM-related data models and schemas.

This module defines the data structures exchanged with the model
service: requests, normalized responses, tool calls and tool
declarations, plus the options accepted by the agent loop.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field


class StopReason(str, Enum):
    """Why the model stopped generating."""
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    UNKNOWN = "unknown"

    @classmethod
    def from_finish_reason(cls, finish_reason: Optional[str]) -> "StopReason":
        """Map a provider finish reason onto a StopReason."""
        mapping = {
            "stop": cls.END_TURN,
            "end_turn": cls.END_TURN,
            "tool_calls": cls.TOOL_USE,
            "function_call": cls.TOOL_USE,
            "tool_use": cls.TOOL_USE,
            "length": cls.MAX_TOKENS,
            "max_tokens": cls.MAX_TOKENS,
            "stop_sequence": cls.STOP_SEQUENCE,
        }
        return mapping.get((finish_reason or "").lower(), cls.UNKNOWN)


class ToolCall(BaseModel):
    """A single tool invocation requested by the model."""

    id: str = Field(..., description="Provider-assigned call id")
    name: str = Field(..., description="Tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Decoded arguments")
    raw_arguments: str = Field(default="{}", description="Arguments as sent by the provider")


class ToolDefinition(BaseModel):
    """Tool declaration sent to the model."""

    name: str = Field(..., description="Tool name")
    description: str = Field(..., description="What the tool does")
    parameters: Dict[str, Any] = Field(..., description="JSON schema for the arguments")

    def to_function_spec(self) -> Dict[str, Any]:
        """Render as an OpenAI-style function tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class LLMRequest(BaseModel):
    """One call to the model service."""

    model: str = Field(..., description="LiteLLM model string, e.g. 'anthropic/claude-sonnet-4-20250514'")
    messages: List[Dict[str, Any]] = Field(..., description="Conversation so far")
    system_prompt: Optional[str] = Field(None, description="System prompt")
    max_tokens: int = Field(default=16000, ge=1, le=200000, description="Maximum output tokens")
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0, description="Sampling temperature")
    tools: List[ToolDefinition] = Field(default_factory=list, description="Tools offered to the model")
    timeout: Optional[float] = Field(None, gt=0, description="Request timeout in seconds")


class LLMResponse(BaseModel):
    """Normalized model response."""

    content: str = Field(default="", description="Concatenated text blocks")
    stop_reason: StopReason = Field(default=StopReason.END_TURN, description="Why generation stopped")
    tool_calls: List[ToolCall] = Field(default_factory=list, description="Requested tool calls")

    # Usage Statistics
    prompt_tokens: int = Field(default=0, ge=0, description="Prompt tokens")
    completion_tokens: int = Field(default=0, ge=0, description="Completion tokens")
    total_tokens: int = Field(default=0, ge=0, description="Total tokens")

    # Metadata
    model: Optional[str] = Field(None, description="Model used")
    response_time: float = Field(default=0.0, ge=0.0, description="Response time in seconds")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Response timestamp")

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == StopReason.TOOL_USE and bool(self.tool_calls)


class AgentOptions(BaseModel):
    """Options for a single agent-loop run."""

    model: Optional[str] = Field(None, description="Override the default model")
    max_tokens: int = Field(default=16000, ge=1, description="Maximum output tokens per call")
    system_prompt: Optional[str] = Field(None, description="System prompt")
    max_tool_turns: int = Field(default=10, ge=0, description="Tool-use round cap")
    label: str = Field(default="api", description="Label used in heartbeat and retry logs")
    timeout: Optional[float] = Field(None, gt=0, description="Per-call timeout in seconds")
