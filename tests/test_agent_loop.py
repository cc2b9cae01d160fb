"""
Tests for the tool-calling agent loop.
"""

from page_improver.agent.loop import run_agent
from page_improver.agent.tools import ToolName
from page_improver.core.models.llm import AgentOptions, LLMResponse, StopReason, ToolCall

from .conftest import FakeLLM


def tool_use(*calls):
    return LLMResponse(
        content="",
        stop_reason=StopReason.TOOL_USE,
        tool_calls=[ToolCall(id=f"call-{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)]
    )


async def test_plain_answer():
    """Test that a text answer ends the loop after one call."""
    llm = FakeLLM({"analyze": ["done"]})
    result = await run_agent(llm, "prompt", AgentOptions(label="analyze"))

    assert result == "done"
    assert llm.labels == ["analyze"]
    request = llm.calls[0][1]
    assert request.model == "test/model"
    assert request.tools == []


async def test_tools_are_executed_in_order(tools, searches):
    """Test that tool results are fed back in call order."""
    llm = FakeLLM({
        "research": [tool_use(("web_search", {"query": "first"}), ("web_search", {"query": "second"}))],
        "research-tool-loop": ["final answer"],
    })

    result = await run_agent(
        llm, "prompt", AgentOptions(label="research"),
        tools=tools, tool_names=[ToolName.WEB_SEARCH]
    )

    assert result == "final answer"
    assert searches["web"] == ["first", "second"]
    messages = llm.calls[1][1].messages
    tool_messages = [m for m in messages if m["role"] == "tool"]
    assert [m["tool_call_id"] for m in tool_messages] == ["call-0", "call-1"]
    assert "Result for first" in tool_messages[0]["content"]
    assert [t.name for t in llm.calls[0][1].tools] == ["web_search"]


async def test_tool_turn_cap():
    """Test that the loop stops after max_tool_turns rounds."""
    llm = FakeLLM({
        "research": [tool_use(("read_file", {"path": "missing.txt"}))],
        "research-tool-loop": [tool_use(("read_file", {"path": "missing.txt"})) for _ in range(5)],
    })

    result = await run_agent(llm, "prompt", AgentOptions(label="research", max_tool_turns=2))

    assert result == ""
    assert len(llm.calls) == 3


async def test_unknown_tool_reported_to_model(tools):
    """Test that an unknown tool name becomes an explicit result."""
    llm = FakeLLM({
        "analyze": [tool_use(("delete_everything", {}))],
        "analyze-tool-loop": ["ok"],
    })

    result = await run_agent(llm, "prompt", AgentOptions(label="analyze"), tools=tools,
                             tool_names=[ToolName.READ_FILE])

    assert result == "ok"
    tool_message = [m for m in llm.calls[1][1].messages if m["role"] == "tool"][0]
    assert tool_message["content"] == "Unknown tool: delete_everything"
