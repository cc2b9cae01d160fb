"""
Agent loop and tools.
"""

from .loop import run_agent, MAX_TOOL_TURNS
from .tools import ToolName, ToolRegistry, TOOL_DEFINITIONS, ACCESS_DENIED

__all__ = [
    'run_agent',
    'MAX_TOOL_TURNS',
    'ToolName',
    'ToolRegistry',
    'TOOL_DEFINITIONS',
    'ACCESS_DENIED'
]
