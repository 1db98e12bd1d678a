from toolgate.tool.base import BaseTool, ToolResult
from toolgate.tool.executor import ToolExecutor

__all__ = [
    "BaseTool",
    "ToolResult",
    "ToolExecutor",
]
