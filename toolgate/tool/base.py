from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
import time

from toolgate.permission.call_permissions import ToolCallPermissions
from toolgate.utils.abort_signal import AbortSignal


@dataclass
class ToolResult:
    """Result of a tool execution"""

    tool_name: str
    tool_call_id: str
    input_args: dict[str, Any]
    content: str  # Result for the model
    output: Any  # Raw execution result
    start_time: float
    end_time: float
    duration: float
    error: str | None = None
    is_success: bool = True

    @classmethod
    def success(
        cls,
        tool_name: str,
        content: str,
        output: Any = None,
        tool_call_id: str = "",
        input_args: dict[str, Any] | None = None,
        start_time: float | None = None,
    ) -> "ToolResult":
        now = time.time()
        start = start_time if start_time is not None else now
        return cls(
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            input_args=input_args or {},
            content=content,
            output=output,
            start_time=start,
            end_time=now,
            duration=now - start,
        )

    @classmethod
    def failed(
        cls,
        tool_name: str,
        error: str,
        tool_call_id: str = "",
        input_args: dict[str, Any] | None = None,
        start_time: float | None = None,
    ) -> "ToolResult":
        """Create a ToolResult representing an error."""
        now = time.time()
        start = start_time if start_time is not None else now
        return cls(
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            input_args=input_args or {},
            content=f"Error: {error}",
            output=None,
            error=error,
            start_time=start,
            end_time=now,
            duration=now - start,
            is_success=False,
        )

    @classmethod
    def denied(
        cls,
        tool_name: str,
        reason: str,
        tool_call_id: str = "",
        input_args: dict[str, Any] | None = None,
        start_time: float | None = None,
    ) -> "ToolResult":
        """
        Create a permission-denied ToolResult.

        The content tells the model why the call failed so it does not
        silently retry the same action.
        """
        now = time.time()
        start = start_time if start_time is not None else now
        return cls(
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            input_args=input_args or {},
            content=(
                f"Tool execution denied: {reason}. "
                "Please ask the user for permission or use a different approach."
            ),
            output=None,
            error=f"Permission denied: {reason}",
            start_time=start,
            end_time=now,
            duration=now - start,
            is_success=False,
        )

    @classmethod
    def aborted(
        cls,
        tool_name: str,
        tool_call_id: str = "",
        input_args: dict[str, Any] | None = None,
        start_time: float | None = None,
    ) -> "ToolResult":
        """Create a ToolResult representing an aborted operation."""
        now = time.time()
        start = start_time if start_time is not None else now
        return cls(
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            input_args=input_args or {},
            content="Operation was aborted",
            output=None,
            error="Aborted",
            start_time=start,
            end_time=now,
            duration=now - start,
            is_success=False,
        )


class BaseTool(ABC):
    """Common interface that every concrete tool must implement."""

    def __init__(self) -> None:
        self.name = self.get_name()
        self.description = self.get_description()

    @abstractmethod
    def get_name(self) -> str:
        """Return the tool name. Used as the function id in permission checks."""

    @abstractmethod
    def get_description(self) -> str:
        """Return the tool description used for prompting."""

    def get_parameters(self) -> dict[str, Any]:
        """Return the JSON schema describing `execute` parameters."""
        return {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(
        self,
        parameters: dict[str, Any],
        permissions: ToolCallPermissions,
        abort_signal: AbortSignal | None = None,
    ) -> ToolResult:
        """
        Execute the tool and return ToolResult directly.

        Args:
            parameters: Tool parameters (from the model)
            permissions: Permission checks bound to this call. Every
                sensitive action must be checked before it is performed.
            abort_signal: Optional abort signal for cancellation

        Returns:
            ToolResult: Tool execution result
        """
