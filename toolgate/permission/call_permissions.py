"""
ToolCallPermissions - permission checks bound to one tool call.

Tool code receives one of these instead of the broker, so it never has to
thread its CallInfo and abort signal through every check:

    await permissions.check_file_system_access(ItemOperation.MODIFY, path)
"""

from toolgate.permission.broker import ToolPermissions
from toolgate.permission.models import (
    CallInfo,
    ItemOperation,
    PlayModeOperation,
    ResourceRef,
)
from toolgate.utils.abort_signal import AbortSignal


class ToolCallPermissions:
    def __init__(
        self,
        call: CallInfo,
        permissions: ToolPermissions,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        self.call = call
        self.permissions = permissions
        self.abort_signal = abort_signal

    async def check_can_execute(self) -> None:
        await self.permissions.check_tool_execution(self.call, self.abort_signal)

    async def check_file_system_access(
        self, operation: ItemOperation, path: str
    ) -> None:
        await self.permissions.check_file_system_access(
            self.call, operation, path, self.abort_signal
        )

    async def check_resource_access(
        self,
        operation: ItemOperation,
        resource_type: type | None = None,
        target: ResourceRef | None = None,
    ) -> None:
        await self.permissions.check_resource_access(
            self.call, operation, resource_type, target, self.abort_signal
        )

    def ignore_resource(self, target: ResourceRef | None) -> None:
        """Stop asking about `target`, typically a resource this call just created."""
        self.permissions.ignore_resource(self.call, target)

    async def check_code_execution(self, code: str) -> None:
        await self.permissions.check_code_execution(self.call, code, self.abort_signal)

    async def check_screen_capture(self) -> None:
        await self.permissions.check_screen_capture(self.call, self.abort_signal)

    async def check_play_mode(self, operation: PlayModeOperation) -> None:
        await self.permissions.check_play_mode(self.call, operation, self.abort_signal)

    async def check_asset_generation(
        self, path: str, asset_type: type | str, cost: int
    ) -> None:
        await self.permissions.check_asset_generation(
            self.call, path, asset_type, cost, self.abort_signal
        )

    def __repr__(self) -> str:
        return f"ToolCallPermissions(function_id={self.call.function_id!r}, call_id={self.call.call_id!r})"


__all__ = ["ToolCallPermissions"]
