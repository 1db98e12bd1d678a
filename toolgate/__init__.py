"""
Toolgate - permission broker for agent tool calls

Usage:
    from toolgate import PermissionBroker, SettingsPolicyProvider, QueueConsentSurface
    from toolgate.tool import BaseTool, ToolExecutor

    surface = QueueConsentSurface()
    broker = PermissionBroker(SettingsPolicyProvider(), surface)
    await broker.on_after_resume()

    executor = ToolExecutor(tools=[MyTool()], permissions=broker)
    results = await executor.execute_batch(tool_calls)

    # UI side
    async for request in surface.requests():
        request.resolve(UserAnswer.ALLOW_ONCE)
"""

from toolgate.permission import (
    AllowAllToolPermissions,
    CallInfo,
    ItemOperation,
    PermissionBroker,
    PermissionCategory,
    PermissionPolicy,
    PlayModeOperation,
    QueueConsentSurface,
    ResourceRef,
    SettingsPolicyProvider,
    ToolCallPermissions,
    ToolPermissions,
    UserAnswer,
)

__all__ = [
    "AllowAllToolPermissions",
    "CallInfo",
    "ItemOperation",
    "PermissionBroker",
    "PermissionCategory",
    "PermissionPolicy",
    "PlayModeOperation",
    "QueueConsentSurface",
    "ResourceRef",
    "SettingsPolicyProvider",
    "ToolCallPermissions",
    "ToolPermissions",
    "UserAnswer",
]
