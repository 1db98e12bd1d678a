"""
Permission broker for agent tool calls.

Decides whether a tool call may touch the file system, host resources,
code execution, screen capture, play mode or asset generation, asking the
user through a consent surface when the policy says so.
"""

from toolgate.permission.broker import (
    AllowAllToolPermissions,
    PermissionBroker,
    ToolPermissions,
)
from toolgate.permission.call_permissions import ToolCallPermissions
from toolgate.permission.errors import (
    CallerError,
    ConsentCancelledError,
    ConsentTimeoutError,
    PermissionDeniedError,
    PersistenceError,
    ToolPermissionError,
)
from toolgate.permission.interaction import ConsentPrompt, ConsentRequest
from toolgate.permission.models import (
    CallInfo,
    ItemOperation,
    PermissionCategory,
    PermissionPolicy,
    PermissionStatus,
    PlayModeOperation,
    ResourceRef,
    TemporaryPermission,
    UserAnswer,
)
from toolgate.permission.policy import (
    AllowAllPolicyProvider,
    PermissionsPolicyProvider,
    PolicyConfig,
    SettingsPolicyProvider,
    validate_resource_args,
)
from toolgate.permission.state import PermissionsState
from toolgate.permission.storage import (
    FileStateSlot,
    InMemoryStateSlot,
    MongoStateSlot,
    SQLiteStateSlot,
    StateSlot,
    StateSlotConfig,
    StateSlotFactory,
)
from toolgate.permission.surface import (
    AutoAnswerSurface,
    ConsentSurface,
    QueueConsentSurface,
)
from toolgate.permission.waiter import ConsentWaiter

__all__ = [
    "PermissionBroker",
    "ToolPermissions",
    "AllowAllToolPermissions",
    "ToolCallPermissions",
    "ToolPermissionError",
    "CallerError",
    "PermissionDeniedError",
    "ConsentTimeoutError",
    "ConsentCancelledError",
    "PersistenceError",
    "ConsentPrompt",
    "ConsentRequest",
    "CallInfo",
    "ItemOperation",
    "PermissionCategory",
    "PermissionPolicy",
    "PermissionStatus",
    "PlayModeOperation",
    "ResourceRef",
    "TemporaryPermission",
    "UserAnswer",
    "PermissionsPolicyProvider",
    "AllowAllPolicyProvider",
    "PolicyConfig",
    "SettingsPolicyProvider",
    "validate_resource_args",
    "PermissionsState",
    "StateSlot",
    "InMemoryStateSlot",
    "FileStateSlot",
    "SQLiteStateSlot",
    "MongoStateSlot",
    "StateSlotConfig",
    "StateSlotFactory",
    "ConsentSurface",
    "QueueConsentSurface",
    "AutoAnswerSurface",
    "ConsentWaiter",
]
