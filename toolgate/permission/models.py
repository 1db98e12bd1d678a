"""
Permission data model.

Defines the value types shared by the policy provider, the state store and
the broker: CallInfo, PermissionCategory, ItemOperation, PlayModeOperation,
PermissionPolicy, UserAnswer, PermissionStatus, ResourceRef, TemporaryPermission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class PermissionCategory(str, Enum):
    """Permission domain a check belongs to."""

    FILE_SYSTEM = "file_system"
    RESOURCE_ACCESS = "resource_access"
    CODE_EXECUTION = "code_execution"
    TOOL_EXECUTION = "tool_execution"
    SCREEN_CAPTURE = "screen_capture"
    PLAY_MODE = "play_mode"
    ASSET_GENERATION = "asset_generation"


class ItemOperation(str, Enum):
    """Operation performed on a file or resource."""

    READ = "read"
    CREATE = "create"
    DELETE = "delete"
    MODIFY = "modify"

    @property
    def label(self) -> str:
        return self.name.capitalize()


class PlayModeOperation(str, Enum):
    ENTER = "enter"
    EXIT = "exit"

    @property
    def label(self) -> str:
        return self.name.capitalize()


class PermissionPolicy(str, Enum):
    """Verdict of the policy provider. Recomputed on every check."""

    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"


class UserAnswer(str, Enum):
    """Answer given by the human to a consent request."""

    ALLOW_ONCE = "allow_once"
    ALLOW_ALWAYS = "allow_always"
    DENY_ONCE = "deny_once"


class PermissionStatus(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"
    PENDING = "pending"


@dataclass(frozen=True)
class CallInfo:
    """
    Identity of one in-flight tool invocation.

    `function_id` is the stable tool identifier used by policies and grants;
    `call_id` correlates consent requests with the UI element of this call.
    """

    function_id: str
    call_id: str = ""
    session_id: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ResourceRef:
    """
    Stable identity of a host resource (engine object, scene node, asset).

    `resource_type` is the concrete Python class used to model the resource
    kind; `owner_id` is the id of the container that directly owns it, if any.
    """

    resource_id: str
    resource_type: type
    name: str | None = None
    owner_id: str | None = None

    @property
    def display_name(self) -> str:
        type_name = self.resource_type.__name__
        if self.name:
            return f"{self.name} ({type_name})"
        return f"{self.resource_id} ({type_name})"


@dataclass
class TemporaryPermission:
    """A standing "always allow" grant as shown in a settings surface."""

    name: str
    reset_function: Callable[[], None]

    def revoke(self) -> None:
        self.reset_function()


__all__ = [
    "CallInfo",
    "ItemOperation",
    "PermissionCategory",
    "PermissionPolicy",
    "PermissionStatus",
    "PlayModeOperation",
    "ResourceRef",
    "TemporaryPermission",
    "UserAnswer",
]
