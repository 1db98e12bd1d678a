"""
PermissionsState - durable "always allow" grants.

One sub-state per category, aggregated under PermissionsState, which is the
single serialization root. Grants live for the session and survive a
suspend/resume cycle through the persisted slot (see storage.py).

Every sub-state exposes the same small surface:
    reset(), allow(...), is_allowed(...), append_temporary_permissions(out),
    to_dict(), from_dict(data)

Mutations and lookups take the sub-state's lock, so a settings surface
revoking a grant from another thread cannot interleave with a check.
"""

import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

import orjson

from toolgate.permission.errors import PersistenceError
from toolgate.permission.models import (
    ItemOperation,
    PermissionCategory,
    PlayModeOperation,
    ResourceRef,
    TemporaryPermission,
)
from toolgate.permission.paths import is_project_path

STATE_VERSION = 1

ResourceLiveness = Callable[[str], bool]


def _lock() -> threading.RLock:
    return threading.RLock()


class CategoryState(ABC):
    """Common surface of every per-category sub-state."""

    _lock: threading.RLock

    @abstractmethod
    def reset(self) -> None: ...

    @abstractmethod
    def allow(self, *args: Any) -> None: ...

    @abstractmethod
    def is_allowed(self, *args: Any) -> bool: ...

    @abstractmethod
    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None: ...

    @abstractmethod
    def to_dict(self) -> dict: ...

    def _revoker(self, collection: list, item: Any) -> Callable[[], None]:
        def revoke() -> None:
            with self._lock:
                if item in collection:
                    collection.remove(item)

        return revoke


# ═══════════════════════════════════════════════════════════════════════════
# Single-flag states
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class FlagState(CategoryState):
    """A category granted as a whole: code execution, screen capture, asset generation."""

    STATE_NAME: ClassVar[str] = ""

    always_allow: bool = False
    _lock: threading.RLock = field(default_factory=_lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.always_allow = False

    def allow(self, *args: Any) -> None:
        with self._lock:
            self.always_allow = True

    def is_allowed(self, *args: Any) -> bool:
        with self._lock:
            return self.always_allow

    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None:
        with self._lock:
            if self.always_allow:
                out.append(TemporaryPermission(self.STATE_NAME, self.reset))

    def to_dict(self) -> dict:
        return {"always_allow": self.always_allow}

    @classmethod
    def from_dict(cls, data: dict) -> "FlagState":
        return cls(always_allow=bool(data.get("always_allow", False)))


@dataclass
class CodeExecutionState(FlagState):
    STATE_NAME: ClassVar[str] = "Code Execution"


@dataclass
class ScreenCaptureState(FlagState):
    STATE_NAME: ClassVar[str] = "Screen Capture"


@dataclass
class AssetGenerationState(FlagState):
    STATE_NAME: ClassVar[str] = "Asset Generation"


# ═══════════════════════════════════════════════════════════════════════════
# File system
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class FileSystemState(CategoryState):
    """
    Allowed operations, kept separately for paths inside the project tree and
    for external paths. The two sets never intermix.
    """

    PROJECT_FILES_NAME: ClassVar[str] = "Project Files"
    EXTERNAL_FILES_NAME: ClassVar[str] = "External Files"

    project_root: str = field(default_factory=os.getcwd)
    allowed_project_operations: list[ItemOperation] = field(default_factory=list)
    allowed_external_operations: list[ItemOperation] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=_lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.allowed_project_operations.clear()
            self.allowed_external_operations.clear()

    def _operations_for(self, path: str) -> list[ItemOperation]:
        if is_project_path(path, self.project_root):
            return self.allowed_project_operations
        return self.allowed_external_operations

    def allow(self, operation: ItemOperation, path: str) -> None:
        with self._lock:
            operations = self._operations_for(path)
            if operation not in operations:
                operations.append(operation)

    def is_allowed(self, operation: ItemOperation, path: str) -> bool:
        with self._lock:
            return operation in self._operations_for(path)

    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None:
        with self._lock:
            for operation in self.allowed_project_operations:
                out.append(
                    TemporaryPermission(
                        f"{operation.label} {self.PROJECT_FILES_NAME}",
                        self._revoker(self.allowed_project_operations, operation),
                    )
                )
            for operation in self.allowed_external_operations:
                out.append(
                    TemporaryPermission(
                        f"{operation.label} {self.EXTERNAL_FILES_NAME}",
                        self._revoker(self.allowed_external_operations, operation),
                    )
                )

    def to_dict(self) -> dict:
        return {
            "allowed_project_operations": [
                op.name for op in self.allowed_project_operations
            ],
            "allowed_external_operations": [
                op.name for op in self.allowed_external_operations
            ],
        }

    @classmethod
    def from_dict(cls, data: dict, project_root: str | None = None) -> "FileSystemState":
        return cls(
            project_root=project_root or os.getcwd(),
            allowed_project_operations=[
                ItemOperation[name] for name in data.get("allowed_project_operations", [])
            ],
            allowed_external_operations=[
                ItemOperation[name]
                for name in data.get("allowed_external_operations", [])
            ],
        )


# ═══════════════════════════════════════════════════════════════════════════
# Resources
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class ResourceState(CategoryState):
    """
    Coarse per-operation grants plus an ignore list of resource ids.

    Ignoring a resource also covers the resources it directly owns. Entries
    whose resource no longer exists are dropped at lookup time when a
    liveness callback is available.
    """

    STATE_NAME: ClassVar[str] = "Resources"

    allowed_operations: list[ItemOperation] = field(default_factory=list)
    ignored_resource_ids: list[str] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=_lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.allowed_operations.clear()
            self.ignored_resource_ids.clear()

    def reset_ignored_resources(self) -> None:
        with self._lock:
            self.ignored_resource_ids.clear()

    def allow(
        self,
        operation: ItemOperation,
        resource_type: type | None = None,
        target: ResourceRef | None = None,
    ) -> None:
        with self._lock:
            if operation not in self.allowed_operations:
                self.allowed_operations.append(operation)

    def ignore(self, target: ResourceRef) -> None:
        with self._lock:
            if target.resource_id not in self.ignored_resource_ids:
                self.ignored_resource_ids.append(target.resource_id)

    def is_ignored(
        self, target: ResourceRef | None, is_alive: ResourceLiveness | None = None
    ) -> bool:
        if target is None:
            return False
        with self._lock:
            if self._matches_ignored(target.resource_id, is_alive):
                return True
            if target.owner_id is not None:
                return self._matches_ignored(target.owner_id, is_alive)
            return False

    def _matches_ignored(
        self, resource_id: str, is_alive: ResourceLiveness | None
    ) -> bool:
        if resource_id not in self.ignored_resource_ids:
            return False
        if is_alive is not None and not is_alive(resource_id):
            self.ignored_resource_ids.remove(resource_id)
            return False
        return True

    def is_allowed(
        self,
        operation: ItemOperation,
        resource_type: type | None = None,
        target: ResourceRef | None = None,
        is_alive: ResourceLiveness | None = None,
    ) -> bool:
        with self._lock:
            if operation in self.allowed_operations:
                return True
            return self.is_ignored(target, is_alive)

    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None:
        with self._lock:
            for operation in self.allowed_operations:
                out.append(
                    TemporaryPermission(
                        f"{operation.label} {self.STATE_NAME}",
                        self._revoker(self.allowed_operations, operation),
                    )
                )

    def to_dict(self) -> dict:
        return {
            "allowed_operations": [op.name for op in self.allowed_operations],
            "ignored_resource_ids": list(self.ignored_resource_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResourceState":
        return cls(
            allowed_operations=[
                ItemOperation[name] for name in data.get("allowed_operations", [])
            ],
            ignored_resource_ids=[str(i) for i in data.get("ignored_resource_ids", [])],
        )


# ═══════════════════════════════════════════════════════════════════════════
# Tool execution / play mode
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class ToolExecutionState(CategoryState):
    STATE_NAME: ClassVar[str] = "Tool Execution"

    allowed_tool_ids: list[str] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=_lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.allowed_tool_ids.clear()

    def allow(self, tool_id: str) -> None:
        with self._lock:
            if tool_id not in self.allowed_tool_ids:
                self.allowed_tool_ids.append(tool_id)

    def is_allowed(self, tool_id: str) -> bool:
        with self._lock:
            return tool_id in self.allowed_tool_ids

    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None:
        with self._lock:
            for tool_id in self.allowed_tool_ids:
                out.append(
                    TemporaryPermission(
                        f"{self.STATE_NAME} {tool_id}",
                        self._revoker(self.allowed_tool_ids, tool_id),
                    )
                )

    def to_dict(self) -> dict:
        return {"allowed_tool_ids": list(self.allowed_tool_ids)}

    @classmethod
    def from_dict(cls, data: dict) -> "ToolExecutionState":
        return cls(allowed_tool_ids=[str(t) for t in data.get("allowed_tool_ids", [])])


@dataclass
class PlayModeState(CategoryState):
    allowed_operations: list[PlayModeOperation] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=_lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.allowed_operations.clear()

    def allow(self, operation: PlayModeOperation) -> None:
        with self._lock:
            if operation not in self.allowed_operations:
                self.allowed_operations.append(operation)

    def is_allowed(self, operation: PlayModeOperation) -> bool:
        with self._lock:
            return operation in self.allowed_operations

    def append_temporary_permissions(self, out: list[TemporaryPermission]) -> None:
        with self._lock:
            for operation in self.allowed_operations:
                out.append(
                    TemporaryPermission(
                        f"{operation.label} Play Mode",
                        self._revoker(self.allowed_operations, operation),
                    )
                )

    def to_dict(self) -> dict:
        return {"allowed_operations": [op.name for op in self.allowed_operations]}

    @classmethod
    def from_dict(cls, data: dict) -> "PlayModeState":
        return cls(
            allowed_operations=[
                PlayModeOperation[name] for name in data.get("allowed_operations", [])
            ]
        )


# ═══════════════════════════════════════════════════════════════════════════
# Aggregate
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class PermissionsState:
    """All per-category grants of one broker."""

    code_execution: CodeExecutionState = field(default_factory=CodeExecutionState)
    file_system: FileSystemState = field(default_factory=FileSystemState)
    resource: ResourceState = field(default_factory=ResourceState)
    screen_capture: ScreenCaptureState = field(default_factory=ScreenCaptureState)
    tool_execution: ToolExecutionState = field(default_factory=ToolExecutionState)
    play_mode: PlayModeState = field(default_factory=PlayModeState)
    asset_generation: AssetGenerationState = field(
        default_factory=AssetGenerationState
    )

    @classmethod
    def create(cls, project_root: str | None = None) -> "PermissionsState":
        return cls(file_system=FileSystemState(project_root=project_root or os.getcwd()))

    def _sub_states(self) -> list[CategoryState]:
        return [
            self.code_execution,
            self.file_system,
            self.resource,
            self.screen_capture,
            self.tool_execution,
            self.play_mode,
            self.asset_generation,
        ]

    def for_category(self, category: PermissionCategory) -> CategoryState:
        mapping: dict[PermissionCategory, CategoryState] = {
            PermissionCategory.CODE_EXECUTION: self.code_execution,
            PermissionCategory.FILE_SYSTEM: self.file_system,
            PermissionCategory.RESOURCE_ACCESS: self.resource,
            PermissionCategory.SCREEN_CAPTURE: self.screen_capture,
            PermissionCategory.TOOL_EXECUTION: self.tool_execution,
            PermissionCategory.PLAY_MODE: self.play_mode,
            PermissionCategory.ASSET_GENERATION: self.asset_generation,
        }
        return mapping[category]

    def allow(self, category: PermissionCategory, *params: Any) -> None:
        self.for_category(category).allow(*params)

    def is_allowed(self, category: PermissionCategory, *params: Any) -> bool:
        return self.for_category(category).is_allowed(*params)

    def reset(self) -> None:
        for sub_state in self._sub_states():
            sub_state.reset()

    def reset_ignored_resources(self) -> None:
        self.resource.reset_ignored_resources()

    def get_temporary_permissions(self) -> list[TemporaryPermission]:
        permissions: list[TemporaryPermission] = []
        for sub_state in self._sub_states():
            sub_state.append_temporary_permissions(permissions)
        return permissions

    def to_dict(self) -> dict:
        return {
            "version": STATE_VERSION,
            "code_execution": self.code_execution.to_dict(),
            "file_system": self.file_system.to_dict(),
            "resource": self.resource.to_dict(),
            "screen_capture": self.screen_capture.to_dict(),
            "tool_execution": self.tool_execution.to_dict(),
            "play_mode": self.play_mode.to_dict(),
            "asset_generation": self.asset_generation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict, project_root: str | None = None) -> "PermissionsState":
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise PersistenceError(f"Unsupported permission state version: {version}")
        return cls(
            code_execution=CodeExecutionState.from_dict(data.get("code_execution", {})),
            file_system=FileSystemState.from_dict(
                data.get("file_system", {}), project_root=project_root
            ),
            resource=ResourceState.from_dict(data.get("resource", {})),
            screen_capture=ScreenCaptureState.from_dict(data.get("screen_capture", {})),
            tool_execution=ToolExecutionState.from_dict(data.get("tool_execution", {})),
            play_mode=PlayModeState.from_dict(data.get("play_mode", {})),
            asset_generation=AssetGenerationState.from_dict(
                data.get("asset_generation", {})
            ),
        )

    def serialize(self) -> str:
        return orjson.dumps(self.to_dict()).decode("utf-8")

    @classmethod
    def deserialize(
        cls, blob: str | bytes, project_root: str | None = None
    ) -> "PermissionsState":
        """Decode a blob produced by serialize(). Raises PersistenceError."""
        try:
            data = orjson.loads(blob)
        except orjson.JSONDecodeError as e:
            raise PersistenceError(f"Invalid permission state: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError("Invalid permission state: expected an object")

        try:
            return cls.from_dict(data, project_root=project_root)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(f"Invalid permission state: {e}") from e


__all__ = [
    "CategoryState",
    "FlagState",
    "CodeExecutionState",
    "ScreenCaptureState",
    "AssetGenerationState",
    "FileSystemState",
    "ResourceState",
    "ToolExecutionState",
    "PlayModeState",
    "PermissionsState",
]
