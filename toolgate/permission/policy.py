"""
Permission policy providers.

A policy provider maps the parameters of one check to ALLOW, ASK or DENY.
Providers are pure: no I/O, no side effects, safe to call from concurrent
checks. The broker consults its state store only when the answer is ASK.
"""

import os
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from toolgate.permission.errors import CallerError
from toolgate.permission.models import (
    ItemOperation,
    PermissionPolicy,
    PlayModeOperation,
    ResourceRef,
)
from toolgate.permission.paths import is_project_path


class PermissionsPolicyProvider(ABC):
    """Organizational rules queried by the broker, one method per category."""

    @abstractmethod
    def get_tool_execution_policy(self, tool_id: str) -> PermissionPolicy:
        """Policy for running the tool at all."""

    @abstractmethod
    def get_file_system_policy(
        self, tool_id: str, operation: ItemOperation, path: str
    ) -> PermissionPolicy:
        """Policy for a file operation at `path`."""

    @abstractmethod
    def get_resource_policy(
        self,
        tool_id: str,
        operation: ItemOperation,
        resource_type: type | None,
        target: ResourceRef | None,
    ) -> PermissionPolicy:
        """
        Policy for an operation on a host resource.

        `resource_type` is optional when a target is given; `target` is None
        for CREATE.
        """

    @abstractmethod
    def get_code_execution_policy(self, tool_id: str, code: str) -> PermissionPolicy:
        """Policy for executing `code`."""

    @abstractmethod
    def get_screen_capture_policy(self, tool_id: str) -> PermissionPolicy:
        """Policy for capturing the screen."""

    @abstractmethod
    def get_play_mode_policy(
        self, tool_id: str, operation: PlayModeOperation
    ) -> PermissionPolicy:
        """Policy for entering or exiting play mode."""

    @abstractmethod
    def get_asset_generation_policy(
        self, tool_id: str, path: str, asset_type: type | str
    ) -> PermissionPolicy:
        """Policy for generating an asset of `asset_type` at `path`."""


class AllowAllPolicyProvider(PermissionsPolicyProvider):
    """Allows everything. Used for trusted headless runs and tests."""

    def get_tool_execution_policy(self, tool_id):
        return PermissionPolicy.ALLOW

    def get_file_system_policy(self, tool_id, operation, path):
        return PermissionPolicy.ALLOW

    def get_resource_policy(self, tool_id, operation, resource_type, target):
        return PermissionPolicy.ALLOW

    def get_code_execution_policy(self, tool_id, code):
        return PermissionPolicy.ALLOW

    def get_screen_capture_policy(self, tool_id):
        return PermissionPolicy.ALLOW

    def get_play_mode_policy(self, tool_id, operation):
        return PermissionPolicy.ALLOW

    def get_asset_generation_policy(self, tool_id, path, asset_type):
        return PermissionPolicy.ALLOW


def validate_resource_args(
    operation: ItemOperation,
    resource_type: type | None,
    target: ResourceRef | None,
) -> type:
    """
    Check the arguments of a resource access request.

    Returns the concrete type the request is about: the target's type when
    a target is given, otherwise `resource_type`.

    Raises:
        CallerError: the arguments describe no valid request
    """
    if resource_type is None and target is None:
        raise CallerError("Either type or target are required")

    if target is not None and resource_type is not None:
        if not issubclass(target.resource_type, resource_type):
            raise CallerError(
                "Type and target object must match, or only provide the target instance."
            )

    if operation == ItemOperation.CREATE and target is not None:
        raise CallerError("A creation must not provide a target instance.")

    if operation != ItemOperation.CREATE and target is None:
        raise CallerError(
            "You must provide a target instance for all operations except creation."
        )

    return target.resource_type if target is not None else resource_type


def _read_allowed() -> dict[ItemOperation, PermissionPolicy]:
    return {
        ItemOperation.READ: PermissionPolicy.ALLOW,
        ItemOperation.CREATE: PermissionPolicy.ASK,
        ItemOperation.DELETE: PermissionPolicy.ASK,
        ItemOperation.MODIFY: PermissionPolicy.ASK,
    }


def _read_asked() -> dict[ItemOperation, PermissionPolicy]:
    return {
        ItemOperation.READ: PermissionPolicy.ASK,
        ItemOperation.CREATE: PermissionPolicy.DENY,
        ItemOperation.DELETE: PermissionPolicy.DENY,
        ItemOperation.MODIFY: PermissionPolicy.DENY,
    }


class PolicyConfig(BaseModel):
    """Default policy table, editable from a settings surface."""

    first_party_tool: PermissionPolicy = PermissionPolicy.ALLOW
    third_party_tool: PermissionPolicy = PermissionPolicy.ASK
    file_system_project: dict[ItemOperation, PermissionPolicy] = Field(
        default_factory=_read_allowed
    )
    file_system_external: dict[ItemOperation, PermissionPolicy] = Field(
        default_factory=_read_asked
    )
    resource: dict[ItemOperation, PermissionPolicy] = Field(
        default_factory=_read_allowed
    )
    code_execution: PermissionPolicy = PermissionPolicy.ASK
    screen_capture: PermissionPolicy = PermissionPolicy.ASK
    play_mode: dict[PlayModeOperation, PermissionPolicy] = Field(
        default_factory=lambda: {
            PlayModeOperation.ENTER: PermissionPolicy.ASK,
            PlayModeOperation.EXIT: PermissionPolicy.ASK,
        }
    )
    asset_generation_project: PermissionPolicy = PermissionPolicy.ASK
    asset_generation_external: PermissionPolicy = PermissionPolicy.DENY


class SettingsPolicyProvider(PermissionsPolicyProvider):
    """
    Policy provider backed by a PolicyConfig table.

    With `auto_run` enabled every ASK becomes ALLOW; DENY is never relaxed.
    Tools whose id starts with one of `first_party_prefixes` use the
    first-party tool policy.
    """

    def __init__(
        self,
        config: PolicyConfig | None = None,
        project_root: str | None = None,
        auto_run: bool = False,
        first_party_prefixes: list[str] | None = None,
    ) -> None:
        self.config = config or PolicyConfig()
        self.project_root = project_root or os.getcwd()
        self.auto_run = auto_run
        self.first_party_prefixes = tuple(first_party_prefixes or ())

    def is_first_party(self, tool_id: str) -> bool:
        return bool(self.first_party_prefixes) and tool_id.startswith(
            self.first_party_prefixes
        )

    def get_tool_execution_policy(self, tool_id: str) -> PermissionPolicy:
        if self.is_first_party(tool_id):
            policy = self.config.first_party_tool
        else:
            policy = self.config.third_party_tool
        return self._apply_auto_run(policy)

    def get_file_system_policy(
        self, tool_id: str, operation: ItemOperation, path: str
    ) -> PermissionPolicy:
        if is_project_path(path, self.project_root):
            table = self.config.file_system_project
        else:
            table = self.config.file_system_external
        return self._apply_auto_run(table[operation])

    def get_resource_policy(
        self,
        tool_id: str,
        operation: ItemOperation,
        resource_type: type | None,
        target: ResourceRef | None,
    ) -> PermissionPolicy:
        validate_resource_args(operation, resource_type, target)
        return self._apply_auto_run(self.config.resource[operation])

    def get_code_execution_policy(self, tool_id: str, code: str) -> PermissionPolicy:
        return self._apply_auto_run(self.config.code_execution)

    def get_screen_capture_policy(self, tool_id: str) -> PermissionPolicy:
        return self._apply_auto_run(self.config.screen_capture)

    def get_play_mode_policy(
        self, tool_id: str, operation: PlayModeOperation
    ) -> PermissionPolicy:
        return self._apply_auto_run(self.config.play_mode[operation])

    def get_asset_generation_policy(
        self, tool_id: str, path: str, asset_type: type | str
    ) -> PermissionPolicy:
        if is_project_path(path, self.project_root):
            policy = self.config.asset_generation_project
        else:
            policy = self.config.asset_generation_external
        return self._apply_auto_run(policy)

    def _apply_auto_run(self, policy: PermissionPolicy) -> PermissionPolicy:
        if self.auto_run and policy == PermissionPolicy.ASK:
            return PermissionPolicy.ALLOW
        return policy


__all__ = [
    "PermissionsPolicyProvider",
    "AllowAllPolicyProvider",
    "PolicyConfig",
    "SettingsPolicyProvider",
]
