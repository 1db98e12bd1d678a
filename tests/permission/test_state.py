"""Tests for PermissionsState and its per-category sub-states."""

import os

import orjson
import pytest

from toolgate.permission.errors import PersistenceError
from toolgate.permission.models import (
    ItemOperation,
    PermissionCategory,
    PlayModeOperation,
    ResourceRef,
)
from toolgate.permission.state import (
    CodeExecutionState,
    FileSystemState,
    PermissionsState,
    ResourceState,
    ToolExecutionState,
)


class Node:
    pass


class Transform:
    pass


@pytest.fixture
def root(tmp_path):
    return str(tmp_path / "project")


@pytest.fixture
def state(root):
    return PermissionsState.create(root)


def _labels(state: PermissionsState) -> list[str]:
    return [p.name for p in state.get_temporary_permissions()]


class TestFlagState:
    def test_allow_and_reset(self):
        sub = CodeExecutionState()
        assert not sub.is_allowed()
        sub.allow()
        assert sub.is_allowed()
        sub.reset()
        assert not sub.is_allowed()

    def test_grant_label_and_revoke(self):
        sub = CodeExecutionState()
        sub.allow()
        out = []
        sub.append_temporary_permissions(out)
        assert [p.name for p in out] == ["Code Execution"]
        out[0].revoke()
        assert not sub.is_allowed()


class TestFileSystemState:
    def test_project_and_external_never_intermix(self, root, tmp_path):
        sub = FileSystemState(project_root=root)
        sub.allow(ItemOperation.MODIFY, os.path.join(root, "Assets", "Foo.cs"))

        assert sub.is_allowed(ItemOperation.MODIFY, os.path.join(root, "Assets", "Bar.cs"))
        assert not sub.is_allowed(ItemOperation.MODIFY, str(tmp_path / "outside.cs"))
        assert not sub.is_allowed(ItemOperation.DELETE, os.path.join(root, "Foo.cs"))

    def test_external_grant(self, root, tmp_path):
        sub = FileSystemState(project_root=root)
        sub.allow(ItemOperation.READ, str(tmp_path / "outside.txt"))
        assert sub.is_allowed(ItemOperation.READ, str(tmp_path / "other.txt"))
        assert not sub.is_allowed(ItemOperation.READ, os.path.join(root, "a.txt"))

    def test_allow_is_idempotent(self, root):
        sub = FileSystemState(project_root=root)
        path = os.path.join(root, "a.txt")
        sub.allow(ItemOperation.CREATE, path)
        sub.allow(ItemOperation.CREATE, path)
        assert sub.allowed_project_operations == [ItemOperation.CREATE]

    def test_labels(self, root, tmp_path):
        sub = FileSystemState(project_root=root)
        sub.allow(ItemOperation.DELETE, os.path.join(root, "a.txt"))
        sub.allow(ItemOperation.READ, str(tmp_path / "b.txt"))
        out = []
        sub.append_temporary_permissions(out)
        assert [p.name for p in out] == ["Delete Project Files", "Read External Files"]


class TestResourceState:
    def test_operation_grant_is_coarse(self):
        sub = ResourceState()
        sub.allow(ItemOperation.MODIFY, Node)
        target = ResourceRef("n-1", Node)
        assert sub.is_allowed(ItemOperation.MODIFY, Node, target)
        assert not sub.is_allowed(ItemOperation.DELETE, Node, target)

    def test_ignored_resource(self):
        sub = ResourceState()
        target = ResourceRef("n-1", Node)
        sub.ignore(target)
        assert sub.is_ignored(target)
        assert sub.is_allowed(ItemOperation.DELETE, Node, target)
        assert not sub.is_ignored(ResourceRef("n-2", Node))

    def test_ignore_covers_direct_children_only(self):
        sub = ResourceState()
        sub.ignore(ResourceRef("node-1", Node))

        child = ResourceRef("tr-1", Transform, owner_id="node-1")
        grandchild = ResourceRef("x-1", Transform, owner_id="tr-1")
        assert sub.is_ignored(child)
        assert not sub.is_ignored(grandchild)

    def test_dead_resource_is_dropped_lazily(self):
        sub = ResourceState()
        target = ResourceRef("n-1", Node)
        sub.ignore(target)

        assert not sub.is_ignored(target, is_alive=lambda resource_id: False)
        assert sub.ignored_resource_ids == []

    def test_live_resource_stays_ignored(self):
        sub = ResourceState()
        target = ResourceRef("n-1", Node)
        sub.ignore(target)
        assert sub.is_ignored(target, is_alive=lambda resource_id: True)

    def test_reset_ignored_keeps_grants(self):
        sub = ResourceState()
        sub.allow(ItemOperation.CREATE, Node)
        sub.ignore(ResourceRef("n-1", Node))
        sub.reset_ignored_resources()
        assert sub.ignored_resource_ids == []
        assert sub.allowed_operations == [ItemOperation.CREATE]

    def test_ignore_list_is_not_a_grant(self):
        sub = ResourceState()
        sub.ignore(ResourceRef("n-1", Node))
        out = []
        sub.append_temporary_permissions(out)
        assert out == []


class TestToolExecutionState:
    def test_per_tool(self):
        sub = ToolExecutionState()
        sub.allow("Unity.GameObject.RemoveComponent")
        assert sub.is_allowed("Unity.GameObject.RemoveComponent")
        assert not sub.is_allowed("Unity.Other")


class TestPermissionsState:
    def test_dispatch_by_category(self, state, root):
        state.allow(PermissionCategory.TOOL_EXECUTION, "tool.a")
        state.allow(PermissionCategory.PLAY_MODE, PlayModeOperation.ENTER)
        state.allow(PermissionCategory.SCREEN_CAPTURE)

        assert state.is_allowed(PermissionCategory.TOOL_EXECUTION, "tool.a")
        assert state.is_allowed(PermissionCategory.PLAY_MODE, PlayModeOperation.ENTER)
        assert not state.is_allowed(PermissionCategory.PLAY_MODE, PlayModeOperation.EXIT)
        assert state.is_allowed(PermissionCategory.SCREEN_CAPTURE)
        assert not state.is_allowed(PermissionCategory.ASSET_GENERATION)

    def test_enumerate_labels(self, state, root):
        state.code_execution.allow()
        state.screen_capture.allow()
        state.asset_generation.allow()
        state.tool_execution.allow("tool.a")
        state.play_mode.allow(PlayModeOperation.EXIT)
        state.resource.allow(ItemOperation.CREATE, Node)
        state.file_system.allow(ItemOperation.MODIFY, os.path.join(root, "a.cs"))

        assert sorted(_labels(state)) == sorted(
            [
                "Code Execution",
                "Screen Capture",
                "Asset Generation",
                "Tool Execution tool.a",
                "Exit Play Mode",
                "Create Resources",
                "Modify Project Files",
            ]
        )

    def test_revoke_removes_exactly_one_grant(self, state):
        state.tool_execution.allow("tool.a")
        state.tool_execution.allow("tool.b")

        grant = next(
            p for p in state.get_temporary_permissions() if p.name == "Tool Execution tool.a"
        )
        grant.revoke()

        assert not state.tool_execution.is_allowed("tool.a")
        assert state.tool_execution.is_allowed("tool.b")

    def test_reset_clears_everything(self, state, root):
        state.code_execution.allow()
        state.file_system.allow(ItemOperation.READ, os.path.join(root, "a.txt"))
        state.resource.ignore(ResourceRef("n-1", Node))

        state.reset()

        assert state.get_temporary_permissions() == []
        assert state.resource.ignored_resource_ids == []


class TestSerialization:
    def test_round_trip(self, state, root, tmp_path):
        state.code_execution.allow()
        state.tool_execution.allow("tool.a")
        state.play_mode.allow(PlayModeOperation.ENTER)
        state.resource.allow(ItemOperation.MODIFY, Node)
        state.resource.ignore(ResourceRef("n-1", Node))
        state.file_system.allow(ItemOperation.CREATE, os.path.join(root, "a.cs"))
        state.file_system.allow(ItemOperation.READ, str(tmp_path / "ext.txt"))

        restored = PermissionsState.deserialize(state.serialize(), project_root=root)

        assert restored.code_execution.is_allowed()
        assert not restored.screen_capture.is_allowed()
        assert not restored.asset_generation.is_allowed()
        assert restored.tool_execution.is_allowed("tool.a")
        assert restored.play_mode.is_allowed(PlayModeOperation.ENTER)
        assert not restored.play_mode.is_allowed(PlayModeOperation.EXIT)
        assert restored.resource.is_allowed(ItemOperation.MODIFY, Node, ResourceRef("n-9", Node))
        assert restored.resource.is_ignored(ResourceRef("n-1", Node))
        assert restored.file_system.is_allowed(
            ItemOperation.CREATE, os.path.join(root, "b.cs")
        )
        assert restored.file_system.is_allowed(ItemOperation.READ, str(tmp_path / "x.txt"))
        assert not restored.file_system.is_allowed(
            ItemOperation.READ, os.path.join(root, "b.cs")
        )

    def test_enums_stored_by_name(self, state):
        state.play_mode.allow(PlayModeOperation.EXIT)
        data = orjson.loads(state.serialize())
        assert data["play_mode"]["allowed_operations"] == ["EXIT"]
        assert data["version"] == 1

    def test_missing_sections_default_to_empty(self, root):
        restored = PermissionsState.deserialize('{"version": 1}', project_root=root)
        assert restored.get_temporary_permissions() == []

    @pytest.mark.parametrize(
        "blob",
        [
            "not json",
            "[1, 2, 3]",
            '{"version": 99}',
            '{"play_mode": {"allowed_operations": ["JUMP"]}}',
            '{"code_execution": 5}',
        ],
    )
    def test_corrupt_blob_raises_persistence_error(self, blob, root):
        with pytest.raises(PersistenceError):
            PermissionsState.deserialize(blob, project_root=root)
