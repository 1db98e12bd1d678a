"""Tests for ToolCallPermissions and the global broker factory."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from toolgate.config.settings import ToolgateSettings
from toolgate.permission.broker import PermissionBroker, ToolPermissions
from toolgate.permission.call_permissions import ToolCallPermissions
from toolgate.permission.factory import (
    create_permission_broker,
    create_state_slot,
    get_permission_broker,
    reset_permission_broker,
)
from toolgate.permission.models import (
    CallInfo,
    ItemOperation,
    PermissionPolicy,
    PlayModeOperation,
    ResourceRef,
)
from toolgate.permission.policy import SettingsPolicyProvider
from toolgate.permission.storage import FileStateSlot, InMemoryStateSlot, SQLiteStateSlot
from toolgate.permission.surface import AutoAnswerSurface, QueueConsentSurface
from toolgate.utils.abort_signal import AbortSignal

CALL = CallInfo(function_id="toolgate.builtin.EditFile", call_id="call-7")


@pytest.fixture
def broker():
    mock = MagicMock(spec=ToolPermissions)
    for name in (
        "check_tool_execution",
        "check_file_system_access",
        "check_resource_access",
        "check_code_execution",
        "check_screen_capture",
        "check_play_mode",
        "check_asset_generation",
    ):
        setattr(mock, name, AsyncMock())
    return mock


@pytest.fixture
def signal():
    return AbortSignal()


@pytest.fixture
def permissions(broker, signal):
    return ToolCallPermissions(CALL, broker, signal)


class TestToolCallPermissions:
    @pytest.mark.asyncio
    async def test_binds_call_and_signal(self, permissions, broker, signal):
        target = ResourceRef("n-1", object)

        await permissions.check_can_execute()
        await permissions.check_file_system_access(ItemOperation.READ, "a.txt")
        await permissions.check_resource_access(ItemOperation.MODIFY, target=target)
        await permissions.check_code_execution("x = 1")
        await permissions.check_screen_capture()
        await permissions.check_play_mode(PlayModeOperation.EXIT)
        await permissions.check_asset_generation("a.png", "Texture", 4)

        broker.check_tool_execution.assert_awaited_once_with(CALL, signal)
        broker.check_file_system_access.assert_awaited_once_with(
            CALL, ItemOperation.READ, "a.txt", signal
        )
        broker.check_resource_access.assert_awaited_once_with(
            CALL, ItemOperation.MODIFY, None, target, signal
        )
        broker.check_code_execution.assert_awaited_once_with(CALL, "x = 1", signal)
        broker.check_screen_capture.assert_awaited_once_with(CALL, signal)
        broker.check_play_mode.assert_awaited_once_with(
            CALL, PlayModeOperation.EXIT, signal
        )
        broker.check_asset_generation.assert_awaited_once_with(
            CALL, "a.png", "Texture", 4, signal
        )

    def test_ignore_resource(self, permissions, broker):
        target = ResourceRef("n-1", object)
        permissions.ignore_resource(target)
        broker.ignore_resource.assert_called_once_with(CALL, target)

    @pytest.mark.asyncio
    async def test_against_real_broker(self, tmp_path):
        broker = PermissionBroker(
            SettingsPolicyProvider(project_root=str(tmp_path)),
            AutoAnswerSurface(),
            project_root=str(tmp_path),
        )
        permissions = ToolCallPermissions(CALL, broker)
        await permissions.check_file_system_access(
            ItemOperation.READ, str(tmp_path / "notes.txt")
        )


class TestSettings:
    def test_defaults(self):
        settings = ToolgateSettings(_env_file=None)
        assert settings.consent_timeout_seconds == 600.0
        assert settings.state_storage_type == "memory"
        assert settings.state_key == "__TOOLGATE_TOOL_PERMISSIONS__"
        assert settings.auto_run is False
        assert settings.first_party_tool_prefixes == ["toolgate."]

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("TOOLGATE_AUTO_RUN", "true")
        monkeypatch.setenv("TOOLGATE_CONSENT_TIMEOUT_SECONDS", "30")
        settings = ToolgateSettings(_env_file=None)
        assert settings.auto_run is True
        assert settings.consent_timeout_seconds == 30.0

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            ToolgateSettings(_env_file=None, consent_timeout_seconds=0)


class TestFactory:
    def test_create_state_slot(self, tmp_path):
        assert isinstance(
            create_state_slot(ToolgateSettings(_env_file=None)), InMemoryStateSlot
        )
        file_settings = ToolgateSettings(
            _env_file=None,
            state_storage_type="file",
            state_file_path=str(tmp_path / "p.json"),
        )
        assert isinstance(create_state_slot(file_settings), FileStateSlot)
        sqlite_settings = ToolgateSettings(
            _env_file=None,
            state_storage_type="sqlite",
            sqlite_db_path=str(tmp_path / "t.db"),
        )
        assert isinstance(create_state_slot(sqlite_settings), SQLiteStateSlot)

    def test_create_broker_from_settings(self, tmp_path):
        settings = ToolgateSettings(
            _env_file=None,
            project_root=str(tmp_path),
            auto_run=True,
            consent_timeout_seconds=42,
            state_key="custom",
        )
        broker = create_permission_broker(QueueConsentSurface(), settings)

        assert broker.consent_timeout == 42
        assert broker.state_key == "custom"
        assert broker.project_root == str(tmp_path)
        assert broker.policy_provider.get_code_execution_policy("t", "x") == (
            PermissionPolicy.ALLOW
        )

    def test_singleton(self):
        reset_permission_broker()
        try:
            surface = QueueConsentSurface()
            first = get_permission_broker(surface)
            assert get_permission_broker() is first
            assert first.surface is surface
        finally:
            reset_permission_broker()
        assert get_permission_broker() is not first
        reset_permission_broker()
