"""
Global PermissionBroker factory for dependency injection.

Provides a process-wide PermissionBroker built from settings, created lazily
on first access. The consent surface is supplied by the embedding
application the first time the broker is requested.
"""

from toolgate.config.settings import ToolgateSettings, settings as global_settings
from toolgate.permission.broker import PermissionBroker
from toolgate.permission.policy import SettingsPolicyProvider
from toolgate.permission.storage import StateSlot, StateSlotConfig, StateSlotFactory
from toolgate.permission.surface import ConsentSurface, QueueConsentSurface
from toolgate.utils.logging import get_logger

logger = get_logger(__name__)

_permission_broker: PermissionBroker | None = None


def create_state_slot(settings: ToolgateSettings) -> StateSlot:
    """Build the persisted slot described by `settings`."""
    storage_type = settings.state_storage_type
    if storage_type == "file":
        config = {"path": settings.state_file_path}
    elif storage_type == "sqlite":
        config = {"db_path": settings.sqlite_db_path}
    elif storage_type == "mongodb":
        config = {"uri": settings.mongo_uri, "db_name": settings.mongo_db_name}
    else:
        config = {}
    return StateSlotFactory.create(StateSlotConfig(storage_type=storage_type, config=config))


def create_permission_broker(
    surface: ConsentSurface,
    settings: ToolgateSettings | None = None,
) -> PermissionBroker:
    """Build a new broker (settings-backed policy, configured slot and timeout)."""
    settings = settings or global_settings
    policy_provider = SettingsPolicyProvider(
        project_root=settings.project_root,
        auto_run=settings.auto_run,
        first_party_prefixes=settings.first_party_tool_prefixes,
    )
    return PermissionBroker(
        policy_provider=policy_provider,
        surface=surface,
        state_slot=create_state_slot(settings),
        state_key=settings.state_key,
        consent_timeout=settings.consent_timeout_seconds,
        project_root=settings.project_root,
    )


def get_permission_broker(surface: ConsentSurface | None = None) -> PermissionBroker:
    """
    Get global PermissionBroker singleton.

    Args:
        surface: Consent surface used when the broker is first created.
            Defaults to a QueueConsentSurface. Ignored afterwards.

    Returns:
        PermissionBroker: Global singleton instance
    """
    global _permission_broker

    if _permission_broker is None:
        logger.info(
            "initializing_global_permission_broker",
            storage_type=global_settings.state_storage_type,
            auto_run=global_settings.auto_run,
        )
        _permission_broker = create_permission_broker(surface or QueueConsentSurface())

    return _permission_broker


def reset_permission_broker() -> None:
    """
    Reset global PermissionBroker singleton.

    This is primarily used for testing to ensure a clean state.
    """
    global _permission_broker
    _permission_broker = None
    logger.debug("permission_broker_reset")


__all__ = [
    "create_state_slot",
    "create_permission_broker",
    "get_permission_broker",
    "reset_permission_broker",
]
