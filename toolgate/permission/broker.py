"""
PermissionBroker - decides whether a tool call may perform a sensitive action.

For each check:
1. Ask the policy provider (ALLOW / ASK / DENY)
2. On ASK, consult the standing grants in PermissionsState
3. If still undecided, publish a ConsentRequest and race the user's answer
   against the timeout and the call's abort signal
4. Apply the answer (ALLOW_ALWAYS records a grant) and return, or raise

Checks never block each other: each pending check suspends on its own
request. State mutations are synchronous and happen after the race is
settled, so a stale timeout cannot undo an approval.
"""

import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, TypeVar

from toolgate.permission import prompts
from toolgate.permission.errors import (
    CallerError,
    PermissionDeniedError,
    PersistenceError,
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
from toolgate.permission.policy import PermissionsPolicyProvider, validate_resource_args
from toolgate.permission.state import PermissionsState, ResourceLiveness
from toolgate.permission.storage import StateSlot
from toolgate.permission.surface import ConsentSurface
from toolgate.permission.waiter import ConsentWaiter
from toolgate.utils.abort_signal import AbortSignal
from toolgate.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_STATE_KEY = "__TOOLGATE_TOOL_PERMISSIONS__"

E = TypeVar("E", bound=Enum)

PermissionResponseListener = Callable[[CallInfo, UserAnswer, PermissionCategory], None]


def _coerce(enum_cls: type[E], value: Any) -> E:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise CallerError(f"Invalid {enum_cls.__name__}: {value!r}") from e


class ToolPermissions(ABC):
    """
    Contract exposed to tool call sites.

    Every check returns normally when the action is authorized and raises
    otherwise (see toolgate.permission.errors).
    """

    @abstractmethod
    def reset_temporary_permissions(self) -> None:
        """Drop every "always allow" grant and ignored resource."""

    @abstractmethod
    def reset_ignored_resources(self) -> None:
        """Drop only the ignored resources."""

    @abstractmethod
    def get_temporary_permissions(self) -> list[TemporaryPermission]:
        """Standing grants with a revoke function each."""

    @abstractmethod
    async def check_tool_execution(
        self, call: CallInfo, abort_signal: AbortSignal | None = None
    ) -> None: ...

    @abstractmethod
    async def check_file_system_access(
        self,
        call: CallInfo,
        operation: ItemOperation,
        path: str,
        abort_signal: AbortSignal | None = None,
    ) -> None: ...

    @abstractmethod
    async def check_resource_access(
        self,
        call: CallInfo,
        operation: ItemOperation,
        resource_type: type | None = None,
        target: ResourceRef | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> None: ...

    @abstractmethod
    def ignore_resource(self, call: CallInfo, target: ResourceRef | None) -> None:
        """Skip every later resource check on `target` (and what it owns)."""

    @abstractmethod
    async def check_code_execution(
        self, call: CallInfo, code: str, abort_signal: AbortSignal | None = None
    ) -> None: ...

    @abstractmethod
    async def check_screen_capture(
        self, call: CallInfo, abort_signal: AbortSignal | None = None
    ) -> None: ...

    @abstractmethod
    async def check_play_mode(
        self,
        call: CallInfo,
        operation: PlayModeOperation,
        abort_signal: AbortSignal | None = None,
    ) -> None: ...

    @abstractmethod
    async def check_asset_generation(
        self,
        call: CallInfo,
        path: str,
        asset_type: type | str,
        cost: int,
        abort_signal: AbortSignal | None = None,
    ) -> None: ...


class AllowAllToolPermissions(ToolPermissions):
    """Approves every check and records nothing."""

    def reset_temporary_permissions(self) -> None:
        pass

    def reset_ignored_resources(self) -> None:
        pass

    def get_temporary_permissions(self) -> list[TemporaryPermission]:
        return []

    async def check_tool_execution(self, call, abort_signal=None) -> None:
        return None

    async def check_file_system_access(
        self, call, operation, path, abort_signal=None
    ) -> None:
        return None

    async def check_resource_access(
        self, call, operation, resource_type=None, target=None, abort_signal=None
    ) -> None:
        return None

    def ignore_resource(self, call, target) -> None:
        pass

    async def check_code_execution(self, call, code, abort_signal=None) -> None:
        return None

    async def check_screen_capture(self, call, abort_signal=None) -> None:
        return None

    async def check_play_mode(self, call, operation, abort_signal=None) -> None:
        return None

    async def check_asset_generation(
        self, call, path, asset_type, cost, abort_signal=None
    ) -> None:
        return None


class PermissionBroker(ToolPermissions):
    """
    Permission broker for one session/process.

    Owns the PermissionsState. Consent requests are handed to `surface`
    by reference and awaited through a ConsentWaiter.
    """

    def __init__(
        self,
        policy_provider: PermissionsPolicyProvider,
        surface: ConsentSurface,
        *,
        state: PermissionsState | None = None,
        state_slot: StateSlot | None = None,
        state_key: str = DEFAULT_STATE_KEY,
        consent_timeout: float = 600.0,
        project_root: str | None = None,
        is_resource_alive: ResourceLiveness | None = None,
    ) -> None:
        """
        Args:
            policy_provider: Organizational rules, queried on every check
            surface: Where consent requests are shown
            state: Initial grants (default: empty)
            state_slot: Persisted slot for grants (None = not persisted)
            state_key: Key of the blob inside the slot
            consent_timeout: Seconds to wait for an answer before failing
            project_root: Root of the project tree for file-system scoping
            is_resource_alive: Tells whether an ignored resource id still exists
        """
        self.policy_provider = policy_provider
        self.surface = surface
        self.state_slot = state_slot
        self.state_key = state_key
        self.project_root = project_root or os.getcwd()
        self.is_resource_alive = is_resource_alive
        self.waiter = ConsentWaiter(default_timeout=consent_timeout)
        self._state = (
            state if state is not None else PermissionsState.create(self.project_root)
        )
        self._response_listeners: list[PermissionResponseListener] = []

    @property
    def state(self) -> PermissionsState:
        return self._state

    @property
    def consent_timeout(self) -> float:
        return self.waiter.default_timeout

    # ──────────────────────────────────────────────────────────────────
    # Lifecycle / persistence
    # ──────────────────────────────────────────────────────────────────

    async def on_after_resume(self) -> bool:
        """
        Load grants from the slot. Call once at startup, before any check.

        Returns True when a saved state was restored. A missing, unreadable
        or corrupt blob leaves a fresh, empty state.
        """
        if self.state_slot is None:
            return False

        try:
            blob = await self.state_slot.read(self.state_key)
        except Exception as e:
            logger.warning(
                "permission_state_read_failed", key=self.state_key, error=str(e)
            )
            return False

        if blob is None:
            return False

        try:
            self._state = PermissionsState.deserialize(blob, project_root=self.project_root)
        except PersistenceError as e:
            logger.warning(
                "permission_state_load_failed", key=self.state_key, error=str(e)
            )
            self._state = PermissionsState.create(self.project_root)
            return False

        logger.info("permission_state_loaded", key=self.state_key)
        return True

    async def on_before_suspend(self) -> None:
        """Save grants to the slot. Call before shutdown or reload."""
        if self.state_slot is None:
            return
        await self.state_slot.write(self.state_key, self._state.serialize())
        logger.info("permission_state_saved", key=self.state_key)

    async def close(self) -> None:
        """Withdraw pending consent requests and release the slot."""
        self.waiter.cancel_all("Permission broker closed")
        if self.state_slot is not None:
            await self.state_slot.close()

    # ──────────────────────────────────────────────────────────────────
    # Grants
    # ──────────────────────────────────────────────────────────────────

    def reset_temporary_permissions(self) -> None:
        self._state.reset()
        logger.info("temporary_permissions_reset")

    def reset_ignored_resources(self) -> None:
        self._state.reset_ignored_resources()

    def get_temporary_permissions(self) -> list[TemporaryPermission]:
        return self._state.get_temporary_permissions()

    def ignore_resource(self, call: CallInfo, target: ResourceRef | None) -> None:
        if target is None:
            return
        self._state.resource.ignore(target)
        logger.debug(
            "resource_ignored",
            function_id=call.function_id,
            resource_id=target.resource_id,
        )

    # ──────────────────────────────────────────────────────────────────
    # Response hook
    # ──────────────────────────────────────────────────────────────────

    def add_response_listener(self, listener: PermissionResponseListener) -> None:
        self._response_listeners.append(listener)

    def remove_response_listener(self, listener: PermissionResponseListener) -> None:
        if listener in self._response_listeners:
            self._response_listeners.remove(listener)

    def on_permission_response(
        self, call: CallInfo, answer: UserAnswer, category: PermissionCategory
    ) -> None:
        """Called after every user answer. Override to report analytics."""
        for listener in list(self._response_listeners):
            try:
                listener(call, answer, category)
            except Exception as e:
                logger.error(
                    "permission_response_listener_failed",
                    function_id=call.function_id,
                    error=str(e),
                    exc_info=True,
                )

    # ──────────────────────────────────────────────────────────────────
    # Checks
    # ──────────────────────────────────────────────────────────────────

    async def check_tool_execution(
        self, call: CallInfo, abort_signal: AbortSignal | None = None
    ) -> None:
        tool_id = call.function_id
        await self._run_check(
            PermissionCategory.TOOL_EXECUTION,
            call,
            policy=lambda: self.policy_provider.get_tool_execution_policy(tool_id),
            is_granted=lambda: self._state.tool_execution.is_allowed(tool_id),
            grant=lambda: self._state.tool_execution.allow(tool_id),
            prompt=lambda: prompts.tool_execution_prompt(call),
            denied_message=lambda: prompts.tool_execution_denied(call),
            abort_signal=abort_signal,
        )

    async def check_file_system_access(
        self,
        call: CallInfo,
        operation: ItemOperation,
        path: str,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        operation = _coerce(ItemOperation, operation)
        if not path:
            raise CallerError("A non-empty path is required")
        path = os.fspath(path)

        await self._run_check(
            PermissionCategory.FILE_SYSTEM,
            call,
            policy=lambda: self.policy_provider.get_file_system_policy(
                call.function_id, operation, path
            ),
            is_granted=lambda: self._state.file_system.is_allowed(operation, path),
            grant=lambda: self._state.file_system.allow(operation, path),
            prompt=lambda: prompts.file_system_prompt(operation, path),
            denied_message=lambda: prompts.file_system_denied(operation, path),
            details={"operation": operation.value, "path": path},
            operation=operation.value,
            abort_signal=abort_signal,
        )

    async def check_resource_access(
        self,
        call: CallInfo,
        operation: ItemOperation,
        resource_type: type | None = None,
        target: ResourceRef | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        operation = _coerce(ItemOperation, operation)
        resource_type = validate_resource_args(operation, resource_type, target)

        await self._run_check(
            PermissionCategory.RESOURCE_ACCESS,
            call,
            policy=lambda: self.policy_provider.get_resource_policy(
                call.function_id, operation, resource_type, target
            ),
            is_granted=lambda: self._state.resource.is_allowed(
                operation, resource_type, target, self.is_resource_alive
            ),
            grant=lambda: self._state.resource.allow(operation, resource_type, target),
            prompt=lambda: prompts.resource_prompt(operation, resource_type, target),
            denied_message=lambda: prompts.resource_denied(operation),
            details={
                "operation": operation.value,
                "resource_type": resource_type.__name__,
                "resource_id": target.resource_id if target else None,
            },
            operation=operation.value,
            overridden=lambda: self._state.resource.is_ignored(
                target, self.is_resource_alive
            ),
            abort_signal=abort_signal,
        )

    async def check_code_execution(
        self, call: CallInfo, code: str, abort_signal: AbortSignal | None = None
    ) -> None:
        code = code or ""
        await self._run_check(
            PermissionCategory.CODE_EXECUTION,
            call,
            policy=lambda: self.policy_provider.get_code_execution_policy(
                call.function_id, code
            ),
            is_granted=lambda: self._state.code_execution.is_allowed(),
            grant=lambda: self._state.code_execution.allow(),
            prompt=lambda: prompts.code_execution_prompt(code),
            denied_message=prompts.code_execution_denied,
            details={"code": code},
            abort_signal=abort_signal,
        )

    async def check_screen_capture(
        self, call: CallInfo, abort_signal: AbortSignal | None = None
    ) -> None:
        await self._run_check(
            PermissionCategory.SCREEN_CAPTURE,
            call,
            policy=lambda: self.policy_provider.get_screen_capture_policy(
                call.function_id
            ),
            is_granted=lambda: self._state.screen_capture.is_allowed(),
            grant=lambda: self._state.screen_capture.allow(),
            prompt=prompts.screen_capture_prompt,
            denied_message=prompts.screen_capture_denied,
            abort_signal=abort_signal,
        )

    async def check_play_mode(
        self,
        call: CallInfo,
        operation: PlayModeOperation,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        operation = _coerce(PlayModeOperation, operation)
        await self._run_check(
            PermissionCategory.PLAY_MODE,
            call,
            policy=lambda: self.policy_provider.get_play_mode_policy(
                call.function_id, operation
            ),
            is_granted=lambda: self._state.play_mode.is_allowed(operation),
            grant=lambda: self._state.play_mode.allow(operation),
            prompt=lambda: prompts.play_mode_prompt(operation),
            denied_message=lambda: prompts.play_mode_denied(operation),
            details={"operation": operation.value},
            operation=operation.value,
            abort_signal=abort_signal,
        )

    async def check_asset_generation(
        self,
        call: CallInfo,
        path: str,
        asset_type: type | str,
        cost: int,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        await self._run_check(
            PermissionCategory.ASSET_GENERATION,
            call,
            policy=lambda: self.policy_provider.get_asset_generation_policy(
                call.function_id, path, asset_type
            ),
            is_granted=lambda: self._state.asset_generation.is_allowed(),
            grant=lambda: self._state.asset_generation.allow(),
            prompt=lambda: prompts.asset_generation_prompt(path, asset_type, cost),
            denied_message=lambda: prompts.asset_generation_denied(path, asset_type),
            details={"path": path, "cost": cost},
            abort_signal=abort_signal,
        )

    # ──────────────────────────────────────────────────────────────────
    # Decision protocol
    # ──────────────────────────────────────────────────────────────────

    async def _run_check(
        self,
        category: PermissionCategory,
        call: CallInfo,
        *,
        policy: Callable[[], PermissionPolicy],
        is_granted: Callable[[], bool],
        grant: Callable[[], None],
        prompt: Callable[[], ConsentPrompt],
        denied_message: Callable[[], str],
        details: dict[str, Any] | None = None,
        operation: str | None = None,
        overridden: Callable[[], bool] | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> None:
        status = self._get_status(policy(), is_granted, overridden)

        logger.debug(
            "permission_check",
            category=category.value,
            function_id=call.function_id,
            call_id=call.call_id,
            status=status.value,
        )

        if status == PermissionStatus.PENDING:
            request = ConsentRequest(
                category=category,
                call=call,
                prompt=prompt(),
                details=details or {},
            )
            answer = await self._wait_for_user(call, request, abort_signal)

            logger.info(
                "permission_answer",
                category=category.value,
                function_id=call.function_id,
                answer=answer.value,
            )
            self.on_permission_response(call, answer, category)

            if answer == UserAnswer.ALLOW_ONCE:
                status = PermissionStatus.APPROVED
            elif answer == UserAnswer.ALLOW_ALWAYS:
                grant()
                status = PermissionStatus.APPROVED
            elif answer == UserAnswer.DENY_ONCE:
                status = PermissionStatus.DENIED
            else:
                raise ValueError(f"Unknown user answer: {answer}")

        if status == PermissionStatus.APPROVED:
            return

        raise PermissionDeniedError(denied_message(), category, operation)

    @staticmethod
    def _get_status(
        policy: PermissionPolicy,
        is_granted: Callable[[], bool],
        overridden: Callable[[], bool] | None,
    ) -> PermissionStatus:
        policy = PermissionPolicy(policy)
        if policy == PermissionPolicy.ALLOW:
            return PermissionStatus.APPROVED

        # Ignored resources win over both ASK and DENY
        if overridden is not None and overridden():
            return PermissionStatus.APPROVED

        if policy == PermissionPolicy.DENY:
            return PermissionStatus.DENIED

        return PermissionStatus.APPROVED if is_granted() else PermissionStatus.PENDING

    async def _wait_for_user(
        self,
        call: CallInfo,
        request: ConsentRequest,
        abort_signal: AbortSignal | None,
    ) -> UserAnswer:
        try:
            self.surface.publish(call, request)
        except Exception:
            request.cancel("publish failed")
            raise
        return await self.waiter.wait_for_answer(request, abort_signal)


__all__ = [
    "ToolPermissions",
    "AllowAllToolPermissions",
    "PermissionBroker",
    "PermissionResponseListener",
    "DEFAULT_STATE_KEY",
]
