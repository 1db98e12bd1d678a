import asyncio
from typing import Any
import time

import orjson

from toolgate.permission.broker import AllowAllToolPermissions, ToolPermissions
from toolgate.permission.call_permissions import ToolCallPermissions
from toolgate.permission.errors import (
    CallerError,
    ConsentCancelledError,
    ConsentTimeoutError,
    PermissionDeniedError,
)
from toolgate.permission.models import CallInfo
from toolgate.tool.base import BaseTool, ToolResult
from toolgate.utils.abort_signal import AbortSignal
from toolgate.utils.logging import clear_call_context, get_logger, set_call_context

logger = get_logger(__name__)


def parse_tool_args(args: Any) -> dict[str, Any]:
    """Parse tool arguments given as a dict or a JSON object string."""
    if isinstance(args, dict):
        return dict(args)

    if not args:
        return {}

    if not isinstance(args, (str, bytes)):
        raise ValueError(f"Unsupported tool arguments: {type(args).__name__}")

    try:
        value = orjson.loads(args)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid tool arguments: {e}") from e

    if not isinstance(value, dict):
        raise ValueError("Tool arguments must be a JSON object")
    return value


class ToolExecutor:
    """
    ToolExecutor runs tool calls behind the permission broker.

    Each call is first gated with check_tool_execution; the tool then
    receives a ToolCallPermissions for its own fine-grained checks. Every
    permission failure becomes a failed ToolResult with a distinct text.
    """

    def __init__(
        self,
        tools: list[BaseTool],
        permissions: ToolPermissions | None = None,
    ):
        self.tools = tools
        self.tools_map = {t.get_name(): t for t in tools}
        self.permissions = permissions or AllowAllToolPermissions()

    async def execute_batch(
        self,
        tool_calls: list[dict[str, Any]],
        session_id: str | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> list[ToolResult]:
        """
        Execute multiple tool calls in parallel.

        Consent requests raised by different calls are independent: one call
        waiting for the user does not hold up the others.
        """

        async def _run_single(tc: dict[str, Any]) -> ToolResult:
            try:
                return await self.aexecute(
                    tc, session_id=session_id, abort_signal=abort_signal
                )
            except Exception as e:
                fn = tc.get("function", {}) if isinstance(tc, dict) else {}
                tool_name = fn.get("name", "unknown")
                call_id = tc.get("id", "") if isinstance(tc, dict) else ""
                logger.error(
                    "tool_batch_execute_error",
                    tool_name=tool_name,
                    tool_call_id=call_id,
                    error=str(e),
                    exc_info=True,
                )
                return ToolResult.failed(
                    tool_call_id=call_id,
                    tool_name=tool_name,
                    error=f"Tool execution failed: {e}",
                    start_time=time.time(),
                )

        return await asyncio.gather(*(_run_single(tc) for tc in tool_calls))

    async def aexecute(
        self,
        tool_call: dict[str, Any],
        session_id: str | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> ToolResult:
        call_id = tool_call.get("id") or ""
        fn_name = tool_call.get("function", {}).get("name")
        fn_args = tool_call.get("function", {}).get("arguments", {})

        start_time = time.time()
        if not fn_name:
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name="unknown",
                error="Tool name missing in tool call",
                start_time=start_time,
            )

        tool: BaseTool | None = self.tools_map.get(fn_name)
        if not tool:
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                error=f"Tool {fn_name} not found",
                start_time=start_time,
            )

        try:
            args = parse_tool_args(fn_args)
        except ValueError as e:
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                error=str(e),
                start_time=start_time,
            )

        call = CallInfo(
            function_id=fn_name,
            call_id=call_id,
            session_id=session_id,
            parameters=args,
        )
        permissions = ToolCallPermissions(call, self.permissions, abort_signal)
        set_call_context(call_id=call_id, session_id=session_id)

        try:
            await permissions.check_can_execute()

            logger.debug("executing_tool", tool_name=fn_name, tool_call_id=call_id)
            result: ToolResult = await tool.execute(
                args, permissions=permissions, abort_signal=abort_signal
            )
            logger.debug(
                "tool_execution_completed",
                tool_name=fn_name,
                success=result.is_success,
                duration=result.duration,
            )
            return result
        except CallerError as e:
            logger.error("tool_permission_caller_error", tool_name=fn_name, error=str(e))
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                input_args=args,
                error=f"Invalid permission request: {e}",
                start_time=start_time,
            )
        except PermissionDeniedError as e:
            logger.info(
                "tool_permission_denied",
                tool_name=fn_name,
                category=e.category.value,
                reason=str(e),
            )
            return ToolResult.denied(
                tool_call_id=call_id,
                tool_name=fn_name,
                input_args=args,
                reason=str(e),
                start_time=start_time,
            )
        except ConsentTimeoutError as e:
            logger.warning("tool_permission_timeout", tool_name=fn_name, error=str(e))
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                input_args=args,
                error=f"{e} The permission request may be retried.",
                start_time=start_time,
            )
        except ConsentCancelledError:
            logger.info("tool_permission_cancelled", tool_name=fn_name)
            return ToolResult.aborted(
                tool_call_id=call_id,
                tool_name=fn_name,
                input_args=args,
                start_time=start_time,
            )
        except asyncio.CancelledError:
            logger.info("tool_execution_cancelled", tool_name=fn_name)
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                error="Tool execution was cancelled",
                start_time=start_time,
            )
        except Exception as e:
            logger.error(
                "tool_execution_exception",
                tool_name=fn_name,
                error=str(e),
                exc_info=True,
            )
            return ToolResult.failed(
                tool_call_id=call_id,
                tool_name=fn_name,
                error=f"Tool execution failed: {e}",
                start_time=start_time,
            )
        finally:
            clear_call_context()


__all__ = ["ToolExecutor", "parse_tool_args"]
