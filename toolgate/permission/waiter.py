"""
ConsentWaiter - races a consent request against a timeout and cancellation.

Exactly one outcome is applied per request: the losing signals are
withdrawn before the waiter returns, so a stale timeout can never fire
after the user already answered (and vice versa).
"""

import asyncio

from toolgate.permission.errors import ConsentCancelledError, ConsentTimeoutError
from toolgate.permission.interaction import ConsentRequest
from toolgate.permission.models import UserAnswer
from toolgate.utils.abort_signal import AbortSignal
from toolgate.utils.logging import get_logger

logger = get_logger(__name__)


class ConsentWaiter:
    """
    Coordinator for waiting on user consent.

    Tracks every pending request so they can be withdrawn together, e.g.
    when the session is shutting down.
    """

    def __init__(self, default_timeout: float = 600.0) -> None:
        """
        Args:
            default_timeout: Timeout in seconds used when none is given
        """
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._default_timeout = default_timeout
        self._pending: dict[str, ConsentRequest] = {}

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    @property
    def pending_requests(self) -> list[ConsentRequest]:
        return list(self._pending.values())

    async def wait_for_answer(
        self,
        request: ConsentRequest,
        abort_signal: AbortSignal | None = None,
        timeout: float | None = None,
    ) -> UserAnswer:
        """
        Wait for the user's answer to an already published request.

        Raises:
            ConsentTimeoutError: no answer within `timeout` seconds
            ConsentCancelledError: `abort_signal` fired, or the request was
                withdrawn by someone else
        """
        if timeout is None:
            timeout = self._default_timeout
        elif timeout <= 0:
            raise ValueError("timeout must be positive")

        if abort_signal is not None and abort_signal.is_aborted():
            request.cancel(abort_signal.reason)
            raise ConsentCancelledError(abort_signal.reason)

        answer_future = request.as_future()
        abort_task: asyncio.Task | None = None
        waiters: set[asyncio.Future] = {answer_future}
        if abort_signal is not None:
            abort_task = asyncio.ensure_future(abort_signal.wait())
            waiters.add(abort_task)

        self._pending[request.request_id] = request
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled
            request.cancel("task cancelled")
            raise
        finally:
            self._pending.pop(request.request_id, None)
            if abort_task is not None and not abort_task.done():
                abort_task.cancel()

        if answer_future in done:
            if answer_future.cancelled():
                logger.info(
                    "consent_request_withdrawn",
                    request_id=request.request_id,
                    reason=request.cancel_reason,
                )
                raise ConsentCancelledError(request.cancel_reason)
            return answer_future.result()

        if abort_task is not None and abort_task in done:
            request.cancel(abort_signal.reason)
            logger.info(
                "consent_cancelled",
                request_id=request.request_id,
                function_id=request.call.function_id,
                reason=abort_signal.reason,
            )
            raise ConsentCancelledError(abort_signal.reason)

        request.cancel("timeout")
        logger.warning(
            "consent_wait_timeout",
            request_id=request.request_id,
            function_id=request.call.function_id,
            timeout=timeout,
        )
        raise ConsentTimeoutError(timeout)

    def cancel_all(self, reason: str = "Consent requests withdrawn") -> int:
        """Withdraw every pending request. Their checks fail with ConsentCancelledError."""
        count = 0
        for request in list(self._pending.values()):
            if request.cancel(reason):
                count += 1
        if count:
            logger.info("consent_requests_withdrawn", count=count, reason=reason)
        return count


__all__ = ["ConsentWaiter"]
