import asyncio


class AbortSignal:
    """
    Cancellation signal tied to the lifetime of one tool call.

    Based on asyncio.Event, supports:
    - Synchronous abort status check
    - Async wait for the abort
    - Recording the abort reason

    Examples:
        >>> signal = AbortSignal()
        >>>
        >>> # The agent turn is cancelled from another task
        >>> signal.abort("Turn cancelled")
        >>>
        >>> if signal.is_aborted():
        >>>     return
        >>>
        >>> await signal.wait()
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    def abort(self, reason: str = "Operation cancelled") -> None:
        """Trigger the signal. Only the first reason is kept."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def is_aborted(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Async wait for the abort signal."""
        await self._event.wait()

    @property
    def reason(self) -> str | None:
        return self._reason

    def reset(self) -> None:
        """Reset abort signal for reuse."""
        self._event.clear()
        self._reason = None
