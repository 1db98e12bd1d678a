"""
ConsentRequest - one pending question to the human.

A request is created by the broker, handed to the consent surface by
reference, and resolved exactly once: with a UserAnswer by the UI, or
cancelled by the broker on timeout/cancellation.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from toolgate.permission.models import CallInfo, PermissionCategory, UserAnswer
from toolgate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConsentPrompt:
    """Display data for a consent request."""

    action: str
    question: str | None = None
    code: str | None = None
    cost: int | None = None


@dataclass(eq=False)
class ConsentRequest:
    """Single-resolution consent request."""

    category: PermissionCategory
    call: CallInfo
    prompt: ConsentPrompt
    details: dict[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future[UserAnswer] = self._loop.create_future()
        self._cancel_reason: str | None = None

    def resolve(self, answer: UserAnswer) -> bool:
        """
        Resolve with the user's answer.

        Returns False when the request was already resolved or cancelled;
        late answers are ignored.
        """
        if self._future.done():
            logger.debug(
                "consent_request_already_done",
                request_id=self.request_id,
                answer=answer.value,
            )
            return False
        self._future.set_result(UserAnswer(answer))
        return True

    def resolve_threadsafe(self, answer: UserAnswer) -> None:
        """Resolve from a thread other than the event loop's (e.g. a GUI thread)."""
        self._loop.call_soon_threadsafe(self.resolve, answer)

    def cancel(self, reason: str | None = None) -> bool:
        """Withdraw the request. Returns False when it was already done."""
        if self._future.done():
            return False
        self._cancel_reason = reason
        self._future.cancel()
        return True

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def cancelled(self) -> bool:
        return self._future.cancelled()

    @property
    def cancel_reason(self) -> str | None:
        return self._cancel_reason

    @property
    def answer(self) -> UserAnswer | None:
        if not self._future.done() or self._future.cancelled():
            return None
        return self._future.result()

    def add_done_callback(self, callback: Callable[["ConsentRequest"], None]) -> None:
        """Observe resolution or cancellation, e.g. to remove the prompt from a UI."""
        self._future.add_done_callback(lambda _: callback(self))

    async def wait(self) -> UserAnswer:
        """Wait for the answer. Raises asyncio.CancelledError if withdrawn."""
        return await asyncio.shield(self._future)

    def as_future(self) -> "asyncio.Future[UserAnswer]":
        return self._future


__all__ = ["ConsentPrompt", "ConsentRequest"]
