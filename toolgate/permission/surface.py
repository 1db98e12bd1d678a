"""
Consent surfaces - where consent requests are shown to the human.

The broker publishes a request and awaits it; the surface (a chat UI, a
terminal prompt, a test fake) eventually resolves it. Publishing is
fire-and-forget: the broker does not own the surface's lifecycle.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

from toolgate.permission.interaction import ConsentRequest
from toolgate.permission.models import CallInfo, UserAnswer
from toolgate.utils.logging import get_logger

logger = get_logger(__name__)


class ConsentSurface(ABC):
    """Accepts consent requests for display."""

    @abstractmethod
    def publish(self, call: CallInfo, request: ConsentRequest) -> None:
        """Show `request` for `call`. Must not block."""


class QueueConsentSurface(ConsentSurface):
    """
    Consent channel to a UI consumer, backed by asyncio.Queue.

    - publish(): enqueue a request (non-blocking)
    - requests(): async iterate over pending requests until closed
    - close(): signal that no more requests will be published

    Requests withdrawn before the consumer reached them are skipped.
    Single-consumer: requests() can only be claimed once.
    """

    _SENTINEL = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._reader_claimed = False

    def publish(self, call: CallInfo, request: ConsentRequest) -> None:
        if self._closed:
            # Nobody will ever answer; withdraw so the check does not hang
            request.cancel("consent surface closed")
            return
        self._queue.put_nowait(request)
        logger.debug(
            "consent_request_published",
            request_id=request.request_id,
            function_id=call.function_id,
            category=request.category.value,
        )

    async def requests(self) -> AsyncIterator[ConsentRequest]:
        if self._reader_claimed:
            raise RuntimeError("consent_channel_read_already_claimed")
        self._reader_claimed = True
        while True:
            item = await self._queue.get()
            if item is self._SENTINEL:
                break
            if item.done:
                continue
            yield item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._SENTINEL)

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        return f"QueueConsentSurface(closed={self._closed}, qsize={self._queue.qsize()})"


class AutoAnswerSurface(ConsentSurface):
    """
    Answers every request on the next loop iteration.

    `answer` is either a fixed UserAnswer or a function of the request.
    Every published request is kept in `published` for inspection.
    """

    def __init__(
        self,
        answer: UserAnswer | Callable[[ConsentRequest], UserAnswer] = UserAnswer.ALLOW_ONCE,
    ) -> None:
        self._answer = answer
        self.published: list[ConsentRequest] = []

    def publish(self, call: CallInfo, request: ConsentRequest) -> None:
        self.published.append(request)
        answer = self._answer(request) if callable(self._answer) else self._answer
        asyncio.get_running_loop().call_soon(request.resolve, answer)


__all__ = ["ConsentSurface", "QueueConsentSurface", "AutoAnswerSurface"]
