"""Tests for ConsentWaiter: answer vs timeout vs cancellation."""

import asyncio

import pytest

from toolgate.permission.errors import ConsentCancelledError, ConsentTimeoutError
from toolgate.permission.interaction import ConsentPrompt, ConsentRequest
from toolgate.permission.models import CallInfo, PermissionCategory, UserAnswer
from toolgate.permission.waiter import ConsentWaiter
from toolgate.utils.abort_signal import AbortSignal


def _make_request() -> ConsentRequest:
    return ConsentRequest(
        category=PermissionCategory.CODE_EXECUTION,
        call=CallInfo(function_id="Run.Code", call_id="call-1"),
        prompt=ConsentPrompt(action="Execute code", code="print(1)"),
    )


@pytest.fixture
def waiter():
    return ConsentWaiter(default_timeout=5.0)


def test_timeout_must_be_positive():
    with pytest.raises(ValueError):
        ConsentWaiter(default_timeout=0)


class TestWaitForAnswer:
    @pytest.mark.asyncio
    async def test_answer_wins(self, waiter):
        request = _make_request()
        asyncio.get_running_loop().call_later(0.01, request.resolve, UserAnswer.ALLOW_ALWAYS)

        answer = await waiter.wait_for_answer(request)

        assert answer == UserAnswer.ALLOW_ALWAYS
        assert waiter.pending_requests == []

    @pytest.mark.asyncio
    async def test_already_answered(self, waiter):
        request = _make_request()
        request.resolve(UserAnswer.DENY_ONCE)
        assert await waiter.wait_for_answer(request) == UserAnswer.DENY_ONCE

    @pytest.mark.asyncio
    async def test_timeout_cancels_request(self, waiter):
        request = _make_request()

        with pytest.raises(ConsentTimeoutError) as exc_info:
            await waiter.wait_for_answer(request, timeout=0.05)

        assert request.cancelled
        assert exc_info.value.timeout_seconds == 0.05
        # A late answer is ignored
        assert request.resolve(UserAnswer.ALLOW_ONCE) is False

    @pytest.mark.asyncio
    async def test_timeout_is_not_a_denial(self, waiter):
        request = _make_request()
        with pytest.raises(TimeoutError):
            await waiter.wait_for_answer(request, timeout=0.01)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [0, -1.0])
    async def test_explicit_timeout_must_be_positive(self, waiter, timeout):
        request = _make_request()
        with pytest.raises(ValueError):
            await waiter.wait_for_answer(request, timeout=timeout)
        assert not request.cancelled
        assert waiter.pending_requests == []

    @pytest.mark.asyncio
    async def test_abort_while_pending(self, waiter):
        request = _make_request()
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.01, signal.abort, "Turn cancelled")

        with pytest.raises(ConsentCancelledError) as exc_info:
            await waiter.wait_for_answer(request, abort_signal=signal)

        assert exc_info.value.reason == "Turn cancelled"
        assert request.cancelled
        assert waiter.pending_requests == []

    @pytest.mark.asyncio
    async def test_already_aborted(self, waiter):
        request = _make_request()
        signal = AbortSignal()
        signal.abort("gone")

        with pytest.raises(ConsentCancelledError):
            await waiter.wait_for_answer(request, abort_signal=signal)
        assert request.cancelled

    @pytest.mark.asyncio
    async def test_answer_then_abort_keeps_answer(self, waiter):
        request = _make_request()
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.01, request.resolve, UserAnswer.ALLOW_ONCE)

        answer = await waiter.wait_for_answer(request, abort_signal=signal)
        signal.abort("late")

        assert answer == UserAnswer.ALLOW_ONCE
        assert request.answer == UserAnswer.ALLOW_ONCE

    @pytest.mark.asyncio
    async def test_withdrawn_by_someone_else(self, waiter):
        request = _make_request()
        asyncio.get_running_loop().call_later(0.01, request.cancel, "surface closed")

        with pytest.raises(ConsentCancelledError) as exc_info:
            await waiter.wait_for_answer(request)
        assert exc_info.value.reason == "surface closed"

    @pytest.mark.asyncio
    async def test_task_cancellation_withdraws_request(self, waiter):
        request = _make_request()
        task = asyncio.create_task(waiter.wait_for_answer(request))
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert request.cancelled


class TestCancelAll:
    @pytest.mark.asyncio
    async def test_cancel_all_pending(self, waiter):
        first, second = _make_request(), _make_request()
        tasks = [
            asyncio.create_task(waiter.wait_for_answer(first)),
            asyncio.create_task(waiter.wait_for_answer(second)),
        ]
        await asyncio.sleep(0.01)
        assert len(waiter.pending_requests) == 2

        assert waiter.cancel_all("shutdown") == 2

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, ConsentCancelledError) for r in results)
        assert waiter.pending_requests == []
