"""Tests for ConsentRequest and the consent surfaces."""

import asyncio

import pytest

from toolgate.permission.interaction import ConsentPrompt, ConsentRequest
from toolgate.permission.models import CallInfo, PermissionCategory, UserAnswer
from toolgate.permission.surface import AutoAnswerSurface, QueueConsentSurface

CALL = CallInfo(function_id="Unity.ScreenCapture", call_id="call-1")


def _make_request() -> ConsentRequest:
    return ConsentRequest(
        category=PermissionCategory.SCREEN_CAPTURE,
        call=CALL,
        prompt=ConsentPrompt(action="Allow screen capture"),
    )


class TestConsentRequest:
    @pytest.mark.asyncio
    async def test_resolves_exactly_once(self):
        request = _make_request()
        assert request.resolve(UserAnswer.ALLOW_ONCE) is True
        assert request.resolve(UserAnswer.DENY_ONCE) is False
        assert request.answer == UserAnswer.ALLOW_ONCE
        assert await request.wait() == UserAnswer.ALLOW_ONCE

    @pytest.mark.asyncio
    async def test_cancel(self):
        request = _make_request()
        assert request.cancel("timeout") is True
        assert request.cancelled
        assert request.cancel_reason == "timeout"
        assert request.answer is None
        assert request.resolve(UserAnswer.ALLOW_ONCE) is False

    @pytest.mark.asyncio
    async def test_done_callback(self):
        request = _make_request()
        seen = []
        request.add_done_callback(seen.append)
        request.resolve(UserAnswer.DENY_ONCE)
        await asyncio.sleep(0)
        assert seen == [request]

    @pytest.mark.asyncio
    async def test_resolve_from_another_thread(self):
        request = _make_request()
        await asyncio.to_thread(request.resolve_threadsafe, UserAnswer.ALLOW_ALWAYS)
        assert await asyncio.wait_for(request.wait(), timeout=1) == UserAnswer.ALLOW_ALWAYS

    @pytest.mark.asyncio
    async def test_requests_have_unique_ids(self):
        assert _make_request().request_id != _make_request().request_id


class TestQueueConsentSurface:
    @pytest.mark.asyncio
    async def test_publish_and_consume(self):
        surface = QueueConsentSurface()
        first, second = _make_request(), _make_request()
        surface.publish(CALL, first)
        surface.publish(CALL, second)
        surface.close()

        received = [r async for r in surface.requests()]
        assert received == [first, second]

    @pytest.mark.asyncio
    async def test_skips_withdrawn_requests(self):
        surface = QueueConsentSurface()
        stale, fresh = _make_request(), _make_request()
        surface.publish(CALL, stale)
        surface.publish(CALL, fresh)
        stale.cancel("timeout")
        surface.close()

        received = [r async for r in surface.requests()]
        assert received == [fresh]

    @pytest.mark.asyncio
    async def test_publish_after_close_withdraws(self):
        surface = QueueConsentSurface()
        surface.close()
        request = _make_request()
        surface.publish(CALL, request)
        assert request.cancelled
        assert surface.closed

    @pytest.mark.asyncio
    async def test_single_consumer(self):
        surface = QueueConsentSurface()
        surface.close()
        _ = [r async for r in surface.requests()]
        with pytest.raises(RuntimeError):
            async for _ in surface.requests():
                pass


class TestAutoAnswerSurface:
    @pytest.mark.asyncio
    async def test_fixed_answer(self):
        surface = AutoAnswerSurface(UserAnswer.DENY_ONCE)
        request = _make_request()
        surface.publish(CALL, request)
        assert await request.wait() == UserAnswer.DENY_ONCE
        assert surface.published == [request]

    @pytest.mark.asyncio
    async def test_answer_function(self):
        surface = AutoAnswerSurface(
            lambda r: UserAnswer.ALLOW_ALWAYS
            if r.category == PermissionCategory.SCREEN_CAPTURE
            else UserAnswer.DENY_ONCE
        )
        request = _make_request()
        surface.publish(CALL, request)
        assert await request.wait() == UserAnswer.ALLOW_ALWAYS
