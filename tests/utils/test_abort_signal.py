"""Tests for AbortSignal and logging helpers."""

import asyncio

import pytest

from toolgate.utils.abort_signal import AbortSignal
from toolgate.utils.logging import filter_sensitive_data


class TestAbortSignal:
    @pytest.mark.asyncio
    async def test_wait_returns_after_abort(self):
        signal = AbortSignal()
        asyncio.get_running_loop().call_later(0.01, signal.abort, "stop")
        await asyncio.wait_for(signal.wait(), timeout=1)
        assert signal.is_aborted()
        assert signal.reason == "stop"

    def test_first_reason_wins(self):
        signal = AbortSignal()
        signal.abort("first")
        signal.abort("second")
        assert signal.reason == "first"

    def test_reset(self):
        signal = AbortSignal()
        signal.abort()
        signal.reset()
        assert not signal.is_aborted()
        assert signal.reason is None


def test_sensitive_keys_are_redacted():
    event = filter_sensitive_data(
        None, "info", {"event": "x", "api_key": "sk-1", "total_tokens": 5}
    )
    assert event["api_key"] == "***REDACTED***"
    assert event["total_tokens"] == 5
