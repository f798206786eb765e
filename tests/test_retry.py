"""Tests for bounded retry and reconnect backoff."""
from __future__ import annotations

import pytest

from surface_pilot.core.errors import ConnectError
from surface_pilot.core.retry import BoundedRetry, ReconnectBackoff, RetryExhausted


class TestBoundedRetry:
    """Tests for BoundedRetry."""

    @pytest.mark.asyncio
    async def test_returns_first_truthy_result(self, recording_sleep):
        results = iter([False, None, "ready"])

        async def check():
            return next(results)

        retry = BoundedRetry(attempts=5, interval=2.0, sleep=recording_sleep)

        assert await retry.run(check) == "ready"
        assert recording_sleep.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausts_after_attempts(self, recording_sleep):
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            return False

        retry = BoundedRetry(attempts=3, interval=1.0, sleep=recording_sleep)

        with pytest.raises(RetryExhausted) as exc_info:
            await retry.run(check)

        assert calls == 3
        assert exc_info.value.attempts == 3
        # No sleep after the final attempt
        assert recording_sleep.calls == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_matching_errors_count_as_failures(self, recording_sleep):
        async def check():
            raise ConnectError("offline")

        retry = BoundedRetry(attempts=2, interval=0.5, sleep=recording_sleep, retry_on=(ConnectError,))

        with pytest.raises(RetryExhausted) as exc_info:
            await retry.run(check)

        assert isinstance(exc_info.value.last_error, ConnectError)

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, recording_sleep):
        async def check():
            raise KeyError("boom")

        retry = BoundedRetry(attempts=5, interval=0.5, sleep=recording_sleep, retry_on=(ConnectError,))

        with pytest.raises(KeyError):
            await retry.run(check)
        assert recording_sleep.calls == []


class TestReconnectBackoff:
    """Tests for ReconnectBackoff."""

    def test_every_failure_returns_long_delay(self):
        backoff = ReconnectBackoff(long_delay=5.0)

        assert backoff.record_failure() == 5.0
        assert backoff.record_failure() == 5.0
        assert backoff.record_failure() == 5.0
        assert backoff.consecutive_failures == 3

    def test_success_resets(self):
        backoff = ReconnectBackoff(long_delay=5.0)
        backoff.record_failure()
        backoff.record_failure()

        backoff.record_success()

        assert backoff.consecutive_failures == 0
        assert backoff.record_failure() == 5.0
        assert backoff.consecutive_failures == 1
