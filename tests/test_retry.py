"""Tests for retry_with_backoff."""

from __future__ import annotations

import pytest

from relaykit.core.errors import NumberUnavailable, ProviderUnavailable
from relaykit.core.retry import retry_with_backoff
from relaykit.models.policy import RetryPolicy

POLICY = RetryPolicy(max_retries=3, base_delay_seconds=0.001, max_delay_seconds=0.001)


class _Flaky:
    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.calls = 0
        self.exc = exc or ProviderUnavailable("mock", "flaky")

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return value


class TestRetryWithBackoff:
    async def test_succeeds_first_time(self) -> None:
        fn = _Flaky(0)
        assert await retry_with_backoff(fn, POLICY, "ok") == "ok"
        assert fn.calls == 1

    async def test_retries_provider_unavailable(self) -> None:
        fn = _Flaky(2)
        assert await retry_with_backoff(fn, POLICY, "ok") == "ok"
        assert fn.calls == 3

    async def test_raises_last_exception_when_exhausted(self) -> None:
        fn = _Flaky(10)
        with pytest.raises(ProviderUnavailable):
            await retry_with_backoff(fn, POLICY, "ok")
        assert fn.calls == 4

    async def test_business_errors_are_not_retried(self) -> None:
        fn = _Flaky(10, NumberUnavailable("mock", "gone"))
        with pytest.raises(NumberUnavailable):
            await retry_with_backoff(fn, POLICY, "ok")
        assert fn.calls == 1

    async def test_custom_retry_on(self) -> None:
        fn = _Flaky(1, NumberUnavailable("mock", "gone"))
        result = await retry_with_backoff(fn, POLICY, "ok", retry_on=(NumberUnavailable,))
        assert result == "ok"
        assert fn.calls == 2

    async def test_zero_retries(self) -> None:
        fn = _Flaky(1)
        with pytest.raises(ProviderUnavailable):
            await retry_with_backoff(fn, RetryPolicy(max_retries=0), "ok")
        assert fn.calls == 1
