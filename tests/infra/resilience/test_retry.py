"""
重试机制单元测试
"""

import asyncio

import pytest

from core.errors import DecodeFailedError, LoadFailedError
from infra.resilience.retry import _calculate_delay, retry_async


class TestCalculateDelay:
    def test_exponential_growth(self):
        assert _calculate_delay(0, 0.5, 2.0, 30.0) == 0.5
        assert _calculate_delay(2, 0.5, 2.0, 30.0) == 2.0

    def test_capped_by_max_delay(self):
        assert _calculate_delay(10, 1.0, 2.0, 5.0) == 5.0


class TestRetryAsync:
    def test_retries_until_success(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise LoadFailedError("temporarily unavailable")
            return "ok"

        assert asyncio.run(retry_async(flaky, max_retries=2, base_delay=0)) == "ok"
        assert len(attempts) == 3

    def test_gives_up_after_max_retries(self):
        attempts = []

        async def always_fails():
            attempts.append(1)
            raise LoadFailedError("down")

        with pytest.raises(LoadFailedError):
            asyncio.run(retry_async(always_fails, max_retries=1, base_delay=0))
        assert len(attempts) == 2

    def test_non_retryable_error_is_raised_immediately(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise DecodeFailedError("bad syntax")

        with pytest.raises(DecodeFailedError):
            asyncio.run(retry_async(broken, max_retries=3, base_delay=0))
        assert len(attempts) == 1

    def test_custom_retryable_errors(self):
        attempts = []

        async def decode_then_succeed():
            attempts.append(1)
            if len(attempts) == 1:
                raise DecodeFailedError("partial write")
            return "ok"

        result = asyncio.run(
            retry_async(decode_then_succeed, max_retries=1, base_delay=0, retryable_errors=(DecodeFailedError,))
        )
        assert result == "ok"
        assert len(attempts) == 2
