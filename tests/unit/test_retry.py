"""Tests for retry with exponential backoff."""

import pytest

from services.image_providers.errors import InvalidInputError, ProviderError, RateLimitError
from utils.retry import backoff_delay, is_retryable_error, retry_async

pytestmark = pytest.mark.unit


class FlakyOperation:
    """Fails with the given errors, then returns ``value``."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestBackoff:
    """Tests for backoff_delay."""

    def test_exponential_sequence(self):
        assert [backoff_delay(i) for i in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_custom_bounds(self):
        assert backoff_delay(3, base_delay=0.5, max_delay=3.0) == 3.0

    def test_is_retryable_error(self):
        assert is_retryable_error(ProviderError("x", "BFL", retryable=True)) is True
        assert is_retryable_error(RateLimitError("x", "BFL")) is True
        assert is_retryable_error(InvalidInputError("x", "BFL")) is False
        assert is_retryable_error(ValueError("x")) is False


class TestRetryAsync:
    """Tests for retry_async."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, sleeper):
        operation = FlakyOperation([])
        assert await retry_async(operation, sleep=sleeper) == "ok"
        assert operation.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self, sleeper):
        operation = FlakyOperation(
            [ProviderError("503", "OPENAI", retryable=True), RateLimitError("429", "OPENAI")]
        )
        assert await retry_async(operation, max_attempts=3, sleep=sleeper) == "ok"
        assert operation.calls == 3
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, sleeper):
        error = ProviderError("400", "OPENAI", retryable=False)
        operation = FlakyOperation([error])

        with pytest.raises(ProviderError) as exc_info:
            await retry_async(operation, max_attempts=3, sleep=sleeper)

        assert exc_info.value is error
        assert operation.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self, sleeper):
        errors = [ProviderError(f"fail {i}", "FAL", retryable=True) for i in range(3)]
        operation = FlakyOperation(errors.copy())

        with pytest.raises(ProviderError) as exc_info:
            await retry_async(operation, max_attempts=3, sleep=sleeper)

        assert exc_info.value is errors[-1]
        assert operation.calls == 3
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, sleeper):
        operation = FlakyOperation([ProviderError("x", "FAL", retryable=True)])
        with pytest.raises(ProviderError):
            await retry_async(operation, max_attempts=1, sleep=sleeper)
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_invalid_max_attempts(self, sleeper):
        with pytest.raises(ValueError):
            await retry_async(FlakyOperation([]), max_attempts=0, sleep=sleeper)

    @pytest.mark.asyncio
    async def test_custom_predicate(self, sleeper):
        operation = FlakyOperation([KeyError("x")])
        result = await retry_async(
            operation, is_retryable=lambda e: isinstance(e, KeyError), sleep=sleeper
        )
        assert result == "ok"
        assert operation.calls == 2
