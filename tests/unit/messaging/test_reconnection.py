"""Tests for the reconnection handler."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from health_agent.messaging.gateway_helpers.reconnection import ReconnectionHandler, ReconnectionPolicy


class TestReconnectionPolicy:
    def test_delay_is_linear_in_attempt(self):
        policy = ReconnectionPolicy(base_delay_seconds=5.0, max_attempts=10)

        assert [policy.delay_for(n) for n in (1, 2, 3)] == [5.0, 10.0, 15.0]


class TestReconnectionHandler:
    @pytest.mark.asyncio
    async def test_success_resets_attempts(self):
        sleep = AsyncMock()
        handler = ReconnectionHandler("svc", ReconnectionPolicy(2.0, 5), sleep=sleep)
        attempt = AsyncMock(side_effect=[RedisConnectionError("down"), None])

        assert await handler.run(attempt) is True

        assert attempt.await_count == 2
        assert [call.args[0] for call in sleep.await_args_list] == [2.0, 4.0]
        assert handler.attempts == 0

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = AsyncMock()
        handler = ReconnectionHandler("svc", ReconnectionPolicy(1.0, 3), sleep=sleep)
        attempt = AsyncMock(side_effect=OSError("refused"))

        assert await handler.run(attempt) is False

        assert attempt.await_count == 3
        assert handler.attempts == 3
        assert handler.exhausted is True

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        handler = ReconnectionHandler("svc", ReconnectionPolicy(0.0, 3), sleep=AsyncMock())
        attempt = AsyncMock(side_effect=KeyError("bug"))

        with pytest.raises(KeyError):
            await handler.run(attempt)
