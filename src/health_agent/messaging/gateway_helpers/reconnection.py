"""Linear-backoff reconnection driver."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type

from redis.exceptions import RedisError

from ..errors import BrokerTransportError

RECONNECT_ERRORS: Tuple[Type[BaseException], ...] = (
    BrokerTransportError,
    RedisError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)


@dataclass(frozen=True)
class ReconnectionPolicy:
    base_delay_seconds: float
    max_attempts: int

    def delay_for(self, attempt: int) -> float:
        """Attempt ``n`` waits ``base_delay * n`` seconds."""
        return self.base_delay_seconds * attempt


class ReconnectionHandler:
    """Counts attempts and runs them until one succeeds or the cap is reached."""

    def __init__(
        self,
        service_name: str,
        policy: ReconnectionPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.service_name = service_name
        self.policy = policy
        self._sleep = sleep
        self.attempts = 0
        self.logger = logging.getLogger(f"{__name__}.{service_name}")

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.policy.max_attempts

    def reset(self) -> None:
        self.attempts = 0

    async def run(self, attempt_once: Callable[[], Awaitable[None]]) -> bool:
        """Return True once *attempt_once* succeeds, False after the last failed attempt."""
        while not self.exhausted:
            self.attempts += 1
            delay = self.policy.delay_for(self.attempts)
            self.logger.info(
                "Reconnecting in %.1fs (attempt %s/%s)",
                delay,
                self.attempts,
                self.policy.max_attempts,
            )
            await self._sleep(delay)
            try:
                await attempt_once()
            except RECONNECT_ERRORS as exc:
                self.logger.warning("Reconnection attempt %s failed: %s", self.attempts, exc)
                continue
            self.logger.info("Reconnected after %s attempt(s)", self.attempts)
            self.reset()
            return True

        self.logger.error("Giving up after %s reconnection attempts", self.attempts)
        return False
