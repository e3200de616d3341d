"""Database health checks carried out through broker request/reply."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import DatabaseCheckSettings
from ..messaging.errors import BrokerRequestTimeout, BrokerTransportError
from ..messaging.gateway import MessagingGateway
from ..messaging.publishers import request_database_health

logger = logging.getLogger(__name__)

UNHEALTHY_REPLY_STATUSES = frozenset({"error", "unhealthy", "failed"})


@dataclass
class DatabaseCheckResult:
    query_id: str
    status: str
    observed_at: float
    response_time_ms: float
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "query_id": self.query_id,
            "status": self.status,
            "observed_at": self.observed_at,
            "response_time_ms": self.response_time_ms,
        }
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


def classify_reply(reply: Dict[str, Any]) -> str:
    """A reply without a failure status counts as healthy."""
    status = str(reply.get("status", "")).lower()
    return "unhealthy" if status in UNHEALTHY_REPLY_STATUSES else "healthy"


class DatabaseHealthChecker:
    """Runs every configured query against the database service, one request each."""

    def __init__(
        self,
        gateway: MessagingGateway,
        settings: DatabaseCheckSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway
        self.settings = settings
        self._clock = clock
        self.last_results: List[DatabaseCheckResult] = []

    async def check_query(self, query_id: str, query: str) -> DatabaseCheckResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            reply = await request_database_health(
                self.gateway,
                query_id,
                query,
                timeout_ms=self.settings.timeout_ms,
                exchange=self.settings.exchange,
                routing_key=self.settings.routing_key,
            )
        except BrokerRequestTimeout as exc:
            return self._failure(query_id, f"Timed out: {exc}", started)
        except BrokerTransportError as exc:
            return self._failure(query_id, f"Transport failure: {exc}", started)

        status = classify_reply(reply)
        data = reply.get("data")
        error = reply.get("error")
        if status == "unhealthy" and error is None:
            error = f"Database reported status {reply.get('status')!r}"
        return DatabaseCheckResult(
            query_id=query_id,
            status=status,
            observed_at=self._clock(),
            response_time_ms=(loop.time() - started) * 1000.0,
            data=data if isinstance(data, dict) else None,
            error=str(error) if error is not None else None,
        )

    def _failure(self, query_id: str, error: str, started: float) -> DatabaseCheckResult:
        logger.warning("Database health query %s failed: %s", query_id, error)
        return DatabaseCheckResult(
            query_id=query_id,
            status="unhealthy",
            observed_at=self._clock(),
            response_time_ms=(asyncio.get_running_loop().time() - started) * 1000.0,
            error=error,
        )

    async def run(self) -> List[DatabaseCheckResult]:
        results = await asyncio.gather(
            *(self.check_query(query_id, query) for query_id, query in self.settings.queries.items())
        )
        self.last_results = list(results)
        return self.last_results

    def clear(self) -> None:
        self.last_results = []
