"""Table of in-flight requests waiting for a correlated reply."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PendingReply:
    """Handle for one outstanding request."""

    correlation_id: str
    reply_to: str
    future: "asyncio.Future[Dict[str, Any]]"
    slot: int
    created_at: float = field(default_factory=time.monotonic)


class PendingReplyTable:
    """
    Correlation id -> pending reply handle.

    Handles live in a slot list; the index maps a correlation id to its slot
    and freed slots are reused. A handle resolves at most once, and a
    correlation id can only be registered again after it has been discarded.
    """

    def __init__(self) -> None:
        self._slots: List[Optional[PendingReply]] = []
        self._free: List[int] = []
        self._index: Dict[str, int] = {}

    def register(self, correlation_id: str, reply_to: str) -> PendingReply:
        if correlation_id in self._index:
            raise ValueError(f"Correlation id {correlation_id} is already pending")
        slot = self._free.pop() if self._free else len(self._slots)
        future: "asyncio.Future[Dict[str, Any]]" = asyncio.get_running_loop().create_future()
        handle = PendingReply(correlation_id=correlation_id, reply_to=reply_to, future=future, slot=slot)
        if slot == len(self._slots):
            self._slots.append(handle)
        else:
            self._slots[slot] = handle
        self._index[correlation_id] = slot
        return handle

    def get(self, correlation_id: str) -> Optional[PendingReply]:
        slot = self._index.get(correlation_id)
        if slot is None:
            return None
        return self._slots[slot]

    def resolve(self, correlation_id: str, body: Dict[str, Any]) -> bool:
        """Complete the waiter for *correlation_id*. Returns False when nothing was waiting."""
        handle = self.get(correlation_id)
        if handle is None or handle.future.done():
            return False
        handle.future.set_result(body)
        return True

    def fail(self, correlation_id: str, exc: BaseException) -> bool:
        handle = self.get(correlation_id)
        if handle is None or handle.future.done():
            return False
        handle.future.set_exception(exc)
        return True

    def fail_all(self, exc: BaseException) -> int:
        failed = 0
        for correlation_id in list(self._index):
            if self.fail(correlation_id, exc):
                failed += 1
        return failed

    def discard(self, correlation_id: str) -> Optional[PendingReply]:
        slot = self._index.pop(correlation_id, None)
        if slot is None:
            return None
        handle = self._slots[slot]
        self._slots[slot] = None
        self._free.append(slot)
        if handle is not None and not handle.future.done():
            handle.future.cancel()
        return handle

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._index

    def __len__(self) -> int:
        return len(self._index)
