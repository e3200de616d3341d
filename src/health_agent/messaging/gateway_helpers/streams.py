"""Redis stream primitives: publish with trimming, consumer groups, response decoding."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Optional, Tuple, TypeVar, cast

from redis.exceptions import ResponseError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure_awaitable(result: "Awaitable[T] | T") -> Awaitable[T]:
    """Narrow redis-py's sync/async command union to the awaitable we get at runtime."""
    return cast(Awaitable[T], result)


async def stream_publish(
    redis_client: "Redis",
    stream_name: str,
    fields: Dict[str, Any],
    *,
    maxlen: int,
) -> str:
    """Append one entry to a stream, approximately capped at *maxlen* entries.

    Field values are str-coerced; ``None`` values are dropped.
    """
    str_fields = {key: str(value) for key, value in fields.items() if value is not None}
    entry_id: Any = await ensure_awaitable(redis_client.xadd(stream_name, str_fields, maxlen=maxlen, approximate=True))
    if isinstance(entry_id, bytes):
        entry_id = entry_id.decode("utf-8")
    logger.debug("Published to %s: %s", stream_name, entry_id)
    return entry_id


async def trim_expired(
    redis_client: "Redis",
    stream_name: str,
    ttl_ms: int,
    *,
    now_ms: Optional[int] = None,
) -> int:
    """Drop entries older than *ttl_ms*. Stream ids start with their creation time in ms."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    min_id = max(0, now_ms - ttl_ms)
    removed: Any = await ensure_awaitable(redis_client.xtrim(stream_name, minid=str(min_id), approximate=False))
    return int(removed or 0)


async def ensure_consumer_group(
    redis_client: "Redis",
    stream: str,
    group: str,
    start_id: str = "0",
) -> bool:
    """Create a consumer group idempotently, creating the stream if needed.

    Returns True when the group was created, False when it already existed.
    """
    try:
        await ensure_awaitable(redis_client.xgroup_create(stream, group, id=start_id, mkstream=True))
    except ResponseError as exc:
        if "BUSYGROUP" in str(exc):
            logger.debug("Consumer group %s already exists on %s", group, stream)
            return False
        raise
    logger.debug("Created consumer group %s on stream %s", group, stream)
    return True


def decode_stream_response(result: Any) -> List[Tuple[str, Dict[str, str]]]:
    """Convert an XREADGROUP response to ``(entry_id, fields)`` tuples.

    XREADGROUP returns ``[[stream_name, [(entry_id, {field: value}), ...]], ...]``
    with bytes or str values depending on ``decode_responses``. Entries whose
    fields are ``None`` were deleted while pending and are skipped.
    """
    if not result:
        return []

    decoded: List[Tuple[str, Dict[str, str]]] = []
    for _stream_name, stream_entries in result:
        for entry_id, fields in stream_entries:
            if fields is None:
                continue
            decoded.append((_to_str(entry_id), {_to_str(k): _to_str(v) for k, v in fields.items()}))
    return decoded


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
