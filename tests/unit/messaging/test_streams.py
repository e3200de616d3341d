"""Tests for the Redis stream primitives."""

import pytest
from redis.exceptions import ResponseError

from health_agent.messaging.gateway_helpers.streams import (
    decode_stream_response,
    ensure_consumer_group,
    stream_publish,
    trim_expired,
)


class TestStreamPublish:
    @pytest.mark.asyncio
    async def test_coerces_fields_and_drops_none(self, fake_redis):
        entry_id = await stream_publish(fake_redis, "s", {"a": 1, "b": None, "c": "x"}, maxlen=10)

        assert isinstance(entry_id, str)
        assert fake_redis.entries("s") == [{"a": "1", "c": "x"}]

    @pytest.mark.asyncio
    async def test_caps_length(self, fake_redis):
        for n in range(5):
            await stream_publish(fake_redis, "s", {"n": n}, maxlen=3)

        assert [entry["n"] for entry in fake_redis.entries("s")] == ["2", "3", "4"]


class TestTrimExpired:
    @pytest.mark.asyncio
    async def test_removes_entries_older_than_ttl(self, fake_redis):
        await fake_redis.xadd("s", {"n": "old"}, id="1000-0")
        await fake_redis.xadd("s", {"n": "new"}, id="5000-0")

        removed = await trim_expired(fake_redis, "s", ttl_ms=2000, now_ms=6000)

        assert removed == 1
        assert fake_redis.entries("s") == [{"n": "new"}]


class TestEnsureConsumerGroup:
    @pytest.mark.asyncio
    async def test_is_idempotent(self, fake_redis):
        assert await ensure_consumer_group(fake_redis, "s", "g") is True
        assert await ensure_consumer_group(fake_redis, "s", "g") is False
        assert fake_redis.has_group("s", "g")

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, fake_redis, monkeypatch):
        async def broken(*_args, **_kwargs):
            raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

        monkeypatch.setattr(fake_redis, "xgroup_create", broken)

        with pytest.raises(ResponseError):
            await ensure_consumer_group(fake_redis, "s", "g")


def test_decode_stream_response_handles_bytes_and_empty():
    raw = [[b"s", [(b"1-0", {b"k": b"v"}), (b"2-0", None)]]]

    assert decode_stream_response(raw) == [("1-0", {"k": "v"})]
    assert decode_stream_response([]) == []
    assert decode_stream_response(None) == []
