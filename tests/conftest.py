"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from health_agent.config import runtime


def _parse_id(entry_id: str) -> tuple[int, int]:
    ms, _, seq = entry_id.partition("-")
    return int(ms), int(seq or 0)


def _to_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class FakeRedis:
    """In-memory Redis mock covering the commands the messaging gateway uses.

    Stream replies mimic ``decode_responses=False``: names, ids and fields come
    back as bytes.
    """

    def __init__(self):
        self._hashes: dict[str, dict[str, str]] = {}
        self._sets: dict[str, set[str]] = {}
        self._streams: dict[str, list[tuple[str, dict[str, str]]]] = {}
        self._groups: dict[tuple[str, str], dict[str, Any]] = {}
        self._last_id: tuple[int, int] = (0, 0)
        self.expirations: dict[str, int] = {}
        self.acked: list[tuple[str, str]] = []
        self.closed = False
        self.fail_ping = False
        self.failing_commands: set[str] = set()

    def _check(self, command: str) -> None:
        if command in self.failing_commands:
            raise RedisConnectionError(f"{command} failed: connection reset")

    async def ping(self) -> bool:
        if self.fail_ping:
            raise RedisConnectionError("Connection refused")
        return True

    async def aclose(self) -> None:
        self.closed = True

    # Hashes and sets

    async def hset(self, key: str, mapping: dict[str, Any] | None = None, **kwargs: Any) -> int:
        self._check("hset")
        update_map = {str(k): _to_text(v) for k, v in (mapping or kwargs).items()}
        current = self._hashes.setdefault(key, {})
        added = sum(1 for k in update_map if k not in current)
        current.update(update_map)
        return added

    async def hgetall(self, key: str) -> dict[str, str]:
        return self._hashes.get(key, {}).copy()

    async def sadd(self, key: str, *members: str) -> int:
        self._check("sadd")
        current = self._sets.setdefault(key, set())
        added = len(set(members) - current)
        current.update(members)
        return added

    async def smembers(self, key: str) -> set[str]:
        return self._sets.get(key, set()).copy()

    async def expire(self, key: str, seconds: int) -> bool:
        self._check("expire")
        self.expirations[key] = seconds
        return key in self._streams or key in self._hashes or key in self._sets

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        deleted = 0
        for key in keys:
            found = False
            for store in (self._hashes, self._sets, self._streams):
                if key in store:
                    del store[key]
                    found = True
            for group_key in [group_key for group_key in self._groups if group_key[0] == key]:
                del self._groups[group_key]
            self.expirations.pop(key, None)
            deleted += int(found)
        return deleted

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self._streams or key in self._hashes or key in self._sets)

    # Streams

    def _next_id(self) -> str:
        now_ms = int(time.time() * 1000)
        last_ms, last_seq = self._last_id
        self._last_id = (now_ms, 0) if now_ms > last_ms else (last_ms, last_seq + 1)
        return f"{self._last_id[0]}-{self._last_id[1]}"

    async def xadd(
        self,
        name: str,
        fields: dict[str, Any],
        id: str = "*",
        maxlen: int | None = None,
        approximate: bool = True,
        nomkstream: bool = False,
        minid: str | None = None,
        limit: int | None = None,
    ) -> bytes | None:
        self._check("xadd")
        if maxlen is not None and minid is not None:
            raise ValueError("Only one of ``maxlen`` or ``minid`` may be specified")
        if nomkstream and name not in self._streams:
            return None
        entry_id = self._next_id() if id == "*" else id
        stream = self._streams.setdefault(name, [])
        stream.append((entry_id, {_to_text(k): _to_text(v) for k, v in fields.items()}))
        if maxlen is not None and len(stream) > maxlen:
            del stream[: len(stream) - maxlen]
        return entry_id.encode()

    async def xtrim(
        self,
        name: str,
        maxlen: int | None = None,
        approximate: bool = True,
        minid: str | None = None,
        limit: int | None = None,
    ) -> int:
        self._check("xtrim")
        stream = self._streams.get(name, [])
        before = len(stream)
        if minid is not None:
            floor = _parse_id(minid)
            stream[:] = [entry for entry in stream if _parse_id(entry[0]) >= floor]
        if maxlen is not None and len(stream) > maxlen:
            del stream[: len(stream) - maxlen]
        return before - len(stream)

    async def xlen(self, name: str) -> int:
        return len(self._streams.get(name, []))

    async def xgroup_create(self, name: str, groupname: str, id: str = "$", mkstream: bool = False, entries_read=None) -> bool:
        self._check("xgroup_create")
        if name not in self._streams:
            if not mkstream:
                raise ResponseError("The XGROUP subcommand requires the key to exist")
            self._streams[name] = []
        if (name, groupname) in self._groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        if id == "$":
            stream = self._streams[name]
            start = stream[-1][0] if stream else "0-0"
        else:
            start = id
        self._groups[(name, groupname)] = {"last": _parse_id(start), "pending": set()}
        return True

    def _deliver(self, groupname: str, streams: dict[str, str], count: int | None) -> list:
        response = []
        for name in streams:
            group = self._groups.get((name, groupname))
            if group is None:
                raise ResponseError(f"NOGROUP No such key '{name}' or consumer group '{groupname}'")
            fresh = [entry for entry in self._streams.get(name, []) if _parse_id(entry[0]) > group["last"]]
            if count is not None:
                fresh = fresh[:count]
            if not fresh:
                continue
            group["last"] = _parse_id(fresh[-1][0])
            group["pending"].update(entry_id for entry_id, _fields in fresh)
            response.append(
                [
                    name.encode(),
                    [(entry_id.encode(), {k.encode(): v.encode() for k, v in fields.items()}) for entry_id, fields in fresh],
                ]
            )
        return response

    async def xreadgroup(
        self,
        groupname: str,
        consumername: str,
        streams: dict[str, str],
        count: int | None = None,
        block: int | None = None,
        noack: bool = False,
    ) -> list:
        self._check("xreadgroup")
        deadline = None if block is None else asyncio.get_running_loop().time() + block / 1000.0
        while True:
            response = self._deliver(groupname, streams, count)
            if response or deadline is None or asyncio.get_running_loop().time() >= deadline:
                return response
            await asyncio.sleep(0.005)

    async def xack(self, name: str, groupname: str, *ids: Any) -> int:
        self._check("xack")
        group = self._groups.get((name, groupname))
        acked = 0
        for entry_id in ids:
            text = _to_text(entry_id)
            self.acked.append((name, text))
            if group is not None and text in group["pending"]:
                group["pending"].discard(text)
                acked += 1
        return acked

    # Test helpers

    def entries(self, stream: str) -> list[dict[str, str]]:
        return [fields for _entry_id, fields in self._streams.get(stream, [])]

    def stream_names(self) -> Iterable[str]:
        return list(self._streams)

    def has_group(self, stream: str, group: str) -> bool:
        return (stream, group) in self._groups

    def dump_hash(self, key: str) -> dict[str, str]:
        return self._hashes.get(key, {}).copy()

    def dump_set(self, key: str) -> set[str]:
        return self._sets.get(key, set()).copy()


@pytest.fixture(autouse=True)
def isolate_runtime_defaults(monkeypatch):
    """Keep developer .env files out of every test."""
    monkeypatch.setattr(runtime, "_DOTENV_CANDIDATES", ())
    runtime.reset_default_values()
    for name in (
        "BROKER_HOST",
        "BROKER_PORT",
        "BROKER_DB",
        "BROKER_PASSWORD",
        "BROKER_SSL",
        "CORE_API_URL",
        "CORE_API_KEY",
        "CORE_TIMEOUT_MS",
        "HEALTH_AGENT_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    runtime.reset_default_values()


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide a fresh FakeRedis instance for each test."""
    return FakeRedis()


@pytest.fixture
def fake_redis_factory():
    """Client factory handing out FakeRedis instances and remembering them."""

    class _Factory:
        def __init__(self) -> None:
            self.clients: list[FakeRedis] = []
            self.fail_connect = False
            self.shared: FakeRedis | None = None

        def __call__(self, _settings) -> FakeRedis:
            client = self.shared if self.shared is not None else FakeRedis()
            client.closed = False
            client.fail_ping = self.fail_connect
            self.clients.append(client)
            return client

    return _Factory()
