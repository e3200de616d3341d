"""Stateless target probes."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict

from .http_probe import probe_http
from .models import BasicAuthCredentials, CheckResult, CheckStatus, ProbeOutcome, Target, TargetKind
from .session import ProbeSessionManager
from .tcp_probe import probe_tcp


class ProbeRegistry:
    """Maps a target kind to the probe that checks it."""

    def __init__(self, sessions: ProbeSessionManager):
        self.sessions = sessions
        self._probes: Dict[TargetKind, Callable[[Target], Awaitable[ProbeOutcome]]] = {
            TargetKind.HTTP: self._http,
            TargetKind.TCP: probe_tcp,
        }

    async def _http(self, target: Target) -> ProbeOutcome:
        return await probe_http(target, self.sessions.get_session())

    def register(self, kind: TargetKind, probe: Callable[[Target], Awaitable[ProbeOutcome]]) -> None:
        self._probes[kind] = probe

    async def run(self, target: Target) -> ProbeOutcome:
        try:
            probe = self._probes[target.kind]
        except KeyError:
            raise ValueError(f"No probe registered for target kind {target.kind!r}") from None
        return await probe(target)


__all__ = [
    "BasicAuthCredentials",
    "CheckResult",
    "CheckStatus",
    "ProbeOutcome",
    "ProbeRegistry",
    "ProbeSessionManager",
    "Target",
    "TargetKind",
    "probe_http",
    "probe_tcp",
]
