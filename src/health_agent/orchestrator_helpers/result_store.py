"""Latest check result per target."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..probes.models import CheckResult


class ResultStore:
    """One result per target name; a new result replaces the old one."""

    def __init__(self) -> None:
        self._results: Dict[str, CheckResult] = {}

    def put(self, result: CheckResult) -> None:
        self._results[result.target_name] = result

    def get(self, target_name: str) -> Optional[CheckResult]:
        return self._results.get(target_name)

    def all(self) -> List[CheckResult]:
        return list(self._results.values())

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, target_name: object) -> bool:
        return target_name in self._results
