"""psutil-backed readers for process and host metrics."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable, Optional, Tuple

import psutil

from .models import ProcessCpu, ProcessMemory, SystemLoad

logger = logging.getLogger(__name__)

PSUTIL_ERRORS = (psutil.Error, OSError)
_BYTES_PER_MB = 1024 * 1024


class MetricsReader:
    """Reads memory, CPU and host load for one process."""

    def __init__(self, process: Optional[psutil.Process] = None, clock: Callable[[], float] = time.monotonic):
        self.process = process if process is not None else psutil.Process(os.getpid())
        self._clock = clock
        self._cpu_baseline: Tuple[float, float] = self._cpu_total(), self._clock()

    def _cpu_times(self) -> Tuple[float, float]:
        try:
            times = self.process.cpu_times()
        except PSUTIL_ERRORS:  # policy_guard: allow-silent-handler
            logger.warning("Failed to read process CPU times")
            return 0.0, 0.0
        return float(times.user), float(times.system)

    def _cpu_total(self) -> float:
        return sum(self._cpu_times())

    def read_memory(self) -> ProcessMemory:
        """Resident and virtual size in MB."""
        try:
            info = self.process.memory_info()
        except PSUTIL_ERRORS:  # policy_guard: allow-silent-handler
            logger.warning("Failed to read process memory")
            return ProcessMemory(rss_mb=0.0, vms_mb=0.0)
        return ProcessMemory(rss_mb=info.rss / _BYTES_PER_MB, vms_mb=info.vms / _BYTES_PER_MB)

    def read_cpu(self) -> ProcessCpu:
        """CPU percent since the previous call (or construction), over wall-clock time."""
        user, system = self._cpu_times()
        now = self._clock()
        previous_total, previous_at = self._cpu_baseline
        self._cpu_baseline = (user + system, now)

        elapsed = now - previous_at
        if elapsed <= 0:
            percent = 0.0
        else:
            percent = max(0.0, (user + system - previous_total) / elapsed * 100.0)
        return ProcessCpu(percent=percent, user_seconds=user, system_seconds=system)

    def read_system_load(self) -> SystemLoad:
        try:
            load = tuple(float(value) for value in psutil.getloadavg())
        except PSUTIL_ERRORS + (AttributeError,):  # policy_guard: allow-silent-handler
            load = (0.0, 0.0, 0.0)
        try:
            memory_percent = float(psutil.virtual_memory().percent)
        except PSUTIL_ERRORS:  # policy_guard: allow-silent-handler
            logger.warning("Failed to read system memory")
            memory_percent = 0.0
        return SystemLoad(load_average=(load[0], load[1], load[2]), memory_percent=memory_percent)
