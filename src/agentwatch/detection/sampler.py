"""Instantaneous CPU and memory sampling for processes.

The kernel only exposes cumulative CPU time per process, so a CPU
percentage needs two observations: the sampler remembers the previous
(timestamp, cumulative seconds) reading for every PID and reports the
rate between that reading and the current one.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from ..logging_config import get_logger
from .introspection import IntrospectionError, ProcessIntrospection, PsutilIntrospection

logger = get_logger(__name__, 'sampler')

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class ResourceSample:
    """CPU and memory usage of one process at one point in time."""
    cpu_percent: float
    memory_mb: float
    timestamp: float


@dataclass(frozen=True)
class _Reading:
    timestamp: float
    cpu_seconds: float


class ResourceSampler:
    """Derives CPU percentages from successive cumulative CPU readings.

    The reading table is shared by every caller and guarded by a lock;
    the introspection syscalls happen outside of it.
    """

    def __init__(
        self,
        introspection: ProcessIntrospection | None = None,
        clock: Callable[[], float] = time.monotonic,
        core_count: int | None = None,
    ):
        self.introspection = introspection if introspection is not None else PsutilIntrospection()
        self.clock = clock
        self.core_count = core_count or self.introspection.cpu_count()
        self._readings: dict[int, _Reading] = {}
        self._lock = threading.Lock()

    @property
    def max_percent(self) -> float:
        return 100.0 * self.core_count

    def record(
        self,
        pid: int,
        cpu_seconds: float,
        rss_bytes: int,
        timestamp: float | None = None,
    ) -> ResourceSample:
        """Turn one cumulative reading into a sample and remember it."""
        now = self.clock() if timestamp is None else timestamp

        with self._lock:
            previous = self._readings.get(pid)
            self._readings[pid] = _Reading(timestamp=now, cpu_seconds=cpu_seconds)

        cpu_percent = 0.0
        if previous is not None:
            elapsed = now - previous.timestamp
            if elapsed > 0:
                cpu_percent = (cpu_seconds - previous.cpu_seconds) / elapsed * 100.0
            # Regressed clocks or counters clamp to zero
            cpu_percent = max(0.0, min(cpu_percent, self.max_percent))

        return ResourceSample(
            cpu_percent=cpu_percent,
            memory_mb=rss_bytes / BYTES_PER_MB,
            timestamp=now,
        )

    def sample(self, pid: int) -> ResourceSample:
        """Sample one process.

        The first sample of a PID reports 0% CPU.

        Raises:
            IntrospectionError: the process cannot be read
        """
        cpu_seconds = self.introspection.cpu_time(pid)
        rss_bytes = self.introspection.resident_memory(pid)
        return self.record(pid, cpu_seconds, rss_bytes)

    def collect(self, pids: Iterable[int]) -> dict[int, ResourceSample]:
        """Sample several processes, skipping those that cannot be read."""
        results: dict[int, ResourceSample] = {}
        for pid in pids:
            try:
                results[pid] = self.sample(pid)
            except IntrospectionError as exc:
                logger.debug("Skipping sample: %s", exc)
        return results

    def cleanup(self, valid_pids: Iterable[int]) -> None:
        """Drop stored readings for PIDs that are no longer present."""
        valid = set(valid_pids)
        with self._lock:
            self._readings = {pid: r for pid, r in self._readings.items() if pid in valid}

    def has_reading(self, pid: int) -> bool:
        with self._lock:
            return pid in self._readings

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)
