"""Process detection for agent CLI sessions.

This module provides:
- ProcessMatcher, the name/path heuristics identifying agent processes
- ProcessCensus, one scan of the process table
- ProcessMonitor, the last census result shared with readers
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..config import AGENT_NAME_SUBSTRINGS, AGENT_PATH_PATTERNS, AGENT_PROCESS_NAMES
from ..logging_config import get_logger
from ..models import AgentProcess, ProcessStats
from ..utils import is_within, normalize_path
from .introspection import IntrospectionError, ProcessIntrospection, PsutilIntrospection
from .sampler import ResourceSampler

logger = get_logger(__name__, 'census')


@dataclass(frozen=True)
class ProcessMatcher:
    """Match patterns identifying agent processes.

    A process is an agent process if its name is one of ``names``, or
    contains one of ``name_substrings``; failing that, if its executable
    path contains one of ``path_patterns``.
    """
    names: tuple[str, ...] = AGENT_PROCESS_NAMES
    name_substrings: tuple[str, ...] = AGENT_NAME_SUBSTRINGS
    path_patterns: tuple[str, ...] = AGENT_PATH_PATTERNS

    def matches_name(self, name: str) -> bool:
        return name in self.names or any(s in name for s in self.name_substrings)

    def matches_path(self, path: str) -> bool:
        return any(p in path for p in self.path_patterns)


@dataclass(frozen=True)
class _Candidate:
    pid: int
    name: str
    parent_pid: int | None
    start_time: datetime | None


class ProcessCensus:
    """Finds running agent processes and classifies main vs. helper."""

    def __init__(
        self,
        introspection: ProcessIntrospection | None = None,
        sampler: ResourceSampler | None = None,
        matcher: ProcessMatcher | None = None,
    ):
        self.introspection = introspection if introspection is not None else PsutilIntrospection()
        self.sampler = sampler if sampler is not None else ResourceSampler(self.introspection)
        self.matcher = matcher if matcher is not None else ProcessMatcher()

    def is_agent_process(self, pid: int, name: str) -> bool:
        if self.matcher.matches_name(name):
            return True
        # Native installs run a versioned binary whose name is the version
        try:
            path = self.introspection.executable_path(pid)
        except IntrospectionError:
            return False
        return self.matcher.matches_path(path)

    def _candidate(self, pid: int, name: str) -> _Candidate:
        try:
            parent_pid = self.introspection.parent_pid(pid)
        except IntrospectionError:
            parent_pid = None
        try:
            start_time = self.introspection.start_time(pid)
        except IntrospectionError:
            start_time = None
        return _Candidate(pid=pid, name=name, parent_pid=parent_pid, start_time=start_time)

    def _scan(self) -> list[_Candidate]:
        candidates = []
        failures = 0

        for pid in self.introspection.list_pids():
            try:
                name = self.introspection.name(pid)
            except IntrospectionError:
                # Denied, or exited mid-scan
                failures += 1
                continue
            if self.is_agent_process(pid, name):
                candidates.append(self._candidate(pid, name))

        logger.debug("Census found %d candidates, %d unreadable PIDs", len(candidates), failures)
        return candidates

    def _working_directory(self, pid: int) -> str | None:
        try:
            return self.introspection.working_directory(pid)
        except IntrospectionError as exc:
            logger.debug("No working directory: %s", exc)
            return None

    def find(self, include_helpers: bool = False) -> list[AgentProcess]:
        """Find running agent processes.

        A helper is an agent process whose parent is also an agent
        process; helpers are only returned when ``include_helpers`` is set.
        Working directories are resolved for main processes only.
        """
        candidates = self._scan()
        candidate_pids = {c.pid for c in candidates}

        processes = []
        for candidate in candidates:
            is_helper = candidate.parent_pid is not None and candidate.parent_pid in candidate_pids
            if is_helper and not include_helpers:
                continue
            processes.append(AgentProcess(
                pid=candidate.pid,
                name=candidate.name,
                working_directory=None if is_helper else self._working_directory(candidate.pid),
                parent_pid=candidate.parent_pid,
                start_time=candidate.start_time,
                is_helper=is_helper,
            ))

        metrics = self.sampler.collect(p.pid for p in processes)
        self.sampler.cleanup(candidate_pids)

        return [
            p.with_metrics(metrics[p.pid].cpu_percent, metrics[p.pid].memory_mb)
            if p.pid in metrics else p
            for p in processes
        ]

    def is_running(self, pid: int) -> bool:
        try:
            self.introspection.name(pid)
        except IntrospectionError:
            return False
        return True

    def get_process(self, pid: int) -> AgentProcess | None:
        """Describe a single agent process.

        Returns None when the PID cannot be read or is not an agent process.
        """
        try:
            name = self.introspection.name(pid)
        except IntrospectionError:
            return None
        if not self.is_agent_process(pid, name):
            return None

        candidate = self._candidate(pid, name)
        process = AgentProcess(
            pid=pid,
            name=name,
            working_directory=self._working_directory(pid),
            parent_pid=candidate.parent_pid,
            start_time=candidate.start_time,
        )
        try:
            sample = self.sampler.sample(pid)
        except IntrospectionError:
            return process
        return process.with_metrics(sample.cpu_percent, sample.memory_mb)


class ProcessMonitor:
    """Holds the most recent census for readers.

    ``refresh`` always takes a census including helpers and swaps the stored
    list in one assignment, so readers see a complete result from one pass.
    Helpers are filtered out on read unless the caller asks for them.
    """

    def __init__(
        self,
        census: ProcessCensus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.census = census if census is not None else ProcessCensus()
        self.clock = clock
        self._processes: list[AgentProcess] = []
        self._last_update: float | None = None
        self._refresh_lock = threading.Lock()

    def refresh(self) -> list[AgentProcess]:
        with self._refresh_lock:
            processes = self.census.find(include_helpers=True)
            self._processes = processes
            self._last_update = self.clock()
        logger.debug("Process census: %d processes", len(processes))
        return processes

    def get_processes(self, include_helpers: bool = False) -> list[AgentProcess]:
        processes = self._processes
        if include_helpers:
            return list(processes)
        return [p for p in processes if not p.is_helper]

    def get_process(self, pid: int, include_helpers: bool = False) -> AgentProcess | None:
        return next((p for p in self.get_processes(include_helpers) if p.pid == pid), None)

    def get_processes_for_workdir(self, workdir: str) -> list[AgentProcess]:
        """Main processes running in ``workdir`` or one of its subdirectories."""
        root = normalize_path(workdir)
        return [
            p for p in self.get_processes()
            if p.working_directory and is_within(normalize_path(p.working_directory), root)
        ]

    def time_since_last_update(self) -> float | None:
        if self._last_update is None:
            return None
        return self.clock() - self._last_update

    def needs_refresh(self, interval: float) -> bool:
        elapsed = self.time_since_last_update()
        return elapsed is None or elapsed >= interval

    def get_stats(self, include_helpers: bool = False) -> ProcessStats:
        return ProcessStats.from_processes(self.get_processes(include_helpers))


# Global instance
_process_monitor: ProcessMonitor | None = None


def get_process_monitor() -> ProcessMonitor:
    """Get the global ProcessMonitor instance."""
    global _process_monitor
    if _process_monitor is None:
        _process_monitor = ProcessMonitor()
    return _process_monitor
