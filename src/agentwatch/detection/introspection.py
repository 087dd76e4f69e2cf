"""Per-process introspection.

ProcessIntrospection is the platform surface the census and the sampler
are written against. PsutilIntrospection implements it with psutil and
falls back to lsof for working directories psutil is not allowed to read
(other users' processes on macOS).

Every lookup either returns a value or raises IntrospectionError; callers
decide whether a failure is fatal.
"""

import subprocess
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

import psutil

from ..config import LSOF_TIMEOUT
from ..logging_config import get_logger

logger = get_logger(__name__, 'census')


class IntrospectionError(Exception):
    """A process could not be inspected (gone, denied, or unreadable)."""

    def __init__(self, pid: int, reason: str):
        super().__init__(f"PID {pid}: {reason}")
        self.pid = pid
        self.reason = reason


class ProcessIntrospection(ABC):
    """Platform surface for reading process state."""

    @abstractmethod
    def list_pids(self) -> list[int]:
        """All live PIDs on the host."""

    @abstractmethod
    def name(self, pid: int) -> str:
        """Short process name."""

    @abstractmethod
    def executable_path(self, pid: int) -> str:
        """Absolute path of the process executable."""

    @abstractmethod
    def working_directory(self, pid: int) -> str:
        """Current working directory of the process."""

    @abstractmethod
    def cpu_time(self, pid: int) -> float:
        """Cumulative user+system CPU seconds since the process started."""

    @abstractmethod
    def resident_memory(self, pid: int) -> int:
        """Resident set size in bytes."""

    @abstractmethod
    def start_time(self, pid: int) -> datetime:
        """Process start time (aware, UTC)."""

    @abstractmethod
    def parent_pid(self, pid: int) -> int | None:
        """Parent PID, or None when the process has no parent."""

    def cpu_count(self) -> int:
        """Number of logical cores, used to bound CPU percentages."""
        return psutil.cpu_count() or 1


def get_process_cwd(pid: int) -> str | None:
    """Get the current working directory of a process using lsof."""
    try:
        result = subprocess.run(
            ['lsof', '-a', '-d', 'cwd', '-p', str(pid), '-Fn'],
            capture_output=True, text=True, timeout=LSOF_TIMEOUT
        )
    except (OSError, subprocess.SubprocessError):
        return None

    # -Fn prints one field per line; the path is on the line starting with 'n'
    for line in result.stdout.split('\n'):
        if line.startswith('n/'):
            return line[1:]
    return None


@contextmanager
def _translate_errors(pid: int) -> Iterator[None]:
    try:
        yield
    except psutil.ZombieProcess as exc:
        raise IntrospectionError(pid, 'zombie process') from exc
    except psutil.NoSuchProcess as exc:
        raise IntrospectionError(pid, 'no such process') from exc
    except psutil.AccessDenied as exc:
        raise IntrospectionError(pid, 'access denied') from exc
    except OSError as exc:
        raise IntrospectionError(pid, str(exc)) from exc


class PsutilIntrospection(ProcessIntrospection):
    """ProcessIntrospection backed by psutil."""

    def list_pids(self) -> list[int]:
        return psutil.pids()

    def name(self, pid: int) -> str:
        with _translate_errors(pid):
            return psutil.Process(pid).name()

    def executable_path(self, pid: int) -> str:
        with _translate_errors(pid):
            path = psutil.Process(pid).exe()
        if not path:
            raise IntrospectionError(pid, 'no executable path')
        return path

    def working_directory(self, pid: int) -> str:
        try:
            with _translate_errors(pid):
                return psutil.Process(pid).cwd()
        except IntrospectionError as exc:
            if exc.reason != 'access denied':
                raise
            cwd = get_process_cwd(pid)
            if cwd is None:
                raise
            logger.debug("Resolved cwd of PID %d via lsof", pid)
            return cwd

    def cpu_time(self, pid: int) -> float:
        with _translate_errors(pid):
            times = psutil.Process(pid).cpu_times()
        return times.user + times.system

    def resident_memory(self, pid: int) -> int:
        with _translate_errors(pid):
            return psutil.Process(pid).memory_info().rss

    def start_time(self, pid: int) -> datetime:
        with _translate_errors(pid):
            created = psutil.Process(pid).create_time()
        return datetime.fromtimestamp(created, tz=timezone.utc)

    def parent_pid(self, pid: int) -> int | None:
        with _translate_errors(pid):
            ppid = psutil.Process(pid).ppid()
        return ppid if ppid > 0 else None
