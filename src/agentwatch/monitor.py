"""Background refresh of processes and projects.

Two independent timers keep the shared state warm: the process census
runs every few seconds, the project list refresh (and cache pruning)
less often. Each runs on its own daemon thread so a slow filesystem scan
never delays the census.
"""

import threading
from typing import Callable, Optional

from .config import PROCESS_REFRESH_INTERVAL, SESSION_REFRESH_INTERVAL
from .detection.processes import ProcessMonitor, get_process_monitor
from .logging_config import get_logger
from .repository import SessionRepository, get_session_repository

logger = get_logger(__name__, 'monitor')


class PeriodicTask:
    """Runs ``func`` every ``interval`` seconds on a daemon thread.

    An exception in one run is logged and the next run still happens.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        self.name = name
        self.interval = interval
        self.func = func
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> None:
        try:
            self.func()
        except Exception:
            logger.exception("%s refresh failed", self.name)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval)

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Started %s every %.1fs", self.name, self.interval)

    def stop(self, timeout: float = 5) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class Monitor:
    """Owns the census and project refresh timers."""

    def __init__(
        self,
        process_monitor: ProcessMonitor,
        repository: SessionRepository,
        process_interval: float = PROCESS_REFRESH_INTERVAL,
        session_interval: float = SESSION_REFRESH_INTERVAL,
    ):
        self.process_monitor = process_monitor
        self.repository = repository
        self.project_count = 0
        self.process_task = PeriodicTask('process-census', process_interval, self.process_monitor.refresh)
        self.session_task = PeriodicTask('project-refresh', session_interval, self.refresh_projects)

    def refresh_projects(self) -> None:
        projects = self.repository.get_projects()
        self.project_count = len(projects)
        pruned = self.repository.prune_cache()
        logger.debug("Refreshed %d projects, pruned %d cached sessions", len(projects), pruned)

    def start(self) -> None:
        self.process_task.start()
        self.session_task.start()
        logger.info("Monitor started")

    def stop(self) -> None:
        self.process_task.stop()
        self.session_task.stop()
        logger.info("Monitor stopped")

    def is_running(self) -> bool:
        return self.process_task.is_running() or self.session_task.is_running()


# Global instance
_monitor: Optional[Monitor] = None


def get_monitor() -> Monitor:
    """Get the global Monitor instance."""
    global _monitor
    if _monitor is None:
        _monitor = Monitor(get_process_monitor(), get_session_repository())
    return _monitor
