"""Session repository with an mtime-checked parse cache.

SessionCache maps a log file path to its parsed Session. An entry is
reused while it is younger than ``max_age`` and the file has not been
written since it was read; otherwise the file is parsed again and the
entry replaced.

SessionRepository layers the listing and lookup queries served by the
API on top of the cache and SessionDiscovery.
"""

import asyncio
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .config import PRELOAD_SESSION_LIMIT, SESSION_CACHE_MAX_AGE
from .cost import SessionStats
from .detection.discovery import SessionDiscovery
from .detection.jsonl_parser import parse_session
from .logging_config import get_logger
from .models import ProjectDirectory, Session, SessionSummary

logger = get_logger(__name__, 'cache')


@dataclass(frozen=True)
class CacheEntry:
    session: Session
    loaded_at: float
    file_mtime: float


class SessionCache:
    """Thread-safe cache of parsed sessions keyed by file path.

    The map is guarded by a lock; parsing happens outside of it so that
    different files can be parsed concurrently. Two threads missing on the
    same file may both parse it; the last one to finish wins.
    """

    def __init__(
        self,
        parser: Callable[..., Session] = parse_session,
        max_age: float = SESSION_CACHE_MAX_AGE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.parser = parser
        self.max_age = max_age
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._parse_count = 0

    @staticmethod
    def _key(file_path: Path | str) -> str:
        return os.path.normpath(str(file_path))

    def _is_fresh(self, entry: CacheEntry, key: str) -> bool:
        if self.clock() - entry.loaded_at >= self.max_age:
            return False
        try:
            current_mtime = os.stat(key).st_mtime
        except OSError:
            # Gone or unreadable; let the reparse report it
            return False
        return current_mtime <= entry.file_mtime

    def load(self, file_path: Path | str, project_path: str | None = None) -> Session:
        """Return the parsed session for ``file_path``, parsing if needed.

        Raises:
            OSError: the file cannot be read; the cache is left unchanged
        """
        key = self._key(file_path)

        with self._lock:
            entry = self._entries.get(key)

        if entry is not None and self._is_fresh(entry, key):
            session = entry.session
            if project_path is not None and session.project_path != project_path:
                session = session.with_project_path(project_path)
            return session

        # Recorded before reading so a write during the parse marks it stale
        file_mtime = os.stat(key).st_mtime
        session = self.parser(key, project_path)
        loaded_at = self.clock()

        with self._lock:
            self._entries[key] = CacheEntry(session=session, loaded_at=loaded_at, file_mtime=file_mtime)
            self._parse_count += 1

        logger.debug("Cached session %s (%d messages)", session.short_id, len(session.messages))
        return session

    def invalidate(self, file_path: Path | str) -> None:
        with self._lock:
            self._entries.pop(self._key(file_path), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """Drop entries older than ``max_age``. Returns how many were dropped."""
        now = self.clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if now - e.loaded_at >= self.max_age]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Pruned %d cached sessions", len(stale))
        return len(stale)

    @property
    def parse_count(self) -> int:
        return self._parse_count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, (str, Path)):
            return False
        with self._lock:
            return self._key(file_path) in self._entries


class SessionRepository:
    """Query surface over discovered projects and cached sessions."""

    def __init__(
        self,
        discovery: SessionDiscovery | None = None,
        cache: SessionCache | None = None,
    ):
        self.discovery = discovery if discovery is not None else SessionDiscovery()
        self.cache = cache if cache is not None else SessionCache()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_session(self, file_path: Path | str, project_path: str | None = None) -> Session:
        return self.cache.load(file_path, project_path)

    async def load_session_async(self, file_path: Path | str, project_path: str | None = None) -> Session:
        """Load a session on a worker thread."""
        return await asyncio.to_thread(self.cache.load, file_path, project_path)

    def load_session_by_id(self, session_id: str, project_path: str) -> Session | None:
        """Load a session of a project by its id; None when there is no such session."""
        summary = next(
            (s for s in self.discovery.find_sessions(project_path) if s.id == session_id),
            None,
        )
        if summary is None:
            return None
        return self.cache.load(summary.file_path, project_path)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def get_sessions(self, project_path: str) -> list[SessionSummary]:
        return self.discovery.find_sessions(project_path)

    def get_sessions_for_encoded_dir(self, encoded_name: str) -> list[SessionSummary]:
        return self.discovery.find_sessions_in_dir(encoded_name)

    def get_projects(self) -> list[ProjectDirectory]:
        return self.discovery.find_all_projects()

    def get_most_recent_session(self, project_path: str) -> Session | None:
        sessions = self.discovery.find_sessions(project_path)
        if not sessions:
            return None
        return self.cache.load(sessions[0].file_path, project_path)

    def search_sessions(self, project_path: str, query: str) -> list[tuple[SessionSummary, int]]:
        """Find sessions with messages containing ``query`` (case-insensitive).

        Returns:
            (summary, matching message count) pairs, most matches first.
            Sessions whose files cannot be read are skipped.
        """
        needle = query.lower()
        results = []

        for summary in self.discovery.find_sessions(project_path):
            try:
                session = self.cache.load(summary.file_path, project_path)
            except OSError as exc:
                logger.warning("Skipping unreadable session %s: %s", summary.file_path, exc)
                continue
            matches = sum(1 for m in session.messages if needle in m.text_content.lower())
            if matches:
                results.append((summary, matches))

        results.sort(key=lambda r: r[1], reverse=True)
        return results

    def preload_sessions(self, project_path: str, limit: int = PRELOAD_SESSION_LIMIT) -> int:
        """Parse the most recent sessions of a project ahead of time.

        Returns the number of sessions loaded.
        """
        loaded = 0
        for summary in self.discovery.find_sessions(project_path)[:limit]:
            try:
                self.cache.load(summary.file_path, project_path)
            except OSError as exc:
                logger.debug("Preload skipped %s: %s", summary.file_path, exc)
                continue
            loaded += 1
        return loaded

    def compute_stats(self, session: Session) -> SessionStats:
        return SessionStats.from_session(session)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def invalidate(self, file_path: Path | str) -> None:
        self.cache.invalidate(file_path)

    def clear_cache(self) -> None:
        self.cache.clear()

    def prune_cache(self) -> int:
        return self.cache.prune()


# Global instance
_session_repository: SessionRepository | None = None


def get_session_repository() -> SessionRepository:
    """Get the global SessionRepository instance."""
    global _session_repository
    if _session_repository is None:
        _session_repository = SessionRepository()
    return _session_repository
