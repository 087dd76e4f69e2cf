"""Session and project discovery under the log root.

This module provides:
- Listing project directories and their session files
- Reading the optional sessions index sidecar
- Matching running processes to projects and sessions

A missing root or project directory is an empty result, never an error.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ..config import CLAUDE_PROJECTS_DIR, PATH_MARKER, SESSION_FILE_SUFFIX, SESSION_INDEX_FILENAME
from ..logging_config import get_logger
from ..models import AgentProcess, ProjectDirectory, Session, SessionMetadata, SessionSummary
from ..utils import is_within, mtime_to_datetime, normalize_path

logger = get_logger(__name__, 'cache')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SessionDiscovery:
    """Finds projects and session files under a log root directory."""

    def __init__(self, projects_dir: Path | str | None = None):
        self.projects_dir = Path(projects_dir) if projects_dir is not None else CLAUDE_PROJECTS_DIR

    def project_dir(self, encoded_name: str) -> Path:
        return self.projects_dir / encoded_name

    def find_sessions(self, project_path: str) -> list[SessionSummary]:
        """Find all sessions of the project rooted at ``project_path``."""
        encoded_name = ProjectDirectory.encode(project_path)
        return self._find_sessions_in(self.project_dir(encoded_name), project_path)

    def find_sessions_in_dir(self, encoded_name: str) -> list[SessionSummary]:
        """Find all sessions in an encoded project directory."""
        project_path = ProjectDirectory.decode(encoded_name)
        return self._find_sessions_in(self.project_dir(encoded_name), project_path)

    def _find_sessions_in(self, directory: Path, project_path: str | None) -> list[SessionSummary]:
        if not directory.is_dir():
            return []

        sessions = []
        for log_file in directory.glob(f"*{SESSION_FILE_SUFFIX}"):
            try:
                stat = log_file.stat()
            except OSError:
                # Removed between listing and stat
                continue
            if not log_file.is_file():
                continue
            sessions.append(SessionSummary(
                id=log_file.stem,
                file_path=str(log_file),
                project_path=project_path,
                last_modified=mtime_to_datetime(stat.st_mtime),
                file_size=stat.st_size,
            ))

        # Newest first
        sessions.sort(key=lambda s: s.last_modified or _EPOCH, reverse=True)
        return sessions

    def find_all_projects(self) -> list[ProjectDirectory]:
        """Find all project directories, most recently active first."""
        if not self.projects_dir.is_dir():
            return []

        projects = []
        for entry in self.projects_dir.iterdir():
            if not entry.name.startswith(PATH_MARKER) or not entry.is_dir():
                continue

            sessions = self._find_sessions_in(entry, None)
            projects.append(ProjectDirectory(
                encoded_name=entry.name,
                original_path=ProjectDirectory.decode(entry.name),
                session_count=len(sessions),
                last_activity=sessions[0].last_modified if sessions else None,
            ))

        projects.sort(key=lambda p: p.last_activity or _EPOCH, reverse=True)
        return projects

    def find_project(self, path: str) -> ProjectDirectory | None:
        """Find the project directory for a filesystem path."""
        return self.get_project(ProjectDirectory.encode(path))

    def get_project(self, encoded_name: str) -> ProjectDirectory | None:
        return next((p for p in self.find_all_projects() if p.encoded_name == encoded_name), None)

    def find_session_file(self, session_id: str) -> Path | None:
        """Search every project directory for ``{session_id}.jsonl``."""
        if not self.projects_dir.is_dir():
            return None

        for project_dir in self.projects_dir.iterdir():
            if not project_dir.is_dir():
                continue
            log_file = project_dir / f"{session_id}{SESSION_FILE_SUFFIX}"
            if log_file.is_file():
                return log_file
        return None

    def read_session_index(self, project_path: str) -> list[SessionMetadata]:
        """Read the sessions index sidecar of a project.

        The index holds either an array of records or a map of them (keyed
        by session id, or under an ``entries`` key). An absent or
        malformed index yields an empty list.
        """
        encoded_name = ProjectDirectory.encode(project_path)
        index_path = self.project_dir(encoded_name) / SESSION_INDEX_FILENAME
        if not index_path.is_file():
            return []

        try:
            raw = json.loads(index_path.read_bytes())
        except (OSError, ValueError):
            logger.warning("Unreadable sessions index: %s", index_path)
            return []

        if isinstance(raw, dict):
            entries = raw.get('entries')
            records: Iterable = entries if isinstance(entries, list) else raw.values()
        elif isinstance(raw, list):
            records = raw
        else:
            return []

        return [m for m in (SessionMetadata.from_dict(r) for r in records) if m is not None]

    def find_active_projects(
        self,
        processes: Iterable[AgentProcess],
    ) -> list[tuple[ProjectDirectory, list[AgentProcess]]]:
        """Pair each project with the processes running inside it."""
        processes = [p for p in processes if p.working_directory]
        result = []

        for project in self.find_all_projects():
            root = normalize_path(project.original_path)
            matching = [
                p for p in processes
                if is_within(normalize_path(p.working_directory), root)
            ]
            if matching:
                result.append((project, matching))

        return result


def suggest_project_path(workdir: str) -> str:
    """Nearest ancestor of ``workdir`` holding a ``.git`` entry, else ``workdir``."""
    current = Path(normalize_path(workdir))
    for candidate in (current, *current.parents):
        if candidate == candidate.parent:
            break
        if (candidate / '.git').exists():
            return str(candidate)
    return workdir


def match_process_to_session(
    process: AgentProcess,
    sessions: list[Session],
) -> Session | None:
    """Match a process to its session by comparing start times.

    Args:
        process: Process with an optional start time
        sessions: Candidate sessions, typically those of the process's project

    Returns:
        Session starting closest to the process, or the most recently
        modified one when start times are unavailable; None if no sessions
    """
    if not sessions:
        return None

    if process.start_time is not None:
        timed = [s for s in sessions if s.start_time is not None]
        if timed:
            return min(timed, key=lambda s: abs((s.start_time - process.start_time).total_seconds()))

    return max(sessions, key=lambda s: s.last_modified or _EPOCH)
