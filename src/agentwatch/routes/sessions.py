"""Project and session routes."""

from dataclasses import replace
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..detection.discovery import match_process_to_session, suggest_project_path
from ..detection.processes import get_process_monitor
from ..logging_config import get_logger
from ..models import MessageFilter, MessageRole, Session
from ..repository import get_session_repository

logger = get_logger(__name__, 'api')

router = APIRouter(prefix="/api", tags=["sessions"])

T = TypeVar('T')


class SessionListResponse(BaseModel):
    sessions: list[dict]
    count: int


class SearchResult(BaseModel):
    session: dict
    matchCount: int


class MessageListResponse(BaseModel):
    sessionId: str
    messages: list[dict]
    count: int
    total: int


def _read_session(load: Callable[[], T], what: str) -> T:
    """Run a session load, mapping filesystem errors to HTTP errors."""
    try:
        return load()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session file not found: {what}")
    except OSError as e:
        logger.error("Failed to read session %s: %s", what, e)
        raise HTTPException(status_code=500, detail=f"Failed to read session: {e}")


def _session_or_404(session_id: str, project_path: str) -> Session:
    repository = get_session_repository()
    session = _read_session(
        lambda: repository.load_session_by_id(session_id, project_path),
        session_id,
    )
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


# ----------------------------------------------------------------------------
# Projects
# ----------------------------------------------------------------------------

@router.get("/projects")
def list_projects():
    """All projects with sessions on disk, most recently active first."""
    projects = get_session_repository().get_projects()
    return {"projects": [p.to_dict() for p in projects], "count": len(projects)}


@router.get("/projects/active")
def list_active_projects():
    """Projects with a running agent process inside them."""
    repository = get_session_repository()
    processes = get_process_monitor().get_processes()
    active = repository.discovery.find_active_projects(processes)

    result = []
    for project, project_processes in active:
        entry = project.to_dict()
        entry['processes'] = [p.to_dict() for p in project_processes]
        result.append(entry)
    return {"projects": result, "count": len(result)}


@router.get("/projects/{encoded_name}/sessions", response_model=SessionListResponse)
def list_project_sessions(encoded_name: str):
    """Sessions of an encoded project directory, newest first."""
    sessions = get_session_repository().get_sessions_for_encoded_dir(encoded_name)
    return SessionListResponse(sessions=[s.to_dict() for s in sessions], count=len(sessions))


@router.get("/projects/suggest")
def suggest_project(cwd: str):
    """Suggest the project root for a working directory."""
    return {"cwd": cwd, "projectPath": suggest_project_path(cwd)}


# ----------------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------------

@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(project_path: str):
    """Sessions of a project, newest first."""
    sessions = get_session_repository().get_sessions(project_path)
    return SessionListResponse(sessions=[s.to_dict() for s in sessions], count=len(sessions))


@router.get("/sessions/search", response_model=list[SearchResult])
def search_sessions(project_path: str, q: str):
    """Sessions of a project whose messages contain ``q``, most matches first."""
    results = get_session_repository().search_sessions(project_path, q)
    return [SearchResult(session=s.to_dict(), matchCount=count) for s, count in results]


@router.get("/sessions/recent")
def most_recent_session(project_path: str, include_messages: bool = False):
    """The most recently modified session of a project."""
    repository = get_session_repository()
    session = _read_session(lambda: repository.get_most_recent_session(project_path), project_path)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No sessions for {project_path}")
    return session.to_dict(include_messages=include_messages)


@router.get("/sessions/for-process/{pid}")
def session_for_process(pid: int):
    """The session a running process is most likely writing to."""
    process = get_process_monitor().get_process(pid)
    if process is None or not process.working_directory:
        raise HTTPException(status_code=404, detail=f"Process {pid} not found")

    repository = get_session_repository()
    project_path = process.working_directory
    sessions = []
    # Only the newest few; a process is matched to a recent session
    for summary in repository.get_sessions(project_path)[:5]:
        try:
            sessions.append(repository.load_session(summary.file_path, project_path))
        except OSError as e:
            logger.debug("Skipping %s: %s", summary.file_path, e)

    session = match_process_to_session(process, sessions)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No session for process {pid}")
    return session.to_dict(include_messages=False)


@router.get("/sessions/{session_id}")
def get_session(session_id: str, project_path: str, include_messages: bool = True):
    """A parsed session of a project."""
    return _session_or_404(session_id, project_path).to_dict(include_messages=include_messages)


@router.get("/session")
def get_session_by_path(file_path: str, include_messages: bool = True):
    """A parsed session addressed by its log file path."""
    repository = get_session_repository()
    session = _read_session(lambda: repository.load_session(file_path), file_path)
    return session.to_dict(include_messages=include_messages)


@router.get("/sessions/{session_id}/stats")
def get_session_stats(session_id: str, project_path: str):
    """Message counts, token totals and estimated cost of a session."""
    session = _session_or_404(session_id, project_path)
    stats = get_session_repository().compute_stats(session)
    return {"sessionId": session.id, **stats.to_dict()}


@router.get("/sessions/{session_id}/messages", response_model=MessageListResponse)
def get_session_messages(
    session_id: str,
    project_path: str,
    role: Optional[MessageRole] = None,
    q: Optional[str] = None,
    include_tools: bool = True,
    include_thinking: bool = True,
):
    """Messages of a session, optionally filtered by role and text."""
    session = _session_or_404(session_id, project_path)
    message_filter = MessageFilter(
        roles=frozenset({role}) if role is not None else None,
        text_contains=q or None,
        include_tools=include_tools,
        include_thinking=include_thinking,
    )

    messages = [
        replace(m, content=tuple(message_filter.filter_content(m.content))).to_dict()
        for m in message_filter.filter(session.messages)
    ]
    return MessageListResponse(
        sessionId=session.id,
        messages=messages,
        count=len(messages),
        total=len(session.messages),
    )
