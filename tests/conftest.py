"""Shared fixtures: on-disk session logs and a scriptable process table."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import pytest

from agentwatch.detection.introspection import IntrospectionError, ProcessIntrospection


def write_jsonl(path: Path, records: list) -> Path:
    """Write records as JSONL; str records are written verbatim."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text('\n'.join(lines) + '\n')
    return path


def user_record(text: str, msg_id: str | None = None, timestamp: str = '2025-01-15T10:30:00.000Z') -> dict:
    message = {'role': 'user', 'content': text}
    if msg_id:
        message['id'] = msg_id
    return {'type': 'user', 'message': message, 'timestamp': timestamp}


def assistant_record(
    text: str,
    msg_id: str | None = None,
    model: str = 'claude-sonnet-4-5',
    usage: dict | None = None,
    timestamp: str = '2025-01-15T10:30:05.000Z',
) -> dict:
    message = {
        'role': 'assistant',
        'content': [{'type': 'text', 'text': text}],
        'model': model,
        'usage': usage or {'input_tokens': 100, 'output_tokens': 50},
    }
    if msg_id:
        message['id'] = msg_id
    return {'type': 'assistant', 'message': message, 'timestamp': timestamp}


@pytest.fixture
def projects_dir(tmp_path):
    """An empty log root."""
    root = tmp_path / 'projects'
    root.mkdir()
    return root


@pytest.fixture
def make_session(projects_dir):
    """Factory writing ``<root>/<encoded project>/<session_id>.jsonl``."""
    def _make(project_path: str, session_id: str, records: list) -> Path:
        encoded = project_path.replace('/', '-')
        return write_jsonl(projects_dir / encoded / f'{session_id}.jsonl', records)
    return _make


@dataclass
class FakeProcess:
    name: str
    exe: str = '/usr/local/bin/claude'
    cwd: str | None = '/Users/test/project'
    cpu_seconds: float = 1.0
    rss_bytes: int = 100 * 1024 * 1024
    ppid: int | None = 1
    started: datetime = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class FakeIntrospection(ProcessIntrospection):
    """In-memory process table. PIDs in ``denied`` fail every lookup."""

    def __init__(self, processes: dict[int, FakeProcess] | None = None, cores: int = 4):
        self.processes = processes if processes is not None else {}
        self.denied: set[int] = set()
        self.cores = cores

    def _get(self, pid: int) -> FakeProcess:
        if pid in self.denied:
            raise IntrospectionError(pid, 'access denied')
        if pid not in self.processes:
            raise IntrospectionError(pid, 'no such process')
        return self.processes[pid]

    def list_pids(self) -> list[int]:
        return sorted(set(self.processes) | self.denied)

    def name(self, pid: int) -> str:
        return self._get(pid).name

    def executable_path(self, pid: int) -> str:
        return self._get(pid).exe

    def working_directory(self, pid: int) -> str:
        cwd = self._get(pid).cwd
        if cwd is None:
            raise IntrospectionError(pid, 'access denied')
        return cwd

    def cpu_time(self, pid: int) -> float:
        return self._get(pid).cpu_seconds

    def resident_memory(self, pid: int) -> int:
        return self._get(pid).rss_bytes

    def start_time(self, pid: int) -> datetime:
        return self._get(pid).started

    def parent_pid(self, pid: int) -> int | None:
        return self._get(pid).ppid

    def cpu_count(self) -> int:
        return self.cores


@pytest.fixture
def fake_introspection():
    return FakeIntrospection()
