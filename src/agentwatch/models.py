"""Domain models for agent sessions and processes.

Every model is a frozen dataclass: parsed sessions are shared between the
cache and its readers, so nothing here is mutated after construction.
Copies with changed fields are made with ``dataclasses.replace`` or the
``with_*`` helpers.
"""

import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Iterable, Union

from .config import MESSAGE_PREVIEW_CHARS, PATH_MARKER
from .types import (
    ContentBlockInfo,
    MessageInfo,
    ProcessInfo,
    ProcessStatsInfo,
    ProjectInfo,
    SessionInfo,
    SessionSummaryInfo,
    TokenUsageInfo,
)
from .utils import isoformat_or_none, normalize_path, parse_timestamp


class MessageRole(str, Enum):
    """Role of a message participant."""
    USER = 'user'
    ASSISTANT = 'assistant'
    SYSTEM = 'system'


# ============================================================================
# Content blocks
# ============================================================================

@dataclass(frozen=True)
class TextBlock:
    text: str
    type: ClassVar[str] = 'text'

    @property
    def text_content(self) -> str | None:
        return self.text

    def to_dict(self) -> ContentBlockInfo:
        return {'type': self.type, 'text': self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation; ``input`` is the tool input rendered as JSON text."""
    id: str
    name: str
    input: str = '{}'
    type: ClassVar[str] = 'tool_use'

    @property
    def text_content(self) -> str | None:
        return None

    def to_dict(self) -> ContentBlockInfo:
        return {'type': self.type, 'id': self.id, 'name': self.name, 'input': self.input}


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str = ''
    is_error: bool = False
    type: ClassVar[str] = 'tool_result'

    @property
    def text_content(self) -> str | None:
        return self.content

    def to_dict(self) -> ContentBlockInfo:
        return {
            'type': self.type,
            'toolUseId': self.tool_use_id,
            'content': self.content,
            'isError': self.is_error,
        }


@dataclass(frozen=True)
class ThinkingBlock:
    text: str
    type: ClassVar[str] = 'thinking'

    @property
    def text_content(self) -> str | None:
        return self.text

    def to_dict(self) -> ContentBlockInfo:
        return {'type': self.type, 'text': self.text}


@dataclass(frozen=True)
class ImageBlock:
    media_type: str
    data: bytes = field(repr=False)
    type: ClassVar[str] = 'image'

    @property
    def text_content(self) -> str | None:
        return None

    def to_dict(self) -> ContentBlockInfo:
        # Image bytes are not inlined in payloads, only described
        return {'type': self.type, 'mediaType': self.media_type, 'size': len(self.data)}


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, ThinkingBlock, ImageBlock]

TOOL_BLOCK_TYPES = (ToolUseBlock, ToolResultBlock)


# ============================================================================
# Token usage
# ============================================================================

@dataclass(frozen=True)
class TokenUsage:
    """Token counters reported for one message.

    Addition is componentwise, so usages can be summed with
    ``sum(usages, TokenUsage.zero())``.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0

    @classmethod
    def zero(cls) -> 'TokenUsage':
        return cls()

    @property
    def total_tokens(self) -> int:
        # Cache reads and writes are not counted towards the total
        return self.input_tokens + self.output_tokens

    def __add__(self, other: 'TokenUsage') -> 'TokenUsage':
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
            cache_creation_tokens=self.cache_creation_tokens + other.cache_creation_tokens,
        )

    def to_dict(self) -> TokenUsageInfo:
        return {
            'input_tokens': self.input_tokens,
            'output_tokens': self.output_tokens,
            'cache_read_input_tokens': self.cache_read_tokens,
            'cache_creation_input_tokens': self.cache_creation_tokens,
        }


# ============================================================================
# Messages and sessions
# ============================================================================

@dataclass(frozen=True)
class Message:
    """A single message in an agent conversation."""
    id: str
    role: MessageRole
    content: tuple[ContentBlock, ...] = ()
    timestamp: datetime | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str | None = None
    stop_reason: str | None = None

    @property
    def text_content(self) -> str:
        """All text, thinking and tool-result content joined by newlines."""
        parts = [block.text_content for block in self.content]
        return '\n'.join(part for part in parts if part is not None)

    @property
    def preview(self) -> str:
        text = self.text_content
        if len(text) <= MESSAGE_PREVIEW_CHARS:
            return text
        return text[:MESSAGE_PREVIEW_CHARS] + '...'

    @property
    def tool_use_count(self) -> int:
        return sum(1 for block in self.content if isinstance(block, ToolUseBlock))

    def with_id(self, message_id: str) -> 'Message':
        return replace(self, id=message_id)

    def to_dict(self) -> MessageInfo:
        return {
            'id': self.id,
            'role': self.role.value,
            'content': [block.to_dict() for block in self.content],
            'timestamp': isoformat_or_none(self.timestamp),
            'usage': self.usage.to_dict(),
            'model': self.model,
            'stopReason': self.stop_reason,
        }


@dataclass(frozen=True)
class Session:
    """The full parsed conversation backing one log file."""
    id: str
    file_path: str
    project_path: str | None = None
    start_time: datetime | None = None
    last_modified: datetime | None = None
    messages: tuple[Message, ...] = ()

    @property
    def total_usage(self) -> TokenUsage:
        return sum((m.usage for m in self.messages), TokenUsage.zero())

    @property
    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role is MessageRole.USER)

    @property
    def assistant_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role is MessageRole.ASSISTANT)

    @property
    def duration(self) -> float | None:
        """Seconds between the first message and the last file write."""
        if self.start_time is None or self.last_modified is None:
            return None
        return (self.last_modified - self.start_time).total_seconds()

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def with_project_path(self, project_path: str | None) -> 'Session':
        return replace(self, project_path=project_path)

    def to_dict(self, include_messages: bool = True) -> SessionInfo:
        data: SessionInfo = {
            'sessionId': self.id,
            'filePath': self.file_path,
            'projectPath': self.project_path,
            'startTime': isoformat_or_none(self.start_time),
            'lastModified': isoformat_or_none(self.last_modified),
            'messageCount': len(self.messages),
        }
        if include_messages:
            data['messages'] = [m.to_dict() for m in self.messages]
        return data


@dataclass(frozen=True)
class SessionSummary:
    """A session found on disk, listed without parsing its log."""
    id: str
    file_path: str
    project_path: str | None = None
    last_modified: datetime | None = None
    file_size: int = 0

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def to_dict(self) -> SessionSummaryInfo:
        return {
            'sessionId': self.id,
            'filePath': self.file_path,
            'projectPath': self.project_path,
            'lastModified': isoformat_or_none(self.last_modified),
            'fileSize': self.file_size,
        }


@dataclass(frozen=True)
class SessionMetadata:
    """One record of a project's sessions index sidecar."""
    id: str
    original_path: str | None = None
    last_modified: datetime | None = None
    summary: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> 'SessionMetadata | None':
        """Build from an index record; None when the record has no id."""
        if not isinstance(data, dict):
            return None
        session_id = data.get('id') or data.get('sessionId')
        if not isinstance(session_id, str):
            return None
        original_path = data.get('originalPath') or data.get('projectPath')
        summary = data.get('summary')
        return cls(
            id=session_id,
            original_path=original_path if isinstance(original_path, str) else None,
            last_modified=parse_timestamp(data.get('lastModified') or data.get('modified')),
            summary=summary if isinstance(summary, str) else None,
        )


# ============================================================================
# Projects
# ============================================================================

@dataclass(frozen=True)
class ProjectDirectory:
    """A directory under the log root holding one project's sessions.

    The directory name is the project path with every "/" replaced by "-".
    A path that itself contains "-" cannot be recovered from its encoded
    name; decode() then yields a path with extra separators.
    """
    encoded_name: str
    original_path: str
    session_count: int = 0
    last_activity: datetime | None = None

    @property
    def name(self) -> str:
        return os.path.basename(self.original_path.rstrip('/')) or self.original_path

    @staticmethod
    def encode(path: str) -> str:
        # The leading "/" becomes the leading marker
        return normalize_path(path).replace('/', PATH_MARKER)

    @staticmethod
    def decode(encoded_name: str) -> str:
        if not encoded_name.startswith(PATH_MARKER):
            return encoded_name
        return encoded_name.replace(PATH_MARKER, '/')

    def to_dict(self) -> ProjectInfo:
        return {
            'encodedName': self.encoded_name,
            'originalPath': self.original_path,
            'name': self.name,
            'sessionCount': self.session_count,
            'lastActivity': isoformat_or_none(self.last_activity),
        }


# ============================================================================
# Processes
# ============================================================================

@dataclass(frozen=True)
class AgentProcess:
    """A running agent CLI process with its sampled metrics."""
    pid: int
    name: str
    working_directory: str | None = None
    cpu_percent: float = 0.0
    memory_mb: float = 0.0
    parent_pid: int | None = None
    start_time: datetime | None = None
    is_helper: bool = False

    def with_metrics(self, cpu: float, memory: float) -> 'AgentProcess':
        return replace(self, cpu_percent=cpu, memory_mb=memory)

    def to_dict(self) -> ProcessInfo:
        return {
            'pid': self.pid,
            'name': self.name,
            'cwd': self.working_directory,
            'cpuPercent': round(self.cpu_percent, 1),
            'memoryMB': round(self.memory_mb, 1),
            'parentPid': self.parent_pid,
            'startTime': isoformat_or_none(self.start_time),
            'isHelper': self.is_helper,
        }

    def __str__(self) -> str:
        directory = self.working_directory or 'unknown'
        return (
            f"AgentProcess(pid: {self.pid}, cpu: {self.cpu_percent:.1f}%, "
            f"mem: {self.memory_mb:.1f}MB, dir: {directory})"
        )


@dataclass(frozen=True)
class ProcessStats:
    """Totals over one process census."""
    total_processes: int = 0
    main_processes: int = 0
    helper_processes: int = 0
    total_cpu: float = 0.0
    total_memory_mb: float = 0.0

    @classmethod
    def from_processes(cls, processes: Iterable[AgentProcess]) -> 'ProcessStats':
        processes = list(processes)
        helpers = sum(1 for p in processes if p.is_helper)
        return cls(
            total_processes=len(processes),
            main_processes=len(processes) - helpers,
            helper_processes=helpers,
            total_cpu=sum(p.cpu_percent for p in processes),
            total_memory_mb=sum(p.memory_mb for p in processes),
        )

    def to_dict(self) -> ProcessStatsInfo:
        return {
            'totalProcesses': self.total_processes,
            'mainProcesses': self.main_processes,
            'helperProcesses': self.helper_processes,
            'totalCpu': round(self.total_cpu, 1),
            'totalMemoryMB': round(self.total_memory_mb, 1),
        }


# ============================================================================
# Message filtering
# ============================================================================

@dataclass(frozen=True)
class MessageFilter:
    """Filter criteria for messages.

    Variants are derived with ``dataclasses.replace``, e.g.
    ``replace(MessageFilter(), text_contains='error')``.
    """
    roles: frozenset[MessageRole] | None = None
    text_contains: str | None = None
    include_tools: bool = True
    include_thinking: bool = True
    min_tokens: int | None = None
    max_tokens: int | None = None

    # Presets, populated below the class body
    ALL: ClassVar['MessageFilter']
    USER_ONLY: ClassVar['MessageFilter']
    ASSISTANT_ONLY: ClassVar['MessageFilter']
    CONVERSATION: ClassVar['MessageFilter']

    def matches(self, message: Message) -> bool:
        if self.roles is not None and message.role not in self.roles:
            return False

        if self.text_contains:
            if self.text_contains.lower() not in message.text_content.lower():
                return False

        tokens = message.usage.total_tokens
        if self.min_tokens is not None and tokens < self.min_tokens:
            return False
        if self.max_tokens is not None and tokens > self.max_tokens:
            return False

        return True

    def filter(self, messages: Iterable[Message]) -> list[Message]:
        return [m for m in messages if self.matches(m)]

    def filter_content(self, blocks: Iterable[ContentBlock]) -> list[ContentBlock]:
        kept = []
        for block in blocks:
            if isinstance(block, TOOL_BLOCK_TYPES) and not self.include_tools:
                continue
            if isinstance(block, ThinkingBlock) and not self.include_thinking:
                continue
            kept.append(block)
        return kept


MessageFilter.ALL = MessageFilter()
MessageFilter.USER_ONLY = MessageFilter(roles=frozenset({MessageRole.USER}))
MessageFilter.ASSISTANT_ONLY = MessageFilter(roles=frozenset({MessageRole.ASSISTANT}))
MessageFilter.CONVERSATION = MessageFilter(
    roles=frozenset({MessageRole.USER, MessageRole.ASSISTANT})
)
