"""Type definitions for agentwatch payloads.

This module provides TypedDict definitions documenting the JSON-ready
dictionaries produced by the domain objects' ``to_dict`` methods.
"""

from typing import TypedDict
from typing_extensions import NotRequired


class TokenUsageInfo(TypedDict):
    """Token usage metrics using the wire names of the log format."""
    input_tokens: int
    output_tokens: int
    cache_read_input_tokens: int
    cache_creation_input_tokens: int


class ContentBlockInfo(TypedDict):
    """One content block; which optional keys are set depends on ``type``."""
    type: str  # 'text', 'tool_use', 'tool_result', 'thinking', 'image'
    text: NotRequired[str]
    id: NotRequired[str]
    name: NotRequired[str]
    input: NotRequired[str]
    toolUseId: NotRequired[str]
    content: NotRequired[str]
    isError: NotRequired[bool]
    mediaType: NotRequired[str]
    size: NotRequired[int]


class MessageInfo(TypedDict):
    """A parsed conversation message."""
    id: str
    role: str  # 'user', 'assistant', 'system'
    content: list[ContentBlockInfo]
    timestamp: str | None
    usage: TokenUsageInfo
    model: str | None
    stopReason: str | None


class SessionSummaryInfo(TypedDict):
    """A session listed without parsing its log."""
    sessionId: str
    filePath: str
    projectPath: str | None
    lastModified: str | None
    fileSize: int


class SessionInfo(TypedDict):
    """A fully parsed session."""
    sessionId: str
    filePath: str
    projectPath: str | None
    startTime: str | None
    lastModified: str | None
    messageCount: int
    messages: NotRequired[list[MessageInfo]]


class SessionStatsInfo(TypedDict):
    """Derived statistics for one session."""
    totalMessages: int
    userMessages: int
    assistantMessages: int
    toolCalls: int
    totalUsage: TokenUsageInfo
    totalTokens: int
    estimatedCost: str  # Decimal rendered as a string to keep precision
    formattedCost: str
    duration: float | None


class ProjectInfo(TypedDict):
    """A project directory under the log root."""
    encodedName: str
    originalPath: str
    name: str
    sessionCount: int
    lastActivity: str | None


class ProcessInfo(TypedDict):
    """Information about a running agent CLI process."""
    pid: int
    name: str
    cwd: str | None
    cpuPercent: float
    memoryMB: float
    parentPid: int | None
    startTime: str | None
    isHelper: bool


class ProcessStatsInfo(TypedDict):
    """Totals over one process census."""
    totalProcesses: int
    mainProcesses: int
    helperProcesses: int
    totalCpu: float
    totalMemoryMB: float
