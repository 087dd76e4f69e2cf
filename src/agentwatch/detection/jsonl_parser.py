"""JSONL file parsing for agent session logs.

This module provides functions for:
- Splitting a raw log buffer into records
- Decoding each record into a typed Message
- Building a Session from a log file on disk

Parsing is total: a malformed record only drops that one line, and the
file as a whole still yields whatever valid records it contains. Only a
failure to read the file itself is raised to the caller.
"""

import base64
import binascii
import json
import re
from pathlib import Path
from typing import Any, Iterable

from ..config import MAX_CONTENT_CHARS
from ..logging_config import get_logger
from ..models import (
    ContentBlock,
    ImageBlock,
    Message,
    MessageRole,
    Session,
    TextBlock,
    ThinkingBlock,
    TokenUsage,
    ToolResultBlock,
    ToolUseBlock,
)
from ..utils import mtime_to_datetime, parse_timestamp, safe_get_nested, truncate_text

logger = get_logger(__name__, 'parser')

# Record types that carry conversation messages; everything else
# (progress, result, summary, file-history-snapshot, ...) is skipped.
ROLE_BY_TYPE = {
    'user': MessageRole.USER,
    'human': MessageRole.USER,
    'assistant': MessageRole.ASSISTANT,
    'system': MessageRole.SYSTEM,
}

# A line can only be retained if one of the message types appears as a
# "type" value somewhere in it. Lines failing this are skipped without
# a JSON decode; lines passing it are still checked at the top level.
# Lines with \u escapes may spell the type in escaped form and always go
# through the full decode.
_RETAINED_TYPE_RE = re.compile(rb'"type"\s*:\s*"(?:user|human|assistant|system)"')


def split_lines(data: bytes) -> list[bytes]:
    """Split a JSONL buffer on newlines, dropping empty lines.

    A final line without a trailing newline is kept.
    """
    return [line for line in data.split(b'\n') if line]


def read_lines(path: Path | str) -> list[bytes]:
    """Read a JSONL file and split it into lines. Raises OSError."""
    with open(path, 'rb') as f:
        return split_lines(f.read())


def _truncate(text: str) -> str:
    return truncate_text(text, MAX_CONTENT_CHARS)


def _parse_tool_result_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            item.get('text', '')
            for item in content
            if isinstance(item, dict) and item.get('type') == 'text'
        ]
        return '\n'.join(t for t in texts if isinstance(t, str))
    return ''


def _parse_image(item: dict) -> ImageBlock | None:
    media_type = safe_get_nested(item, 'source', 'media_type')
    data = safe_get_nested(item, 'source', 'data')
    if not isinstance(media_type, str) or not isinstance(data, str):
        return None
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None
    return ImageBlock(media_type=media_type, data=raw)


def parse_content(content: Any) -> tuple[ContentBlock, ...]:
    """Parse message content: a plain string or an array of typed blocks.

    Unknown block types and blocks missing required fields are ignored.
    """
    if content is None:
        return ()

    if isinstance(content, str):
        return (TextBlock(_truncate(content)),)

    if not isinstance(content, list):
        return ()

    blocks: list[ContentBlock] = []
    for item in content:
        if not isinstance(item, dict):
            continue
        block_type = item.get('type')

        if block_type == 'text':
            text = item.get('text')
            if isinstance(text, str):
                blocks.append(TextBlock(_truncate(text)))

        elif block_type == 'tool_use':
            tool_id = item.get('id')
            name = item.get('name')
            if isinstance(tool_id, str) and isinstance(name, str):
                tool_input = item.get('input')
                if tool_input is None:
                    input_text = '{}'
                else:
                    input_text = json.dumps(tool_input, ensure_ascii=False, separators=(',', ':'))
                blocks.append(ToolUseBlock(id=tool_id, name=name, input=_truncate(input_text)))

        elif block_type == 'tool_result':
            tool_use_id = item.get('tool_use_id')
            if isinstance(tool_use_id, str):
                blocks.append(ToolResultBlock(
                    tool_use_id=tool_use_id,
                    content=_truncate(_parse_tool_result_content(item.get('content'))),
                    is_error=item.get('is_error') is True,
                ))

        elif block_type == 'thinking':
            text = item.get('thinking')
            if isinstance(text, str):
                blocks.append(ThinkingBlock(_truncate(text)))

        elif block_type == 'image':
            image = _parse_image(item)
            if image is not None:
                blocks.append(image)

    return tuple(blocks)


def _counter(usage: dict, key: str) -> int:
    value = usage.get(key)
    # bool is an int subclass but never a token count
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value >= 0 else 0
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return 0


def parse_usage(usage: Any) -> TokenUsage:
    """Parse usage counters, defaulting every absent counter to zero."""
    if not isinstance(usage, dict):
        return TokenUsage.zero()
    return TokenUsage(
        input_tokens=_counter(usage, 'input_tokens'),
        output_tokens=_counter(usage, 'output_tokens'),
        cache_read_tokens=_counter(usage, 'cache_read_input_tokens'),
        cache_creation_tokens=_counter(usage, 'cache_creation_input_tokens'),
    )


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_record(line: bytes | str, index: int) -> Message | None:
    """Decode one JSONL line into a Message.

    Returns None for malformed lines, non-message record types and records
    without a message payload. ``index`` is the line's position among the
    non-empty lines of the file and seeds the synthetic id of messages
    that have none.
    """
    if isinstance(line, str):
        line = line.encode('utf-8', errors='surrogatepass')

    if b'\\u' not in line and not _RETAINED_TYPE_RE.search(line):
        return None

    try:
        record = json.loads(line)
    except (ValueError, RecursionError):
        return None

    if not isinstance(record, dict):
        return None

    record_type = record.get('type')
    if not isinstance(record_type, str) or record_type not in ROLE_BY_TYPE:
        return None
    role = ROLE_BY_TYPE[record_type]

    payload = record.get('message')
    if not isinstance(payload, dict):
        return None

    message_id = payload.get('id')
    if not isinstance(message_id, str) or not message_id:
        message_id = f"msg-{index}"

    return Message(
        id=message_id,
        role=role,
        content=parse_content(payload.get('content')),
        timestamp=parse_timestamp(record.get('timestamp')),
        usage=parse_usage(payload.get('usage')),
        model=_optional_str(payload.get('model')),
        stop_reason=_optional_str(payload.get('stop_reason')),
    )


def parse_lines(lines: Iterable[bytes | str]) -> tuple[Message, ...]:
    """Parse JSONL lines into messages, preserving file order.

    A message whose id was already produced earlier in the same parse is
    emitted as ``{id}-{index}``.
    """
    messages: list[Message] = []
    seen_ids: set[str] = set()

    for index, line in enumerate(lines):
        message = parse_record(line, index)
        if message is None:
            continue

        if message.id in seen_ids:
            message = message.with_id(f"{message.id}-{index}")
        seen_ids.add(message.id)
        messages.append(message)

    return tuple(messages)


def parse_bytes(data: bytes) -> tuple[Message, ...]:
    """Parse a raw JSONL buffer into messages. Never raises."""
    return parse_lines(split_lines(data))


def parse_file(path: Path | str) -> tuple[Message, ...]:
    """Parse a session file into messages. Raises OSError if unreadable."""
    return parse_lines(read_lines(path))


def parse_session(path: Path | str, project_path: str | None = None) -> Session:
    """Parse a session file into a Session.

    The session id is the file stem, the start time is the earliest
    message timestamp and ``last_modified`` is the file's mtime.

    Raises:
        OSError: the file cannot be opened or read
    """
    path = Path(path)
    lines = read_lines(path)
    messages = parse_lines(lines)

    try:
        mtime = path.stat().st_mtime
    except OSError:
        mtime = None

    timestamps = [m.timestamp for m in messages if m.timestamp is not None]

    logger.debug("Parsed %d messages from %d lines in %s", len(messages), len(lines), path)

    return Session(
        id=path.stem,
        file_path=str(path),
        project_path=project_path,
        start_time=min(timestamps) if timestamps else None,
        last_modified=mtime_to_datetime(mtime),
        messages=messages,
    )
