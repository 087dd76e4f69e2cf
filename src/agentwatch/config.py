"""Configuration module for agentwatch.

Centralizes all configuration constants and environment variables
to eliminate scattered magic numbers and duplicated settings.
"""

import os
from pathlib import Path

# ============================================================================
# Path Configuration
# ============================================================================

# Root directory holding one encoded subdirectory per project
CLAUDE_PROJECTS_DIR = Path(
    os.getenv("AGENTWATCH_PROJECTS_DIR", str(Path.home() / ".claude" / "projects"))
).expanduser()

# Session log file extension
SESSION_FILE_SUFFIX = ".jsonl"

# Optional sidecar with session metadata inside a project directory
SESSION_INDEX_FILENAME = "sessions-index.json"

# Character that replaces "/" in encoded project directory names
PATH_MARKER = "-"


# ============================================================================
# Parser Limits
# ============================================================================

# Maximum characters kept per textual content block
MAX_CONTENT_CHARS = 50_000

# Characters shown in a message preview
MESSAGE_PREVIEW_CHARS = 100


# ============================================================================
# Cache TTL Settings (seconds)
# ============================================================================

# How long a parsed session stays fresh before it is re-read
SESSION_CACHE_MAX_AGE = float(os.getenv("AGENTWATCH_CACHE_MAX_AGE", "60"))

# Sessions parsed ahead of time when a project is opened
PRELOAD_SESSION_LIMIT = 10


# ============================================================================
# Refresh Intervals (seconds)
# ============================================================================

# Process census cadence
PROCESS_REFRESH_INTERVAL = float(os.getenv("AGENTWATCH_PROCESS_REFRESH_INTERVAL", "2"))

# Project list refresh and cache pruning cadence
SESSION_REFRESH_INTERVAL = float(os.getenv("AGENTWATCH_SESSION_REFRESH_INTERVAL", "10"))


# ============================================================================
# Process Identification
# ============================================================================

# Process names that identify the agent CLI exactly
AGENT_PROCESS_NAMES = ("claude",)

# Substrings of a process name that identify the agent CLI
AGENT_NAME_SUBSTRINGS = ("claude-code",)

# Substrings of an executable path that identify a native install.
# The versioned binary resolves to e.g. ~/.local/share/claude/versions/2.1.32,
# so the process name alone is just the version number.
AGENT_PATH_PATTERNS = ("/claude/versions/",)

# Timeout for the lsof working-directory fallback
LSOF_TIMEOUT = 5


# ============================================================================
# Server Configuration
# ============================================================================

DEFAULT_HOST = os.getenv("AGENTWATCH_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("AGENTWATCH_PORT", "8765"))


# ============================================================================
# Logging
# ============================================================================

# Records kept in memory for GET /api/logs
LOG_BUFFER_SIZE = int(os.getenv("AGENTWATCH_LOG_BUFFER_SIZE", "500"))

# Console line layout
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
