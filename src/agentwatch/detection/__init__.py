"""Detection modules for agent processes and session logs.

This package contains modules for:
- Per-process introspection (introspection.py)
- CPU and memory sampling (sampler.py)
- Process census and the shared process list (processes.py)
- JSONL session log parsing (jsonl_parser.py)
- Project and session discovery on disk (discovery.py)

Import from here for a clean API:
    from agentwatch.detection import ProcessCensus, parse_session
"""

# Introspection
from .introspection import (
    IntrospectionError,
    ProcessIntrospection,
    PsutilIntrospection,
    get_process_cwd,
)

# Resource sampling
from .sampler import (
    ResourceSample,
    ResourceSampler,
)

# Process detection
from .processes import (
    ProcessCensus,
    ProcessMatcher,
    ProcessMonitor,
    get_process_monitor,
)

# JSONL parsing
from .jsonl_parser import (
    parse_bytes,
    parse_content,
    parse_file,
    parse_record,
    parse_session,
    parse_usage,
)

# Discovery
from .discovery import (
    SessionDiscovery,
    match_process_to_session,
    suggest_project_path,
)

__all__ = [
    # Introspection
    'IntrospectionError',
    'ProcessIntrospection',
    'PsutilIntrospection',
    'get_process_cwd',
    # Resource sampling
    'ResourceSample',
    'ResourceSampler',
    # Process detection
    'ProcessCensus',
    'ProcessMatcher',
    'ProcessMonitor',
    'get_process_monitor',
    # JSONL parsing
    'parse_bytes',
    'parse_content',
    'parse_file',
    'parse_record',
    'parse_session',
    'parse_usage',
    # Discovery
    'SessionDiscovery',
    'match_process_to_session',
    'suggest_project_path',
]
