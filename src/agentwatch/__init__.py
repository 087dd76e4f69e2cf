"""agentwatch: observe running agent CLI sessions and their conversation logs."""

__version__ = "0.1.0"
