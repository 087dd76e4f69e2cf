"""Route modules for the agentwatch API."""

from .logs import router as logs_router
from .processes import router as processes_router
from .sessions import router as sessions_router

__all__ = [
    'logs_router',
    'processes_router',
    'sessions_router',
]
