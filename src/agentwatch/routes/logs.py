"""Routes exposing the in-memory log buffer."""

from typing import Optional

from fastapi import APIRouter, Query

from ..logging_config import NAMESPACES, get_log_buffer_handler

router = APIRouter(prefix="/api", tags=["logs"])


@router.get("/logs")
def get_logs(count: int = Query(100, ge=0, le=5000), namespace: Optional[str] = None):
    """Recent log records, oldest first, optionally from one namespace."""
    entries = get_log_buffer_handler().get_history(count, namespace=namespace)
    return {"logs": entries, "count": len(entries), "namespaces": list(NAMESPACES)}
