"""REST API routes for running agent processes."""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..detection.processes import get_process_monitor
from ..logging_config import get_logger
from ..models import ProcessStats

logger = get_logger(__name__, 'api')

router = APIRouter(prefix="/api", tags=["processes"])


class ProcessListResponse(BaseModel):
    """Response model for the process list endpoint."""

    processes: list[dict]
    stats: dict
    timestamp: str


@router.get("/processes", response_model=ProcessListResponse)
def list_processes(include_helpers: bool = False):
    """List running agent processes with CPU and memory usage.

    The census is refreshed in the background; only the first request
    after startup runs one inline. Helpers are filtered per request.
    """
    monitor = get_process_monitor()
    if monitor.time_since_last_update() is None:
        monitor.refresh()

    processes = monitor.get_processes(include_helpers=include_helpers)
    return ProcessListResponse(
        processes=[p.to_dict() for p in processes],
        stats=ProcessStats.from_processes(processes).to_dict(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/processes/{pid}")
def get_process(pid: int):
    """Describe a single process, looked up directly rather than from the census."""
    process = get_process_monitor().census.get_process(pid)
    if process is None:
        raise HTTPException(status_code=404, detail=f"Process {pid} not found")
    return process.to_dict()
