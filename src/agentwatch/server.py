"""FastAPI application serving process and session data."""

import argparse
import socket
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import DEFAULT_HOST, DEFAULT_PORT
from .logging_config import get_logger, setup_logging
from .monitor import get_monitor
from .routes import logs_router, processes_router, sessions_router

logger = get_logger(__name__, 'api')

app = FastAPI(title="agentwatch", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(processes_router)
app.include_router(sessions_router)
app.include_router(logs_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    monitor = get_monitor()
    return {
        "status": "ok",
        "version": __version__,
        "hostname": socket.gethostname(),
        "monitorRunning": monitor.is_running(),
        "cachedSessions": len(monitor.repository.cache),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.on_event("startup")
async def startup_event():
    """Start the background refresh timers."""
    get_monitor().start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the background refresh timers."""
    get_monitor().stop()


def main():
    parser = argparse.ArgumentParser(description="agentwatch server")
    parser.add_argument('--host', default=DEFAULT_HOST, help='Host to bind to')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT, help='Port to bind to')
    parser.add_argument('--log-level', default=None, help='Log level (DEBUG, INFO, ...)')
    args = parser.parse_args()

    setup_logging(args.log_level)

    logger.info("Starting agentwatch on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
