"""
Status API
==========

Optional FastAPI status endpoint for a running receiver.

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (is the acceptor listening?)
    GET  /metrics   - Acceptor and display metrics

The endpoint is served by uvicorn on a background thread so it never
competes with the render loop, which owns the main thread.
"""

import logging
import threading
import time
from typing import Optional, Protocol

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from framecast import __version__


logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    """What the status endpoint needs from the receiver."""

    @property
    def ready(self) -> bool:
        ...

    def metrics(self) -> dict:
        ...


def create_app(source: StatusSource) -> FastAPI:
    """
    Build the status application for one receiver.

    Args:
        source: Receiver exposing readiness and metrics
    """
    app = FastAPI(
        title="framecast receiver",
        description="Status endpoint for the framecast frame receiver",
        version=__version__,
    )
    started_at = time.time()

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information."""
        return JSONResponse({
            "service": "framecast-receiver",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
            },
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe."""
        return JSONResponse({
            "status": "alive",
            "uptime_seconds": round(time.time() - started_at, 1),
        })

    @app.get("/ready")
    async def ready() -> JSONResponse:
        """Readiness probe."""
        if source.ready:
            return JSONResponse({"ready": True})
        return JSONResponse({"ready": False}, status_code=503)

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Acceptor and display metrics."""
        return JSONResponse(source.metrics())

    return app


class StatusServer:
    """Runs the status app with uvicorn on a daemon thread."""

    def __init__(self, source: StatusSource, host: str = "127.0.0.1", port: int = 8002) -> None:
        self.host = host
        self.port = port
        self._server = uvicorn.Server(
            uvicorn.Config(
                create_app(source),
                host=host,
                port=port,
                log_level="warning",
            )
        )
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._server.run,
            name="framecast-status",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Status endpoint on http://{self.host}:{self.port}")

    def stop(self, timeout: float = 5.0) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
