"""
Health and event HTTP server.

Serves liveness and readiness probes and an SSE stream of reconcile events.
"""

import logging
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse

from events import EventBus

logger = logging.getLogger(__name__)


def create_app(controller: Any, event_bus: Optional[EventBus] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        controller: Object with a ``running`` attribute, used for readiness
        event_bus: Source of reconcile events for ``/events``
    """
    app = FastAPI(
        title="Archer Service Controller",
        description="Keeps Kubernetes Services in sync with Archer endpoint services",
        version="1.0.0",
    )

    @app.get("/healthz")
    async def healthz():
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz():
        """Readiness probe, ready once the controller loop runs."""
        if controller is not None and controller.running:
            return {"status": "ready"}
        return JSONResponse(status_code=503, content={"status": "not ready"})

    @app.get("/events")
    async def events():
        """Stream reconcile events as Server-Sent Events."""
        if event_bus is None:
            return JSONResponse(
                status_code=503, content={"detail": "event streaming disabled"}
            )

        async def stream():
            async for event in event_bus.listen():
                yield event.to_sse()

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    return app


class HealthServer:
    """Runs the health app with uvicorn."""

    def __init__(
        self,
        controller: Any,
        event_bus: Optional[EventBus] = None,
        host: str = "0.0.0.0",
        port: int = 8081,
        log_level: str = "info",
    ):
        self.host = host
        self.port = port
        self.log_level = log_level
        self.app = create_app(controller, event_bus)
        self.server: Optional[uvicorn.Server] = None

    async def start(self) -> None:
        """Start the HTTP server."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level=self.log_level,
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting health server on {self.host}:{self.port}")
        await self.server.serve()

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        logger.info("Stopping health server")
        if self.server:
            self.server.should_exit = True
