"""
FastAPI application exposing relay status over HTTP.
"""

import html
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from ..core import StatusReporter
from ..core.types import SERVER_VERSION

logger = logging.getLogger(__name__)


class StatusResponse(BaseModel):
    """Response model for the status endpoint."""

    status: str
    version: str
    streamerCount: int
    listenerCount: int
    uptimeSeconds: float
    natEnabled: bool
    publicAddress: Optional[str] = None
    localAddress: str
    port: int


STATUS_PAGE = """<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>SyncMusic Relay</title></head>
  <body>
    <h1>&#127925; SyncMusic Relay</h1>
    <p>Status: running</p>
    <p>Active streamers: {streamers}</p>
    <p>Active listeners: {listeners}</p>
    <p>Uptime: {uptime:.0f}s</p>
    <p>Address: {address}</p>
    <p>Port mapping: {mapping}</p>
  </body>
</html>
"""


def create_app(status_reporter: StatusReporter) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        status_reporter: Source of the snapshots every endpoint renders

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="SyncMusic Relay",
        description="Status of the SyncMusic audio relay",
        version=SERVER_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def index():
        """Human-readable status page."""
        snapshot = status_reporter.snapshot()
        address = snapshot.public_address or snapshot.local_address
        return STATUS_PAGE.format(
            streamers=snapshot.streamer_count,
            listeners=snapshot.listener_count,
            uptime=snapshot.uptime_seconds,
            address=html.escape(f"{address}:{snapshot.port}"),
            mapping="active" if snapshot.nat_enabled else "inactive",
        )

    @app.get("/status", response_model=StatusResponse)
    async def status():
        """Machine-readable status snapshot."""
        snapshot = status_reporter.snapshot()
        return StatusResponse(status="running", version=SERVER_VERSION, **snapshot.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
