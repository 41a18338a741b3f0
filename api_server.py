#!/usr/bin/env python3
"""
PermitInfo Plate Manager API Server

Drives the PermitInfo portal on behalf of the configured user. Every
request gets its own browser session, torn down when the request finishes.

Usage:
    python api_server.py
    python api_server.py --port 3000 --debug --visible

Endpoints:
    GET  /                        - Index page
    GET  /health                  - Health check
    GET  /events/{session_id}     - Progress stream (Server-Sent Events)
    GET  /dashboard?session_id=   - Scrape permits and plates (HTML)
    POST /update-plate?session_id= - Swap the active plate on a permit
    POST /login                   - HTTP-only login probe
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from playwright.async_api import Error as PlaywrightError

from dashboard_scraper import load_active_permits
from html_views import render_error, render_index, render_permits
from models import PlateUpdateRequest, PlateUpdateResponse
from permit_session import PermitSession
from plate_update import update_plate
from portal_config import Config
from portal_errors import PortalError, UpdateError
from portal_probe import probe_login
from progress_channel import ChannelRegistry, ProgressChannel, ProgressReporter

POLL_SECONDS = 1.0


def new_session_id() -> str:
    return str(uuid.uuid4())[:8]


async def stream_events(request: Request, registry: ChannelRegistry, session_id: str, channel: ProgressChannel):
    """Yield SSE chunks until the consumer disconnects or the session closes the channel."""
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(channel.next_event(), timeout=POLL_SECONDS)
            except asyncio.TimeoutError:
                continue
            if event is None:
                break
            yield event.to_sse()
    finally:
        registry.remove(session_id, channel)


def create_app(config: Optional[Config] = None, session_factory=PermitSession) -> FastAPI:
    """Build the FastAPI app around an explicit config and session factory."""
    config = config or Config.from_env()
    registry = ChannelRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown events."""
        print("🚀 PermitInfo Plate Manager starting...")
        print(f"📍 Portal: {config.base_url}")
        if not config.has_credentials:
            print("⚠ PORTAL_USERNAME / PORTAL_PASSWORD are not set")
        if config.debug:
            print("🐛 Debug mode: diagnostic screenshots enabled")
        yield
        print("👋 Server shutting down...")

    app = FastAPI(
        title="PermitInfo Plate Manager API",
        description="Scrape permits and swap vehicle plates on the PermitInfo portal",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry

    def reporter_for(session_id: str) -> ProgressReporter:
        return ProgressReporter(registry, session_id, debug=config.debug)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        """Index page with the live progress panel."""
        return HTMLResponse(render_index(config.base_url))

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "credentials": "configured" if config.has_credentials else "missing",
            "streams": len(registry),
        }

    @app.get("/events/{session_id}")
    async def events(session_id: str, request: Request):
        """Server-Sent Events endpoint for streaming progress."""
        channel = registry.open(session_id)
        return StreamingResponse(
            stream_events(request, registry, session_id, channel),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    @app.get("/dashboard", response_class=HTMLResponse)
    async def dashboard(session_id: Optional[str] = None):
        """Log in, scrape the dashboard and list active permits with their plates."""
        session_id = session_id or new_session_id()
        reporter = reporter_for(session_id)
        snapshot = None
        try:
            async with session_factory(config, reporter) as session:
                try:
                    await session.authenticate()
                    permits = await load_active_permits(session)
                except (PortalError, PlaywrightError) as e:
                    reporter.log(f"✗ Dashboard scrape failed: {e}")
                    snapshot = await reporter.snapshot(session.page, "Dashboard scrape failed")
                    raise
        except (PortalError, PlaywrightError) as e:
            return HTMLResponse(render_error(str(e), snapshot), status_code=502)

        return HTMLResponse(render_permits(permits))

    @app.post("/update-plate")
    async def update_plate_route(body: PlateUpdateRequest, session_id: Optional[str] = None):
        """Deactivate the current plate, activate another and confirm."""
        session_id = session_id or new_session_id()
        reporter = reporter_for(session_id)
        try:
            async with session_factory(config, reporter) as session:
                redirect_url = await update_plate(
                    session,
                    body.detail_page_url,
                    body.current_plate,
                    body.plate_to_activate,
                )
        except UpdateError as e:
            return JSONResponse(content=PlateUpdateResponse(success=False, message=str(e)).to_json())
        except (PortalError, PlaywrightError) as e:
            reporter.log(f"✗ Session failed: {e}")
            return JSONResponse(content=PlateUpdateResponse(success=False, message=str(e)).to_json())

        return JSONResponse(content=PlateUpdateResponse(success=True, redirect_url=redirect_url).to_json())

    @app.post("/login")
    async def login():
        """Post the login form over plain HTTP and report the portal's answer."""
        try:
            result = await probe_login(config)
        except (PortalError, httpx.HTTPError) as e:
            return JSONResponse(status_code=502, content={"success": False, "message": str(e)})
        return {"success": True, **result.model_dump()}

    return app


app = create_app()


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="PermitInfo Plate Manager API")
    parser.add_argument("--host", default=None, help="Listen address")
    parser.add_argument("--port", type=int, default=None, help="Listen port")
    parser.add_argument("--debug", action="store_true", help="Capture diagnostic screenshots")
    parser.add_argument("--visible", action="store_true", help="Run browser in visible mode")
    args = parser.parse_args()

    config = Config.from_env()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.debug:
        overrides["debug"] = True
    if args.visible:
        overrides["headless"] = False
    config = config.model_copy(update=overrides)

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level="info")
