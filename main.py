#!/usr/bin/env python3
"""
livecount - Entry Point
Live viewer counts over Socket.IO + view count API + upstream proxy
"""
import logging
import socket
from typing import Optional

import aiohttp
from aiohttp import web

from livecount.api import (
    BROADCASTER, HTTP_SESSION, SETTINGS, TRACKER,
    api_raw, api_view_count, healthz
)
from livecount.config import Settings
from livecount.realtime import create_socketio_server
from livecount.state import PresenceTracker

logger = logging.getLogger("livecount")

CORS_METHODS = "GET, POST, OPTIONS"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _allowed_origin(settings: Settings, origin: Optional[str]) -> Optional[str]:
    if settings.allow_any_origin:
        return "*"
    if origin and origin in settings.cors_origins:
        return origin
    return None


@web.middleware
async def cors_middleware(request, handler):
    """CORS headers for the HTTP API; Socket.IO handles its own"""
    if request.path.startswith("/socket.io"):
        return await handler(request)

    settings = request.app[SETTINGS]
    allowed = _allowed_origin(settings, request.headers.get("Origin"))

    # preflight only for paths that have a route; unknown paths still 404
    is_preflight = (
        request.method == "OPTIONS"
        and isinstance(request.match_info.http_exception, web.HTTPMethodNotAllowed)
    )

    try:
        if is_preflight:
            response = web.Response(status=204)
        else:
            response = await handler(request)
    except web.HTTPException as exc:
        _add_cors_headers(exc.headers, allowed)
        raise

    _add_cors_headers(response.headers, allowed)
    return response


def _add_cors_headers(headers, allowed: Optional[str]) -> None:
    if not allowed:
        return
    headers["Access-Control-Allow-Origin"] = allowed
    headers["Access-Control-Allow-Methods"] = CORS_METHODS
    headers["Access-Control-Allow-Headers"] = "Content-Type"
    if allowed != "*":
        headers["Vary"] = "Origin"


async def on_startup(app: web.Application) -> None:
    settings = app[SETTINGS]
    app[HTTP_SESSION] = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.upstream_timeout)
    )


async def on_cleanup(app: web.Application) -> None:
    tracker = app[TRACKER]
    logger.info(
        "🧹 Shutting down with %d viewers on %d streams",
        tracker.total_viewers, len(tracker)
    )
    await app[BROADCASTER].flush()
    await app[HTTP_SESSION].close()
    tracker.close()


def create_app(settings: Optional[Settings] = None) -> web.Application:
    """Create and configure the aiohttp application"""
    settings = settings or Settings.from_env()
    app = web.Application(middlewares=[cors_middleware])

    tracker = PresenceTracker()
    sio, broadcaster = create_socketio_server(tracker, settings.socketio_origins)

    app[SETTINGS] = settings
    app[TRACKER] = tracker
    app[BROADCASTER] = broadcaster

    # API routes
    app.router.add_get("/api/view-count/{id}", api_view_count)
    app.router.add_get("/raw", api_raw)
    app.router.add_get("/healthz", healthz)

    # Socket.IO on /socket.io/
    sio.attach(app)

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    logger.info("📡 livecount server ready • Socket.IO enabled")
    return app


def get_local_ip():
    """Get local network IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "localhost"


def main():
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    app = create_app(settings)
    local_ip = get_local_ip()

    logger.info(f"🚀 Starting server on {settings.host}:{settings.port}")
    logger.info(f"💡 Access at: http://{local_ip}:{settings.port}")

    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
