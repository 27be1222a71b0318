"""
HTTP API handlers for livecount
View count lookup, upstream JSON proxy and health check
"""
import asyncio
import logging

import aiohttp
from aiohttp import web

from .broadcaster import Broadcaster
from .config import Settings
from .state import PresenceTracker

logger = logging.getLogger("livecount")

TRACKER = web.AppKey("tracker", PresenceTracker)
BROADCASTER = web.AppKey("broadcaster", Broadcaster)
SETTINGS = web.AppKey("settings", Settings)
HTTP_SESSION = web.AppKey("http_session", aiohttp.ClientSession)

UPSTREAM_ERROR_TEXT = "Error fetching data from external source"

# ============================================================
# VIEW COUNTS
# ============================================================

async def api_view_count(request: web.Request) -> web.Response:
    """Current viewer count for one identifier, 0 when untracked"""
    identifier = request.match_info["id"]
    tracker = request.app[TRACKER]
    return web.json_response({"viewCount": tracker.count(identifier)})

# ============================================================
# UPSTREAM PROXY
# ============================================================

async def api_raw(request: web.Request) -> web.Response:
    """Relay the configured upstream JSON document"""
    settings = request.app[SETTINGS]
    session = request.app[HTTP_SESSION]

    try:
        async with session.get(settings.upstream_url) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error("Error fetching data from external API: %r", e)
        return web.Response(status=500, text=UPSTREAM_ERROR_TEXT)

    return web.json_response(data)

# ============================================================
# HEALTH
# ============================================================

async def healthz(request: web.Request) -> web.Response:
    tracker = request.app[TRACKER]
    return web.json_response({
        "ok": True,
        "identifiers": len(tracker),
        "viewers": tracker.total_viewers,
    })
