"""
Socket.IO namespaces: viewers on "/", dashboards on "/view-data"
"""
import logging
from typing import Dict, Tuple

import socketio

from .broadcaster import DASHBOARD_NAMESPACE, VIEWER_NAMESPACE, Broadcaster
from .state import PresenceTracker
from .utils import handshake_identifier, handshake_referrer

logger = logging.getLogger("livecount")


class ViewerNamespace(socketio.AsyncNamespace):
    """Counts every connection tagged with ?id=<identifier>"""

    def __init__(self, tracker: PresenceTracker, namespace: str = VIEWER_NAMESPACE):
        super().__init__(namespace)
        self.tracker = tracker
        # sid -> (identifier, referrer) registered at connect
        self.connections: Dict[str, Tuple[str, str]] = {}

    async def on_connect(self, sid, environ, auth=None):
        identifier = handshake_identifier(environ)
        if not identifier:
            logger.warning("Client connected without an ID: %s", sid)
            raise ConnectionRefusedError("missing id")

        referrer = handshake_referrer(environ)
        self.connections[sid] = (identifier, referrer)
        self.tracker.on_connect(identifier, referrer)
        logger.info("👀 Client connected to stream %s from referrer %s", identifier, referrer)

    async def on_disconnect(self, sid, reason=None):
        registered = self.connections.pop(sid, None)
        if registered is None:
            return

        identifier, referrer = registered
        if self.tracker.on_disconnect(identifier, referrer) is not None:
            logger.info("👋 Client disconnected from stream %s (Referrer: %s)", identifier, referrer)


class DashboardNamespace(socketio.AsyncNamespace):
    """Live view of every identifier; gets the full state on connect"""

    def __init__(self, tracker: PresenceTracker, broadcaster: Broadcaster, namespace: str = DASHBOARD_NAMESPACE):
        super().__init__(namespace)
        self.tracker = tracker
        self.broadcaster = broadcaster

    async def on_connect(self, sid, environ, auth=None):
        logger.info("📊 Real-time data viewer connected: %s", sid)
        # scheduled, so it goes out after the connect acknowledgement
        self.broadcaster.send_snapshot(sid, self.tracker.snapshot())

    async def on_disconnect(self, sid, reason=None):
        logger.info("📊 Real-time data viewer disconnected: %s", sid)


def create_socketio_server(tracker: PresenceTracker, cors_allowed_origins="*") -> Tuple[socketio.AsyncServer, Broadcaster]:
    """Build the Socket.IO server and subscribe its broadcaster to the tracker"""
    sio = socketio.AsyncServer(
        async_mode="aiohttp",
        cors_allowed_origins=cors_allowed_origins,
        logger=False,
        engineio_logger=False,
    )
    broadcaster = Broadcaster(sio)
    tracker.subscribe(broadcaster)

    sio.register_namespace(ViewerNamespace(tracker))
    sio.register_namespace(DashboardNamespace(tracker, broadcaster))
    return sio, broadcaster
