"""
Socket.IO broadcasting of presence changes
Deltas go to the viewer namespace, full snapshots to the dashboard namespace
"""
import asyncio
import logging
from typing import Dict, Set

import socketio

from .state import ViewerState

logger = logging.getLogger("livecount")

VIEWER_NAMESPACE = "/"
DASHBOARD_NAMESPACE = "/view-data"

UPDATE_VIEW_COUNT = "updateViewCount"
VIEW_DATA = "viewData"


def delta_payload(identifier: str, state: ViewerState) -> dict:
    return {
        "id": identifier,
        "viewCount": state.count,
        "referrers": list(state.referrers),
    }


def snapshot_payload(snapshot: Dict[str, ViewerState]) -> dict:
    return {
        "viewCounts": {identifier: state.count for identifier, state in snapshot.items()},
        "clientInfo": {identifier: list(state.referrers) for identifier, state in snapshot.items()},
    }


class Broadcaster:
    """Tracker observer that fans updates out over Socket.IO.

    publish_* are called synchronously by the tracker, so they only schedule
    the emit on the running loop and return. Delivery errors are logged in
    the task callback and never reach the tracker.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio
        self._pending: Set[asyncio.Future] = set()

    def publish_delta(self, identifier: str, state: ViewerState) -> None:
        self._spawn(UPDATE_VIEW_COUNT, delta_payload(identifier, state), VIEWER_NAMESPACE)

    def publish_snapshot(self, snapshot: Dict[str, ViewerState]) -> None:
        self._spawn(VIEW_DATA, snapshot_payload(snapshot), DASHBOARD_NAMESPACE)

    def send_snapshot(self, sid: str, snapshot: Dict[str, ViewerState]) -> None:
        """Push the current state to a single dashboard"""
        self._spawn(VIEW_DATA, snapshot_payload(snapshot), DASHBOARD_NAMESPACE, to=sid)

    def _spawn(self, event: str, data: dict, namespace: str, **kwargs) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping %s broadcast", event)
            return

        task = loop.create_task(self.sio.emit(event, data, namespace=namespace, **kwargs))
        self._pending.add(task)
        task.add_done_callback(self._on_sent)

    def _on_sent(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Broadcast failed: %s", exc)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every scheduled broadcast to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
