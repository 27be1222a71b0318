import pytest

from livecount.config import Settings
from livecount.state import PresenceTracker
from main import create_app


class RecordingObserver:
    """Collects tracker notifications in the order they arrive"""

    def __init__(self):
        self.events = []

    def publish_delta(self, identifier, state):
        self.events.append(("delta", identifier, state))

    def publish_snapshot(self, snapshot):
        self.events.append(("snapshot", snapshot))

    @property
    def deltas(self):
        return [e[1:] for e in self.events if e[0] == "delta"]

    @property
    def snapshots(self):
        return [e[1] for e in self.events if e[0] == "snapshot"]


class FakeSocketIO:
    """Stands in for socketio.AsyncServer.emit"""

    def __init__(self, fail=False):
        self.emitted = []
        self.fail = fail

    async def emit(self, event, data=None, **kwargs):
        if self.fail:
            raise ConnectionResetError("transport closed")
        self.emitted.append((event, data, kwargs))


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def tracker(observer):
    t = PresenceTracker(observers=[observer])
    yield t
    t.close()


@pytest.fixture
def fake_sio():
    return FakeSocketIO()


@pytest.fixture
def settings():
    # nothing listens on port 1, so /raw fails unless a test overrides the URL
    return Settings(upstream_url="http://127.0.0.1:1/path.json", upstream_timeout=2)


@pytest.fixture
async def client(aiohttp_client, settings):
    return await aiohttp_client(create_app(settings))
