"""
In-memory presence state: live viewer counts and referrers per identifier
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

logger = logging.getLogger("livecount")

UNKNOWN_REFERRER = "Unknown"


class MissingIdentifierError(ValueError):
    """Raised when a viewer connects without an identifier"""


@dataclass
class ViewerState:
    count: int = 0
    referrers: List[str] = field(default_factory=list)

    def copy(self) -> "ViewerState":
        return ViewerState(count=self.count, referrers=list(self.referrers))

    @property
    def is_empty(self) -> bool:
        return self.count == 0 and not self.referrers


class PresenceObserver(Protocol):
    """Receives tracker mutations, delta first, then the full snapshot"""

    def publish_delta(self, identifier: str, state: ViewerState) -> None:
        ...

    def publish_snapshot(self, snapshot: Dict[str, ViewerState]) -> None:
        ...


class PresenceTracker:
    """Owns the identifier -> ViewerState map.

    Every connect/disconnect that changes the map notifies the subscribed
    observers synchronously, after the lock is released. Observers get
    copies, never the live entries.
    """

    def __init__(self, observers: Optional[Iterable[PresenceObserver]] = None):
        self._viewers: Dict[str, ViewerState] = {}
        self._observers: List[PresenceObserver] = list(observers or [])
        self._lock = threading.Lock()

    # ------------------------------------------------------------
    # observers
    # ------------------------------------------------------------

    def subscribe(self, observer: PresenceObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: PresenceObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, identifier: str, state: ViewerState, snapshot: Dict[str, ViewerState]) -> None:
        for observer in list(self._observers):
            observer.publish_delta(identifier, state)
            observer.publish_snapshot(snapshot)

    # ------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------

    def on_connect(self, identifier: str, referrer: str = UNKNOWN_REFERRER) -> ViewerState:
        """Register one viewer connection for identifier"""
        if not identifier:
            raise MissingIdentifierError("viewer connected without an identifier")

        with self._lock:
            state = self._viewers.get(identifier)
            if state is None:
                state = self._viewers[identifier] = ViewerState()
            state.count += 1
            state.referrers.append(referrer)
            updated = state.copy()
            snapshot = self._snapshot_locked()

        self._notify(identifier, updated, snapshot)
        return updated

    def on_disconnect(self, identifier: str, referrer: str = UNKNOWN_REFERRER) -> Optional[ViewerState]:
        """
        Unregister one viewer connection for identifier

        Returns None for an identifier that is not tracked. An entry that
        empties out is deleted and reported as a zero state.
        """
        with self._lock:
            state = self._viewers.get(identifier)
            if state is None:
                logger.warning("Disconnected client with unknown ID: %s", identifier)
                return None

            state.count = max(state.count - 1, 0)
            # only the first occurrence, repeated referrers belong to other connections
            if referrer in state.referrers:
                state.referrers.remove(referrer)

            if state.is_empty:
                del self._viewers[identifier]
            updated = state.copy()
            snapshot = self._snapshot_locked()

        self._notify(identifier, updated, snapshot)
        return updated

    def close(self) -> None:
        """Drop all state and observers"""
        with self._lock:
            self._viewers.clear()
        self._observers.clear()

    # ------------------------------------------------------------
    # reads
    # ------------------------------------------------------------

    def _snapshot_locked(self) -> Dict[str, ViewerState]:
        return {identifier: state.copy() for identifier, state in self._viewers.items()}

    def snapshot(self) -> Dict[str, ViewerState]:
        with self._lock:
            return self._snapshot_locked()

    def count(self, identifier: str) -> int:
        with self._lock:
            state = self._viewers.get(identifier)
            return state.count if state else 0

    @property
    def total_viewers(self) -> int:
        with self._lock:
            return sum(state.count for state in self._viewers.values())

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._viewers

    def __len__(self) -> int:
        with self._lock:
            return len(self._viewers)
