import logging

from livecount.broadcaster import (
    DASHBOARD_NAMESPACE,
    UPDATE_VIEW_COUNT,
    VIEW_DATA,
    VIEWER_NAMESPACE,
    Broadcaster,
    delta_payload,
    snapshot_payload,
)
from livecount.state import PresenceTracker, ViewerState


def test_payload_shapes():
    assert delta_payload("x", ViewerState(2, ["a", "b"])) == {
        "id": "x",
        "viewCount": 2,
        "referrers": ["a", "b"],
    }
    assert snapshot_payload({"A": ViewerState(2, ["a", "b"]), "B": ViewerState(1, ["c"])}) == {
        "viewCounts": {"A": 2, "B": 1},
        "clientInfo": {"A": ["a", "b"], "B": ["c"]},
    }
    assert snapshot_payload({}) == {"viewCounts": {}, "clientInfo": {}}


async def test_publish_delta_goes_to_viewer_namespace(fake_sio):
    broadcaster = Broadcaster(fake_sio)
    broadcaster.publish_delta("x", ViewerState(1, ["siteA"]))
    await broadcaster.flush()

    assert fake_sio.emitted == [
        (UPDATE_VIEW_COUNT, {"id": "x", "viewCount": 1, "referrers": ["siteA"]}, {"namespace": VIEWER_NAMESPACE}),
    ]


async def test_publish_snapshot_goes_to_dashboards(fake_sio):
    broadcaster = Broadcaster(fake_sio)
    broadcaster.publish_snapshot({"A": ViewerState(2, ["a", "b"])})
    await broadcaster.flush()

    assert fake_sio.emitted == [
        (VIEW_DATA, {"viewCounts": {"A": 2}, "clientInfo": {"A": ["a", "b"]}}, {"namespace": DASHBOARD_NAMESPACE}),
    ]


async def test_send_snapshot_targets_one_dashboard(fake_sio):
    broadcaster = Broadcaster(fake_sio)
    broadcaster.send_snapshot("dash-1", {"A": ViewerState(2, ["a", "b"]), "B": ViewerState(1, ["c"])})
    await broadcaster.flush()

    event, data, kwargs = fake_sio.emitted[0]
    assert event == VIEW_DATA
    assert data == {"viewCounts": {"A": 2, "B": 1}, "clientInfo": {"A": ["a", "b"], "B": ["c"]}}
    assert kwargs == {"namespace": DASHBOARD_NAMESPACE, "to": "dash-1"}


async def test_tracker_mutations_are_broadcast_in_order(fake_sio):
    broadcaster = Broadcaster(fake_sio)
    tracker = PresenceTracker(observers=[broadcaster])

    tracker.on_connect("x", "siteA")
    tracker.on_disconnect("x", "siteA")
    await broadcaster.flush()

    assert [(event, data) for event, data, _ in fake_sio.emitted] == [
        (UPDATE_VIEW_COUNT, {"id": "x", "viewCount": 1, "referrers": ["siteA"]}),
        (VIEW_DATA, {"viewCounts": {"x": 1}, "clientInfo": {"x": ["siteA"]}}),
        (UPDATE_VIEW_COUNT, {"id": "x", "viewCount": 0, "referrers": []}),
        (VIEW_DATA, {"viewCounts": {}, "clientInfo": {}}),
    ]


async def test_delivery_failures_do_not_reach_tracker(fake_sio, caplog):
    fake_sio.fail = True
    broadcaster = Broadcaster(fake_sio)
    tracker = PresenceTracker(observers=[broadcaster])

    with caplog.at_level(logging.WARNING, logger="livecount"):
        tracker.on_connect("x", "siteA")
        await broadcaster.flush()

    assert tracker.count("x") == 1
    assert broadcaster.pending == 0
    assert "Broadcast failed" in caplog.text


def test_publish_without_event_loop_is_dropped(fake_sio, caplog):
    broadcaster = Broadcaster(fake_sio)

    with caplog.at_level(logging.WARNING, logger="livecount"):
        broadcaster.publish_delta("x", ViewerState(1, ["siteA"]))

    assert broadcaster.pending == 0
    assert fake_sio.emitted == []
    assert "dropping updateViewCount" in caplog.text
