"""
Tests for the track function in gentrack.api.
"""

import asyncio

import pytest

from gentrack.api import track
from gentrack.backends.reference_image import ReferenceImageBackend
from gentrack.config import TrackerConfig
from gentrack.context import TrackerScope
from gentrack.events import HistoryChanged, HistoryEvents
from gentrack.status import HistoryNotify, ItemKind, ItemStatus
from gentrack.store import WorkItem
from tests.mocks.backend import BASE_URL, FakeGenerationAPI


def test_track_builds_backend_for_kind() -> None:
    """Test that track selects the adapter serving the requested kind."""
    config = TrackerConfig(
        base_url=BASE_URL,
        api_token="token",
        poll_interval_seconds=2.5,
        max_poll_ticks=10,
        max_poll_seconds=None,
        history_notify=HistoryNotify.EVERY_PASS,
    )

    scope = track(container_id="proj-1", kind="reference_image", config=config)

    assert isinstance(scope, TrackerScope)
    tracker = scope.tracker
    assert isinstance(tracker.backend, ReferenceImageBackend)
    assert tracker.backend.base_url == BASE_URL
    assert tracker.backend.build_headers()["Authorization"] == "Bearer token"
    assert tracker.container_id == "proj-1"
    assert tracker._poller.interval_seconds == 2.5
    assert tracker._poller._max_ticks == 10
    assert tracker._poller._max_duration_seconds is None
    assert tracker._reconciler._history_notify is HistoryNotify.EVERY_PASS


def test_track_reads_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that track falls back to GENTRACK_* variables."""
    monkeypatch.setenv("GENTRACK_BASE_URL", "http://env.test/api")

    scope = track(container_id="proj-1")

    assert scope.tracker.backend.base_url == "http://env.test/api"
    assert scope.tracker.backend.kind is ItemKind.PROMPT


def test_track_loads_and_selects_pending_items() -> None:
    """Test that initial items are registered and pending ones selected."""
    scope = track(
        container_id="proj-1",
        items=[
            WorkItem(id="p1"),
            WorkItem(id="p2", status=ItemStatus.QUEUED, remote_task_id="t2"),
        ],
        config=TrackerConfig(base_url=BASE_URL),
    )

    assert [item.id for item in scope.tracker.items] == ["p1", "p2"]
    assert scope.tracker.selected_ids == {"p1"}


def test_track_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError):
        track(container_id="proj-1", kind="video", config=TrackerConfig())


@pytest.mark.asyncio
async def test_track_resumes_and_notifies_shared_events() -> None:
    """Test the full flow: resume on enter, complete, notify, release on exit."""
    api = FakeGenerationAPI(default_status="completed")
    events = HistoryEvents()
    seen: list[HistoryChanged] = []
    events.subscribe(seen.append)

    scope = track(
        container_id="proj-1",
        items=[WorkItem(id="p1", status=ItemStatus.PROCESSING, remote_task_id="t1")],
        config=TrackerConfig(base_url=BASE_URL, poll_interval_seconds=0.01),
        events=events,
        client_factory=api.client_factory,
    )

    async with scope as tracker:
        session = tracker.session
        assert session is not None
        await asyncio.wait_for(session.wait(), timeout=2.0)

    assert tracker.item("p1").status is ItemStatus.COMPLETED
    assert seen == [HistoryChanged(item_ids=("p1",))]
    assert api.status_calls[0] == {"prompt_ids": ["p1"]}
