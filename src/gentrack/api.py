"""
Main entry point for callers.
Exposes a ``track`` function building a tracker wrapped in a ``TrackerScope``.
"""

from __future__ import annotations

import typing as t

import httpx

from gentrack.backends import get_backend_class
from gentrack.config import TrackerConfig
from gentrack.context import TrackerScope
from gentrack.events import HistoryEvents
from gentrack.status import ItemKind
from gentrack.store import WorkItem, WorkItemStore
from gentrack.tracker import GenerationJobTracker


def track(
    container_id: str,
    kind: ItemKind | str = ItemKind.PROMPT,
    items: t.Iterable[WorkItem] = (),
    config: TrackerConfig | None = None,
    events: HistoryEvents | None = None,
    client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
    resume: bool = True,
) -> TrackerScope:
    """
    Build a tracker for one container and scope its polling lifetime.

    Parameters
    ----------
    container_id : str
        Project (or job container) the items belong to.
    kind : ItemKind | str, optional
        Kind of generation job; selects the backend adapter.
    items : typing.Iterable[WorkItem], optional
        Items already known when the owning view loads. Pending items are
        auto-selected.
    config : TrackerConfig | None, optional
        Settings. Read from ``GENTRACK_*`` variables when omitted.
    events : HistoryEvents | None, optional
        Shared history listener registry.
    client_factory : typing.Callable[[], httpx.AsyncClient] | None, optional
        Factory for backend HTTP clients.
    resume : bool, optional
        Poll items that are already queued or processing when the scope opens.

    Returns
    -------
    TrackerScope
        Context manager yielding the tracker and stopping its polling on exit.
    """
    config = config if config is not None else TrackerConfig.from_env()
    backend_cls = get_backend_class(kind)
    backend = backend_cls(
        base_url=config.base_url,
        api_token=config.api_token,
        client_factory=client_factory,
        timeout_seconds=config.request_timeout_seconds,
    )
    tracker = GenerationJobTracker(
        backend=backend,
        container_id=container_id,
        store=WorkItemStore(),
        events=events,
        poll_interval_seconds=config.poll_interval_seconds,
        max_poll_ticks=config.max_poll_ticks,
        max_poll_seconds=config.max_poll_seconds,
        history_notify=config.history_notify,
    )
    tracker.load_items(items)
    return TrackerScope(tracker=tracker, resume=resume)
