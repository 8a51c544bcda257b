"""
Generation job tracker.

Ties the work item store, the batch submitter, the status poller and the
reconciler together behind the surface a UI drives: a selection, submit and
retry actions, and polling controls.
"""

from __future__ import annotations

import typing as t

import structlog

from gentrack.backends.base import BaseBackend
from gentrack.events import HistoryEvents, HistoryListener
from gentrack.exceptions import (
    BackendRequestError,
    PollTransportError,
    RetryError,
    SubmissionError,
)
from gentrack.models import BatchStatusResult, GenerationParams
from gentrack.poller import DEFAULT_POLL_INTERVAL_SECONDS, PollingSession, StatusPoller
from gentrack.reconciler import Reconciler
from gentrack.status import HistoryNotify, ItemStatus
from gentrack.store import WorkItem, WorkItemStore

log = structlog.get_logger(__name__)

_SUBMITTABLE = frozenset({ItemStatus.PENDING, ItemStatus.FAILED})


class GenerationJobTracker:
    """
    Track a set of work items through submission, polling and completion.

    Parameters
    ----------
    backend : BaseBackend
        Adapter for the kind of job tracked by this instance.
    container_id : str
        Project (or job container) the items belong to.
    store : WorkItemStore | None, optional
        Existing store to track. A new empty store is created by default.
    events : HistoryEvents | None, optional
        Registry notified when items complete.
    poll_interval_seconds : float, optional
        Delay between two batch-status calls.
    max_poll_ticks : int | None, optional
        Stop a polling session after this many ticks.
    max_poll_seconds : float | None, optional
        Stop a polling session after this many seconds.
    history_notify : HistoryNotify, optional
        When completions emit ``HistoryChanged``.
    """

    def __init__(
        self,
        *,
        backend: BaseBackend,
        container_id: str,
        store: WorkItemStore | None = None,
        events: HistoryEvents | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_ticks: int | None = None,
        max_poll_seconds: float | None = None,
        history_notify: HistoryNotify = HistoryNotify.ONCE_PER_SESSION,
    ) -> None:
        if not container_id:
            raise ValueError("container_id cannot be empty")
        self._backend = backend
        self._container_id = container_id
        self._store = store if store is not None else WorkItemStore()
        self._events = events if events is not None else HistoryEvents()
        self._reconciler = Reconciler(
            store=self._store,
            events=self._events,
            history_notify=history_notify,
        )
        self._poller = StatusPoller(
            fetch_status=self._fetch_status,
            on_results=self._reconciler.reconcile,
            is_outstanding=self._is_outstanding,
            interval_seconds=poll_interval_seconds,
            max_ticks=max_poll_ticks,
            max_duration_seconds=max_poll_seconds,
        )
        # Ordered set of the ids driving the next submission.
        self._selected: dict[str, None] = {}
        self._in_flight: set[str] = set()
        self._closed = False

        log.debug(
            event="Initialized tracker",
            backend=backend.name,
            container_id=container_id,
            poll_interval_seconds=poll_interval_seconds,
            max_poll_ticks=max_poll_ticks,
            max_poll_seconds=max_poll_seconds,
        )

    @property
    def container_id(self) -> str:
        return self._container_id

    @property
    def backend(self) -> BaseBackend:
        return self._backend

    @property
    def store(self) -> WorkItemStore:
        return self._store

    @property
    def items(self) -> list[WorkItem]:
        return list(self._store)

    @property
    def session(self) -> PollingSession | None:
        return self._poller.active_session

    @property
    def is_polling(self) -> bool:
        return self._poller.active_session is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Selection

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @selected_ids.setter
    def selected_ids(self, item_ids: t.Iterable[str]) -> None:
        selection = dict.fromkeys(item_ids)
        for item_id in selection:
            self._store.get(item_id)
        self._selected = selection

    def select(self, item_id: str) -> None:
        self._store.get(item_id)
        self._selected[item_id] = None

    def deselect(self, item_id: str) -> None:
        self._selected.pop(item_id, None)

    def toggle(self, item_id: str) -> bool:
        """Flip the selection of ``item_id`` and return whether it is now selected."""
        if item_id in self._selected:
            self.deselect(item_id)
            return False
        self.select(item_id)
        return True

    # Store views

    def item(self, item_id: str) -> WorkItem:
        return self._store.get(item_id)

    def items_by_status(self, status: ItemStatus | str) -> list[WorkItem]:
        return self._store.by_status(status)

    def load_items(self, items: t.Iterable[WorkItem], *, auto_select_pending: bool = True) -> None:
        """
        Register items discovered when the owning view loads.

        Parameters
        ----------
        items : typing.Iterable[WorkItem]
            Items fetched from the backend.
        auto_select_pending : bool, optional
            Select every item that was never submitted.
        """
        loaded = [self._store.add(item) for item in items]
        if auto_select_pending:
            for item in loaded:
                if item.status is ItemStatus.PENDING:
                    self._selected[item.id] = None
        log.info(
            event="Loaded work items",
            container_id=self._container_id,
            item_count=len(loaded),
            selected_count=len(self._selected),
            outstanding_count=len(self._store.outstanding()),
        )

    def add_item(self, item: WorkItem, *, select: bool = False) -> WorkItem:
        added = self._store.add(item)
        if select:
            self._selected[added.id] = None
        return added

    def delete_item(self, item_id: str) -> WorkItem:
        """Remove an item on explicit user request."""
        removed = self._store.remove(item_id)
        self._selected.pop(item_id, None)
        log.info(event="Deleted work item", item_id=item_id, status=removed.status.value)
        return removed

    def on_history_changed(self, listener: HistoryListener) -> t.Callable[[], None]:
        return self._events.subscribe(listener)

    # Submission

    async def submit(
        self,
        params: GenerationParams | None = None,
        *,
        item_ids: t.Iterable[str] | None = None,
    ) -> list[str]:
        """
        Submit the selected items for generation in one backend call.

        Parameters
        ----------
        params : GenerationParams | None, optional
            Generation parameters shared by the batch.
        item_ids : typing.Iterable[str] | None, optional
            Items to submit. Defaults to the current selection.

        Returns
        -------
        list[str]
            Task ids issued by the backend, in submission order.

        Raises
        ------
        SubmissionError
            If an item cannot be submitted or the backend call fails. No item
            is mutated and the selection is left unchanged.
        """
        ids = list(dict.fromkeys(self._selected if item_ids is None else item_ids))
        if not ids:
            raise SubmissionError("No work items selected for submission")

        items: list[WorkItem] = []
        for item_id in ids:
            item = self._store.find(item_id)
            if item is None:
                raise SubmissionError(f"Unknown work item: {item_id}", item_ids=ids)
            if item.status not in _SUBMITTABLE:
                raise SubmissionError(
                    f"Work item {item_id} is {item.status.value} and cannot be submitted",
                    item_ids=ids,
                )
            items.append(item)

        return await self._dispatch(
            items=items,
            params=params if params is not None else GenerationParams(),
            action="submit",
        )

    async def retry(
        self,
        item_ids: t.Iterable[str],
        params: GenerationParams | None = None,
    ) -> list[str]:
        """
        Requeue failed items under new remote task ids.

        Parameters
        ----------
        item_ids : typing.Iterable[str]
            Items to retry. Every item must currently be failed.
        params : GenerationParams | None, optional
            Parameters for the new submission. Defaults to the parameters the
            items were last submitted with.

        Returns
        -------
        list[str]
            New task ids issued by the backend.

        Raises
        ------
        RetryError
            If an id is unknown or an item is not failed. Nothing is mutated.
        SubmissionError
            If the backend call fails.
        """
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            raise RetryError("No work items given to retry")

        items: list[WorkItem] = []
        rejected: list[str] = []
        for item_id in ids:
            item = self._store.find(item_id)
            if item is None or item.status is not ItemStatus.FAILED:
                rejected.append(item_id)
                continue
            items.append(item)
        if rejected:
            raise RetryError(
                f"Only failed work items can be retried: {', '.join(rejected)}",
                item_ids=rejected,
            )

        if params is None:
            params = next((item.params for item in items if item.params is not None), None)
        return await self._dispatch(
            items=items,
            params=params if params is not None else GenerationParams(),
            action="retry",
        )

    async def _dispatch(
        self,
        *,
        items: list[WorkItem],
        params: GenerationParams,
        action: str,
    ) -> list[str]:
        item_ids = [item.id for item in items]
        if self._closed:
            raise SubmissionError("Tracker is closed", item_ids=item_ids)
        busy = [item_id for item_id in item_ids if item_id in self._in_flight]
        if busy:
            raise SubmissionError(
                f"Work item(s) already being submitted: {', '.join(busy)}",
                item_ids=item_ids,
            )
        wrong_kind = [item.id for item in items if item.kind is not self._backend.kind]
        if wrong_kind:
            raise SubmissionError(
                f"Work item(s) not handled by the {self._backend.name} backend: "
                f"{', '.join(wrong_kind)}",
                item_ids=item_ids,
            )

        log.info(
            event="Submitting work items",
            action=action,
            backend=self._backend.name,
            container_id=self._container_id,
            item_count=len(items),
        )
        self._in_flight.update(item_ids)
        try:
            response = await self._backend.submit_batch(
                container_id=self._container_id,
                items=items,
                params=params,
            )
            assignment = response.assign(item_ids=item_ids)
        except (BackendRequestError, ValueError) as error:
            log.error(
                event="Batch submission failed",
                action=action,
                backend=self._backend.name,
                container_id=self._container_id,
                item_count=len(items),
                error=str(object=error),
            )
            raise SubmissionError(
                f"Failed to {action} {len(items)} work item(s): {error}",
                item_ids=item_ids,
            ) from error
        finally:
            self._in_flight.difference_update(item_ids)

        queued: list[WorkItem] = []
        for item_id in item_ids:
            item = self._store.find(item_id)
            if item is None or item.status not in _SUBMITTABLE:
                log.warning(
                    event="Work item changed while submitting; not queued",
                    item_id=item_id,
                    status=item.status.value if item is not None else None,
                )
                continue
            queued.append(
                self._store.mark_queued(
                    item_id,
                    remote_task_id=assignment[item_id],
                    params=params,
                )
            )
            self._selected.pop(item_id, None)

        previous = self._poller.active_session
        carried = (
            [ref for ref in previous.task_refs if self._is_outstanding(ref)]
            if previous is not None
            else []
        )
        new_refs = [self._backend.watch_ref(item) for item in queued]
        self._start_session([*carried, *(ref for ref in new_refs if ref)])

        log.info(
            event="Work items queued",
            action=action,
            backend=self._backend.name,
            container_id=self._container_id,
            queued_count=len(queued),
            carried_ref_count=len(carried),
        )
        return [assignment[item_id] for item_id in item_ids]

    # Polling

    def start_polling(self, task_refs: t.Iterable[str]) -> PollingSession | None:
        """
        Start a polling session over ``task_refs``, replacing the current one.

        Parameters
        ----------
        task_refs : typing.Iterable[str]
            Refs in the backend's key strategy (item ids or remote task ids).

        Returns
        -------
        PollingSession | None
            The new session, or ``None`` when ``task_refs`` is empty.
        """
        return self._start_session(task_refs)

    def resume_polling(self) -> PollingSession | None:
        """Start polling every item still queued or processing, e.g. after a reload."""
        refs = [self._backend.watch_ref(item) for item in self._store.outstanding()]
        return self._start_session(ref for ref in refs if ref)

    def _start_session(self, task_refs: t.Iterable[str]) -> PollingSession | None:
        if self._closed:
            log.info(
                event="Tracker closed; not starting a polling session",
                container_id=self._container_id,
            )
            return None
        session = self._poller.start(task_refs)
        if session is not None:
            self._reconciler.begin_session()
        return session

    def stop_polling(self) -> None:
        self._poller.stop()

    def close(self) -> None:
        """
        Stop polling for good.

        Submissions still waiting on the backend queue their items when the
        response arrives but never start a new polling session.
        """
        if not self._closed:
            self._closed = True
            log.debug(event="Tracker closed", container_id=self._container_id)
        self._poller.stop()

    async def aclose(self) -> None:
        """Close the tracker and wait for in-flight ticks to settle."""
        self.close()
        await self._poller.aclose()

    def _is_outstanding(self, task_ref: str) -> bool:
        item = self._store.resolve(task_ref)
        return item is not None and item.status.is_outstanding

    async def _fetch_status(self, task_refs: tuple[str, ...]) -> list[BatchStatusResult]:
        try:
            response = await self._backend.batch_status(
                container_id=self._container_id,
                task_refs=task_refs,
            )
        except BackendRequestError as error:
            raise PollTransportError(str(object=error)) from error
        return response.results

