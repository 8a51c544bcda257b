"""
In-memory work item store.

The store is mutated from the event loop thread only. The submitter and the
reconciler are its only writers and both move items forward, so no locking is
needed.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass, field

import structlog

from gentrack.exceptions import UnknownItemError
from gentrack.models import GeneratedArtifact, GenerationParams
from gentrack.status import ItemKind, ItemStatus

log = structlog.get_logger(__name__)

# Transitions reachable from a polling result. Submission and retry move
# items into QUEUED through ``mark_queued`` instead.
_POLL_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset(),
    ItemStatus.QUEUED: frozenset(
        {ItemStatus.QUEUED, ItemStatus.PROCESSING, ItemStatus.COMPLETED, ItemStatus.FAILED}
    ),
    ItemStatus.PROCESSING: frozenset(
        {ItemStatus.PROCESSING, ItemStatus.COMPLETED, ItemStatus.FAILED}
    ),
    ItemStatus.COMPLETED: frozenset(),
    ItemStatus.FAILED: frozenset(),
}

DEFAULT_FAILURE_MESSAGE = "generation failed"


@dataclass
class WorkItem:
    """
    One unit of requested generation tracked through its lifecycle.

    Parameters
    ----------
    id : str
        Caller-assigned stable identifier (prompt id, reference image id...).
    kind : ItemKind
        Source kind of the item.
    status : ItemStatus
        Current lifecycle status.
    remote_task_id : str | None
        Backend task id, set once the item leaves ``PENDING``.
    error_message : str | None
        Failure reason, only set while ``status`` is ``FAILED``.
    payload : dict[str, typing.Any]
        Source content for the backend (prompt text, image url...).
    artifacts : list[GeneratedArtifact]
        Generated outputs reported when the item completed.
    params : GenerationParams | None
        Parameters of the last submission.
    """

    id: str
    kind: ItemKind = ItemKind.PROMPT
    status: ItemStatus = ItemStatus.PENDING
    remote_task_id: str | None = None
    error_message: str | None = None
    payload: dict[str, t.Any] = field(default_factory=dict)
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    params: GenerationParams | None = None

    def __post_init__(self) -> None:
        self.kind = ItemKind(self.kind)
        self.status = ItemStatus(self.status)
        if self.status.is_outstanding and not self.remote_task_id:
            raise ValueError(f"Work item {self.id} is {self.status.value} without a remote task id")
        if self.status is not ItemStatus.FAILED:
            self.error_message = None


class WorkItemStore:
    """
    Ordered mapping of item id to ``WorkItem``.
    """

    def __init__(self, items: t.Iterable[WorkItem] = ()) -> None:
        self._items: dict[str, WorkItem] = {}
        self._by_task_id: dict[str, str] = {}
        for item in items:
            self.add(item)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> t.Iterator[WorkItem]:
        return iter(list(self._items.values()))

    def ids(self) -> list[str]:
        return list(self._items)

    def add(self, item: WorkItem) -> WorkItem:
        """
        Register a work item, replacing any item with the same id.

        Parameters
        ----------
        item : WorkItem
            Item to register.

        Returns
        -------
        WorkItem
            The registered item.
        """
        previous = self._items.get(item.id)
        if previous is not None and previous.remote_task_id:
            self._by_task_id.pop(previous.remote_task_id, None)
        self._items[item.id] = item
        if item.remote_task_id:
            self._by_task_id[item.remote_task_id] = item.id
        log.debug(event="Work item registered", item_id=item.id, status=item.status.value)
        return item

    def find(self, item_id: str) -> WorkItem | None:
        return self._items.get(item_id)

    def get(self, item_id: str) -> WorkItem:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownItemError(item_id)
        return item

    def remove(self, item_id: str) -> WorkItem:
        item = self.get(item_id)
        del self._items[item_id]
        if item.remote_task_id:
            self._by_task_id.pop(item.remote_task_id, None)
        log.debug(event="Work item removed", item_id=item_id)
        return item

    def resolve(self, task_ref: str) -> WorkItem | None:
        """
        Resolve a status result reference to a work item.

        Parameters
        ----------
        task_ref : str
            Remote task id, or item id for backends keyed by item.

        Returns
        -------
        WorkItem | None
            Matching item, or ``None`` when the reference is unknown.
        """
        item_id = self._by_task_id.get(task_ref)
        if item_id is not None:
            return self._items.get(item_id)
        return self._items.get(task_ref)

    def by_status(self, status: ItemStatus | str) -> list[WorkItem]:
        wanted = ItemStatus(status)
        return [item for item in self._items.values() if item.status is wanted]

    def outstanding(self) -> list[WorkItem]:
        return [item for item in self._items.values() if item.status.is_outstanding]

    def snapshot(self) -> dict[str, ItemStatus]:
        return {item_id: item.status for item_id, item in self._items.items()}

    def mark_queued(
        self,
        item_id: str,
        *,
        remote_task_id: str,
        params: GenerationParams | None,
    ) -> WorkItem:
        """
        Move a submitted item into ``QUEUED`` under a new remote task id.

        Parameters
        ----------
        item_id : str
            Item to queue.
        remote_task_id : str
            Task id issued by the backend.
        params : GenerationParams | None
            Parameters the item was submitted with.

        Returns
        -------
        WorkItem
            The updated item.
        """
        if not remote_task_id:
            raise ValueError(f"Cannot queue work item {item_id} without a remote task id")
        item = self.get(item_id)
        if item.status not in (ItemStatus.PENDING, ItemStatus.FAILED):
            raise ValueError(f"Cannot queue work item {item_id} from {item.status.value}")
        if item.remote_task_id:
            self._by_task_id.pop(item.remote_task_id, None)
        item.status = ItemStatus.QUEUED
        item.remote_task_id = remote_task_id
        item.error_message = None
        item.params = params
        self._by_task_id[remote_task_id] = item.id
        return item

    def apply_remote(
        self,
        item: WorkItem,
        *,
        status: ItemStatus,
        error_message: str | None = None,
        artifacts: t.Sequence[GeneratedArtifact] = (),
    ) -> bool:
        """
        Apply a polled status to an item if the transition is allowed.

        Parameters
        ----------
        item : WorkItem
            Item resolved from the status result.
        status : ItemStatus
            Parsed remote status.
        error_message : str | None, optional
            Failure reason reported by the backend.
        artifacts : typing.Sequence[GeneratedArtifact], optional
            Outputs reported with a completed status.

        Returns
        -------
        bool
            ``True`` when the item's status changed.
        """
        if status not in _POLL_TRANSITIONS[item.status]:
            if status is not item.status:
                log.debug(
                    event="Ignored status transition",
                    item_id=item.id,
                    current=item.status.value,
                    remote=status.value,
                )
            return False
        if status is item.status:
            return False
        item.status = status
        if status is ItemStatus.FAILED:
            item.error_message = error_message or DEFAULT_FAILURE_MESSAGE
        elif status is ItemStatus.COMPLETED:
            item.artifacts = list(artifacts)
        return True
