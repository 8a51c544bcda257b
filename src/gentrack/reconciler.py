"""
Merge batch-status snapshots into the work item store.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass, field

import structlog

from gentrack.events import HistoryChanged, HistoryEvents
from gentrack.models import BatchStatusResult
from gentrack.status import HistoryNotify, ItemStatus, parse_remote_status
from gentrack.store import WorkItemStore

log = structlog.get_logger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass."""

    updated: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unknown_refs: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)


class Reconciler:
    """
    Apply remote status results to local work items.

    Merging is idempotent: terminal states are sticky and non-terminal updates
    only overwrite the status field, so applying the same results twice yields
    the same store as applying them once.

    Parameters
    ----------
    store : WorkItemStore
        Store holding the tracked items.
    events : HistoryEvents
        Registry notified when items complete.
    history_notify : HistoryNotify, optional
        Emit on the first pass with a completion in each polling session, or
        on every such pass.
    """

    def __init__(
        self,
        *,
        store: WorkItemStore,
        events: HistoryEvents,
        history_notify: HistoryNotify = HistoryNotify.ONCE_PER_SESSION,
    ) -> None:
        self._store = store
        self._events = events
        self._history_notify = HistoryNotify(history_notify)
        self._notified = False

    def begin_session(self) -> None:
        """Re-arm the history notification for a new polling session."""
        self._notified = False

    def reconcile(self, results: t.Iterable[BatchStatusResult]) -> ReconcileReport:
        """
        Merge one status response into the store.

        Parameters
        ----------
        results : typing.Iterable[BatchStatusResult]
            Status entries from a batch-status call.

        Returns
        -------
        ReconcileReport
            Items updated, completed and failed, and refs that were skipped.
        """
        report = ReconcileReport()
        for result in results:
            item = self._store.resolve(result.task_ref)
            if item is None:
                log.debug(event="Status for unknown task ref", task_ref=result.task_ref)
                report.unknown_refs.append(result.task_ref)
                continue

            status = parse_remote_status(result.status)
            if status is None:
                log.warning(
                    event="Ignoring unrecognized remote status",
                    item_id=item.id,
                    task_ref=result.task_ref,
                    status=result.status,
                )
                report.ignored.append(item.id)
                continue

            changed = self._store.apply_remote(
                item,
                status=status,
                error_message=result.error_message,
                artifacts=result.images,
            )
            if not changed:
                continue
            report.updated.append(item.id)
            if status is ItemStatus.COMPLETED:
                report.completed.append(item.id)
            elif status is ItemStatus.FAILED:
                report.failed.append(item.id)
                log.info(
                    event="Work item failed",
                    item_id=item.id,
                    task_id=item.remote_task_id,
                    error=item.error_message,
                )

        if report.completed and not (
            self._notified and self._history_notify is HistoryNotify.ONCE_PER_SESSION
        ):
            self._notified = True
            self._events.emit(HistoryChanged(item_ids=tuple(report.completed)))

        log.debug(
            event="Reconciled status results",
            updated_count=len(report.updated),
            completed_count=len(report.completed),
            failed_count=len(report.failed),
            unknown_count=len(report.unknown_refs),
            ignored_count=len(report.ignored),
        )
        return report
