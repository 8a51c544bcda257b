"""
Tracker error taxonomy.

A remote ``failed`` status is not an exception: it is carried on the work item
itself so siblings in the same batch keep going.
"""

from __future__ import annotations

import typing as t


class TrackerError(RuntimeError):
    """Base class for gentrack errors."""


class SubmissionError(TrackerError):
    """
    A batch submission failed before any task id was issued.

    Notes
    -----
    No work item is mutated when this is raised; the same selection can be
    submitted again.
    """

    def __init__(self, message: str, *, item_ids: t.Sequence[str] = ()) -> None:
        super().__init__(message)
        self.item_ids = tuple(item_ids)


class RetryError(TrackerError):
    """Retry was requested for items that are not in the failed state."""

    def __init__(self, message: str, *, item_ids: t.Sequence[str] = ()) -> None:
        super().__init__(message)
        self.item_ids = tuple(item_ids)


class PollTransportError(TrackerError):
    """A single polling tick could not reach the batch-status endpoint."""


class UnknownItemError(TrackerError, KeyError):
    """No work item is registered under the requested id."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Unknown work item: {item_id}")
        self.item_id = item_id

    def __str__(self) -> str:
        return t.cast(str, self.args[0])


class BackendRequestError(TrackerError):
    """
    A backend call failed at the transport, HTTP or payload level.

    Parameters
    ----------
    message : str
        Error summary.
    stage : str
        Backend operation that failed (``"submit"`` or ``"status"``).
    status_code : int | None, optional
        HTTP status code when the backend answered.
    """

    def __init__(self, message: str, *, stage: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.status_code = status_code
