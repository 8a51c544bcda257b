"""
One-way notifications emitted by the tracker.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass

import structlog

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HistoryChanged:
    """
    Signal that finished artifacts changed and read-only views should re-fetch.

    Parameters
    ----------
    item_ids : tuple[str, ...]
        Items that completed in the reconciliation pass.
    """

    item_ids: tuple[str, ...]


HistoryListener = t.Callable[[HistoryChanged], None]


class HistoryEvents:
    """
    Listener registry for ``HistoryChanged``.

    Listeners run synchronously on the event loop. A listener that raises is
    logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: list[HistoryListener] = []
        self.emitted = 0

    def subscribe(self, listener: HistoryListener) -> t.Callable[[], None]:
        """
        Register a listener.

        Parameters
        ----------
        listener : HistoryListener
            Callable receiving each ``HistoryChanged`` event.

        Returns
        -------
        typing.Callable[[], None]
            Function removing the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: HistoryChanged) -> None:
        self.emitted += 1
        log.debug(event="History changed", item_ids=list(event.item_ids))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as error:
                log.error(
                    event="History listener failed",
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(object=error),
                )
