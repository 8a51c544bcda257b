"""
Scope binding a tracker's polling to the lifetime of its owning surface.
"""

from __future__ import annotations

import typing as t

import structlog

from gentrack.tracker import GenerationJobTracker

log = structlog.get_logger(__name__)


class TrackerScope:
    """
    Context manager releasing a tracker's polling timer on every exit path.

    Parameters
    ----------
    tracker : GenerationJobTracker
        Tracker owned by the scope.
    resume : bool, optional
        Start polling outstanding items when the scope is entered.
    """

    def __init__(self, *, tracker: GenerationJobTracker, resume: bool = False) -> None:
        self._tracker = tracker
        self._resume = resume
        self._entered = False

    @property
    def tracker(self) -> GenerationJobTracker:
        return self._tracker

    def __enter__(self) -> GenerationJobTracker:
        """
        Enter the synchronous scope.

        Returns
        -------
        GenerationJobTracker
            The scoped tracker.
        """
        self._entered = True
        if self._resume:
            self._tracker.resume_polling()
        return self._tracker

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        """
        Exit the synchronous scope and close the tracker.

        Parameters
        ----------
        exc_type : type[BaseException] | None
            Exception type, if any.
        exc_val : BaseException | None
            Exception value, if any.
        exc_tb : typing.Any
            Exception traceback, if any.
        """
        self._release(exc_type=exc_type)

    async def __aenter__(self) -> GenerationJobTracker:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        """
        Exit the async scope, stop polling and wait for in-flight ticks.

        Parameters
        ----------
        exc_type : type[BaseException] | None
            Exception type, if any.
        exc_val : BaseException | None
            Exception value, if any.
        exc_tb : typing.Any
            Exception traceback, if any.
        """
        self._release(exc_type=exc_type)
        await self._tracker.aclose()

    def _release(self, *, exc_type: type[BaseException] | None) -> None:
        if not self._entered:
            return
        self._entered = False
        self._tracker.close()
        log.debug(
            event="Tracker scope closed",
            container_id=self._tracker.container_id,
            error=exc_type.__name__ if exc_type is not None else None,
        )
