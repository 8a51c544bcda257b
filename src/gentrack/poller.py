"""
Wall-clock polling of the batch-status endpoint.

A ``StatusPoller`` owns at most one ``PollingSession`` at a time. Each session
runs a timer task that wakes every ``interval_seconds`` measured from the
session start and spawns the tick as its own task, so a slow round-trip never
pushes the next tick back. Ticks may overlap; the reconciler's idempotent
merge makes that safe.
"""

from __future__ import annotations

import asyncio
import typing as t
import uuid
from dataclasses import dataclass, field

import httpx
import structlog

from gentrack.exceptions import PollTransportError
from gentrack.models import BatchStatusResult

log = structlog.get_logger(__name__)

FetchStatus = t.Callable[[tuple[str, ...]], t.Awaitable[t.Sequence[BatchStatusResult]]]
OnResults = t.Callable[[t.Sequence[BatchStatusResult]], object]
IsOutstanding = t.Callable[[str], bool]

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class SessionEnd:
    COMPLETED = "completed"
    STOPPED = "stopped"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"


@dataclass(eq=False)
class PollingSession:
    """
    A fixed set of watched task refs bound to one repeating timer.

    Parameters
    ----------
    task_refs : tuple[str, ...]
        Refs sent with every batch-status call of this session.
    interval_seconds : float
        Delay between two ticks.
    started_at : float
        Event loop time at which the session started.
    """

    task_refs: tuple[str, ...]
    interval_seconds: float
    started_at: float
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    tick_count: int = 0
    end_reason: str | None = None
    _timer_task: asyncio.Task[None] | None = field(default=None, repr=False)
    _tick_tasks: set[asyncio.Task[None]] = field(default_factory=set, repr=False)
    _finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def is_active(self) -> bool:
        return self.end_reason is None

    def release(self, *, reason: str) -> bool:
        """
        End the session and cancel its timer.

        Parameters
        ----------
        reason : str
            Why the session ended, one of the ``SessionEnd`` values.

        Returns
        -------
        bool
            ``True`` on the first call, ``False`` if the session had already
            been released.
        """
        if self.end_reason is not None:
            return False
        self.end_reason = reason
        self._finished.set()
        timer_task, self._timer_task = self._timer_task, None
        if timer_task is not None and not timer_task.done():
            try:
                current_task = asyncio.current_task()
            except RuntimeError:
                current_task = None
            if timer_task is not current_task:
                timer_task.cancel()
        log.info(
            event="Polling session released",
            session_id=self.session_id,
            reason=reason,
            tick_count=self.tick_count,
            task_ref_count=len(self.task_refs),
        )
        return True

    async def wait(self) -> str:
        """Wait until the session is released and return why it ended."""
        await self._finished.wait()
        return t.cast(str, self.end_reason)


class StatusPoller:
    """
    Run batch-status ticks for the current polling session.

    Parameters
    ----------
    fetch_status : FetchStatus
        Coroutine function performing one batch-status round-trip.
    on_results : OnResults
        Callback merging a tick's results into local state.
    is_outstanding : IsOutstanding
        Predicate telling whether a watched ref still needs polling.
    interval_seconds : float, optional
        Delay between ticks.
    max_ticks : int | None, optional
        Stop the session after this many ticks. ``None`` disables the limit.
    max_duration_seconds : float | None, optional
        Stop the session once it has run this long. ``None`` disables the limit.
    """

    def __init__(
        self,
        *,
        fetch_status: FetchStatus,
        on_results: OnResults,
        is_outstanding: IsOutstanding,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_ticks: int | None = None,
        max_duration_seconds: float | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._fetch_status = fetch_status
        self._on_results = on_results
        self._is_outstanding = is_outstanding
        self._interval_seconds = interval_seconds
        self._max_ticks = max_ticks
        self._max_duration_seconds = max_duration_seconds
        self._session: PollingSession | None = None
        self._tick_tasks: set[asyncio.Task[None]] = set()

    @property
    def active_session(self) -> PollingSession | None:
        return self._session

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    def start(self, task_refs: t.Iterable[str]) -> PollingSession | None:
        """
        Replace the current session with one watching ``task_refs``.

        Parameters
        ----------
        task_refs : typing.Iterable[str]
            Refs to watch. Duplicates are dropped, order is kept.

        Returns
        -------
        PollingSession | None
            The new session, or ``None`` when there is nothing to watch.

        Notes
        -----
        Must be called from a running event loop when ``task_refs`` is not
        empty.
        """
        self.stop(reason=SessionEnd.SUPERSEDED)
        refs = tuple(dict.fromkeys(ref for ref in task_refs if ref))
        if not refs:
            log.debug(event="No task refs to poll; not starting a session")
            return None

        loop = asyncio.get_running_loop()
        session = PollingSession(
            task_refs=refs,
            interval_seconds=self._interval_seconds,
            started_at=loop.time(),
        )
        self._session = session
        session._timer_task = loop.create_task(
            self._run_timer(session=session),
            name=f"gentrack_poll_timer_{session.session_id}",
        )
        log.info(
            event="Polling session started",
            session_id=session.session_id,
            task_ref_count=len(refs),
            interval_seconds=self._interval_seconds,
            max_ticks=self._max_ticks,
            max_duration_seconds=self._max_duration_seconds,
        )
        return session

    def stop(self, *, reason: str = SessionEnd.STOPPED) -> None:
        """
        Release the current session, if any.

        In-flight ticks are not awaited; their results are discarded when
        they arrive.
        """
        session, self._session = self._session, None
        if session is not None:
            session.release(reason=reason)

    async def aclose(self) -> None:
        """Stop polling and wait for in-flight ticks to settle."""
        self.stop()
        pending = [task for task in self._tick_tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _ceiling_reached(self, *, session: PollingSession, now: float) -> bool:
        if self._max_ticks is not None and session.tick_count >= self._max_ticks:
            return True
        if self._max_duration_seconds is not None:
            return now - session.started_at > self._max_duration_seconds
        return False

    async def _run_timer(self, *, session: PollingSession) -> None:
        loop = asyncio.get_running_loop()
        tick_number = 0
        try:
            while session.is_active:
                tick_number += 1
                deadline = session.started_at + tick_number * session.interval_seconds
                await asyncio.sleep(max(0.0, deadline - loop.time()))
                if not session.is_active:
                    return
                if self._ceiling_reached(session=session, now=loop.time()):
                    # The last allowed ticks still merge before the session expires.
                    in_flight = [task for task in session._tick_tasks if not task.done()]
                    if in_flight:
                        await asyncio.wait(in_flight)
                    if not session.is_active:
                        return
                    log.warning(
                        event="Polling ceiling reached; abandoning outstanding tasks",
                        session_id=session.session_id,
                        tick_count=session.tick_count,
                        elapsed_seconds=round(loop.time() - session.started_at, 3),
                    )
                    if self._session is session:
                        self._session = None
                    session.release(reason=SessionEnd.EXPIRED)
                    return
                session.tick_count += 1
                tick_task = loop.create_task(
                    self._tick(session=session, tick=session.tick_count),
                    name=f"gentrack_poll_tick_{session.session_id}_{session.tick_count}",
                )
                self._tick_tasks.add(tick_task)
                session._tick_tasks.add(tick_task)
                tick_task.add_done_callback(self._tick_tasks.discard)
                tick_task.add_done_callback(session._tick_tasks.discard)
        except asyncio.CancelledError:
            log.debug(event="Polling timer cancelled", session_id=session.session_id)
            raise

    async def _tick(self, *, session: PollingSession, tick: int) -> None:
        log.debug(
            event="Polling tick",
            session_id=session.session_id,
            tick=tick,
            task_ref_count=len(session.task_refs),
        )
        try:
            results = await self._fetch_status(session.task_refs)
        except (PollTransportError, httpx.HTTPError) as error:
            log.warning(
                event="Polling tick failed; will retry next interval",
                session_id=session.session_id,
                tick=tick,
                error=str(object=error),
            )
            return

        if self._session is not session or not session.is_active:
            log.debug(
                event="Discarded result of a released session",
                session_id=session.session_id,
                tick=tick,
            )
            return

        try:
            self._on_results(results)
        except Exception as error:
            log.error(
                event="Failed to merge polling results",
                session_id=session.session_id,
                tick=tick,
                error=str(object=error),
            )
            return

        outstanding = [ref for ref in session.task_refs if self._is_outstanding(ref)]
        log.debug(
            event="Polling tick merged",
            session_id=session.session_id,
            tick=tick,
            result_count=len(results),
            outstanding_count=len(outstanding),
        )
        if not outstanding:
            if self._session is session:
                self._session = None
            session.release(reason=SessionEnd.COMPLETED)
