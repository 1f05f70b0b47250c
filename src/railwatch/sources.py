"""Data sources: one cached, change-notifying value per external feed.

A :class:`DataSource` wraps one polled HTTP feed. It owns the fetch
lifecycle (a busy flag prevents overlapping requests), the last good value
and the last failure. A :class:`PushSource` has the same cached-value and
event semantics for values that are pushed in rather than fetched, such as
the user's own position.

Both emit ``"change"`` with ``(name, source)`` after every settled update,
and failures additionally emit ``"error"`` with ``(name, cause)``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final

from railwatch._constants import EVENT_CHANGE, EVENT_ERROR
from railwatch._transport import BodyKind, RequestDescriptor, Transport
from railwatch.events import EventChannel
from railwatch.exceptions import FetchError, TransportError

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BusyPolicy(StrEnum):
    """What to do with a fetch issued while another is still in flight."""

    DROP = "drop"
    """Ignore it."""
    QUEUE = "queue"
    """Run one follow-up fetch after the current one settles (calls coalesce)."""


class SourceState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"


class SourceStatus(StrEnum):
    """Freshness of a source's cached value, for presentation decisions."""

    NEVER_LOADED = "never_loaded"
    FRESH = "fresh"
    STALE = "stale"
    """Has data, but the most recent update failed."""
    FAILED = "failed"
    """Never had data and the most recent update failed."""


class _NoData:
    _instance: _NoData | None = None

    def __new__(cls) -> _NoData:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_DATA"


NO_DATA: Final = _NoData()
"""Returned by :attr:`BaseSource.value` before any update has settled."""


@dataclasses.dataclass(frozen=True)
class SourceOptions:
    """Fetch configuration for a :class:`DataSource`."""

    body_kind: BodyKind = BodyKind.TEXT
    auto_start: bool = False
    busy_policy: BusyPolicy = BusyPolicy.DROP
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)


class BaseSource:
    """Cached value, last failure and change notification."""

    def __init__(
        self,
        name: str,
        channel: EventChannel,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self._channel = channel
        self._clock = clock
        self._data: Any = None
        self._has_data = False
        self._error: BaseException | None = None
        self._last_success_at: datetime | None = None
        self._last_failure_at: datetime | None = None
        self._failure_count = 0

    @property
    def data(self) -> Any:
        """Last successful value, or ``None`` when there has never been one."""
        return self._data

    @property
    def has_data(self) -> bool:
        return self._has_data

    @property
    def error(self) -> BaseException | None:
        """Cause of the most recent update if it failed, else ``None``."""
        return self._error

    @property
    def value(self) -> Any:
        """Last good value, else the last failure cause, else :data:`NO_DATA`."""
        if self._has_data:
            return self._data
        if self._error is not None:
            return self._error
        return NO_DATA

    @property
    def status(self) -> SourceStatus:
        if self._error is None:
            return SourceStatus.FRESH if self._has_data else SourceStatus.NEVER_LOADED
        return SourceStatus.STALE if self._has_data else SourceStatus.FAILED

    @property
    def last_success_at(self) -> datetime | None:
        return self._last_success_at

    @property
    def last_failure_at(self) -> datetime | None:
        return self._last_failure_at

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _record_success(self, value: Any) -> None:
        self._data = value
        self._has_data = True
        self._error = None
        self._last_success_at = self._clock()
        self._channel.emit(EVENT_CHANGE, self.name, self)

    def _record_failure(self, cause: BaseException) -> None:
        self._error = cause
        self._failure_count += 1
        self._last_failure_at = self._clock()
        self._channel.emit(EVENT_CHANGE, self.name, self)
        self._channel.emit(EVENT_ERROR, self.name, cause)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} status={self.status}>"


class PushSource(BaseSource):
    """A source whose values are delivered by a collaborator, not fetched."""

    def push(self, value: Any) -> None:
        self._record_success(value)

    def fail(self, cause: BaseException) -> None:
        self._record_failure(cause)


class DataSource(BaseSource):
    """One polled or one-shot HTTP feed.

    :meth:`fetch` is fire-and-forget and must be called with a running event
    loop. Transport and HTTP failures are recorded on the source, never
    raised. Exceptions raised by ``"change"``/``"error"`` handlers escape the
    background task; they are logged and re-raised to :meth:`refresh`
    callers.
    """

    def __init__(
        self,
        name: str,
        url: str,
        transport: Transport,
        channel: EventChannel,
        options: SourceOptions | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(name, channel, clock=clock)
        self.url = url
        self.options = options or SourceOptions()
        self._transport = transport
        self._request = RequestDescriptor(
            url=url,
            headers=self.options.headers,
            body_kind=self.options.body_kind,
        )
        self._busy = False
        self._pending = False
        self._task: asyncio.Task[None] | None = None
        self._fetch_count = 0

        if self.options.auto_start:
            self.fetch()

    @property
    def request(self) -> RequestDescriptor:
        return self._request

    @property
    def state(self) -> SourceState:
        return SourceState.FETCHING if self._busy else SourceState.IDLE

    @property
    def fetch_count(self) -> int:
        """Number of requests actually issued."""
        return self._fetch_count

    def fetch(self) -> asyncio.Task[None] | None:
        """Start a fetch in the background.

        Returns the task, or ``None`` when the call was dropped or queued
        because a fetch is already in flight.
        """
        if self._busy:
            if self.options.busy_policy == BusyPolicy.QUEUE:
                _logger.debug("Source %s busy, queueing follow-up fetch", self.name)
                self._pending = True
            else:
                _logger.debug("Source %s busy, dropping fetch", self.name)
            return None

        task = asyncio.get_running_loop().create_task(self._run(), name=f"railwatch-fetch-{self.name}")
        self._busy = True
        self._fetch_count += 1
        self._task = task
        task.add_done_callback(self._on_task_done)
        return task

    async def refresh(self) -> None:
        """Fetch and wait until the in-flight request has settled.

        When a fetch is already running this waits for that one instead.
        """
        task = self.fetch() or self._task
        if task is not None:
            await asyncio.shield(task)

    async def wait_idle(self) -> None:
        """Wait until no fetch is in flight or queued.

        Handler exceptions are not re-raised here; use :meth:`refresh` to
        observe them.
        """
        while self._task is not None and not self._task.done():
            await asyncio.gather(asyncio.shield(self._task), return_exceptions=True)

    async def cancel(self) -> None:
        """Abandon the in-flight fetch and any queued follow-up (shutdown only)."""
        self._pending = False
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._busy = False

    async def _run(self) -> None:
        try:
            envelope = await self._transport.fetch(self._request)
        except FetchError as exc:
            self._busy = False
            _logger.warning("Fetch for source %s failed: %s", self.name, exc)
            self._record_failure(exc)
        except asyncio.CancelledError:
            self._pending = False
            raise
        except Exception as exc:
            _logger.exception("Transport for source %s raised unexpectedly", self.name)
            self._busy = False
            self._record_failure(
                TransportError(f"Request to {self._request.url} failed: {exc}", url=self._request.url, cause=exc)
            )
        else:
            self._busy = False
            _logger.debug("Fetch for source %s succeeded (HTTP %s)", self.name, envelope.status_code)
            self._record_success(envelope.parsed)
        finally:
            self._busy = False
            if self._pending:
                self._pending = False
                self.fetch()

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Event handler for source %s raised", self.name, exc_info=exc)
