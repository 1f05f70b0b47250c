"""Update scheduling.

Two independent producers feed a single dispatcher through a queue:

* the vehicle loop puts a :class:`VehicleTick` every ``vehicle_interval``
  seconds;
* the position loop forwards each geolocation update as a
  :class:`PositionUpdate`, and a geolocation error as a
  :class:`PositionFailure` before resubscribing.

No ordering between the two producers is assumed. The dispatcher handles
one message at a time; a failure while handling one message (including an
exception raised by an event handler) is logged and does not stop either
loop.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Sequence
from typing import Any

from railwatch._constants import EVENT_NEAREST
from railwatch.events import EventChannel
from railwatch.exceptions import GeolocationError, InsufficientDataError, NotFoundError, ParseError
from railwatch.geo import MapWindow, NearestStation, correlate
from railwatch.geolocation import GeolocationProvider
from railwatch.models.geo import GeoPosition
from railwatch.models.station import Station
from railwatch.sources import DataSource, PushSource

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class VehicleTick:
    pass


@dataclasses.dataclass(frozen=True)
class PositionUpdate:
    position: GeoPosition


@dataclasses.dataclass(frozen=True)
class PositionFailure:
    error: GeolocationError


Message = VehicleTick | PositionUpdate | PositionFailure


class UpdateScheduler:
    """Drives vehicle polling and nearest-station correlation.

    Parameters
    ----------
    vehicles : DataSource
        Source fetched on every vehicle tick.
    position : PushSource
        Receives each user position (or geolocation failure).
    stations : callable
        Returns the current station list. May raise
        :class:`InsufficientDataError`, :class:`NotFoundError` or
        :class:`ParseError`, in which case that correlation is skipped.
    channel : EventChannel
        ``"nearest"`` is emitted here with ``(NearestStation, MapWindow)``.
    geolocation : GeolocationProvider or None
        Position stream; without one only the vehicle loop runs.
    """

    def __init__(
        self,
        vehicles: DataSource,
        position: PushSource,
        stations: Callable[[], Sequence[Station]],
        channel: EventChannel,
        geolocation: GeolocationProvider | None = None,
        *,
        vehicle_interval: float = 10.0,
        geolocation_retry_interval: float = 30.0,
        map_margin: float = 0.1,
    ) -> None:
        self._vehicles = vehicles
        self._position = position
        self._stations = stations
        self._channel = channel
        self._geolocation = geolocation
        self._vehicle_interval = vehicle_interval
        self._geolocation_retry_interval = geolocation_retry_interval
        self._map_margin = map_margin
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks.append(loop.create_task(self._dispatch(), name="railwatch-dispatch"))
        self._tasks.append(loop.create_task(self._vehicle_loop(), name="railwatch-vehicles"))
        if self._geolocation is not None:
            self._tasks.append(loop.create_task(self._position_loop(), name="railwatch-position"))
        _logger.debug("Scheduler started with %d task(s)", len(self._tasks))

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                _logger.error("Scheduler task %s failed", task.get_name(), exc_info=result)
        _logger.debug("Scheduler stopped")

    async def __aenter__(self) -> UpdateScheduler:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def submit(self, message: Message) -> None:
        """Queue *message* for the dispatcher, as a producer would."""
        self._queue.put_nowait(message)

    async def join(self) -> None:
        """Wait until every queued message has been handled."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def _vehicle_loop(self) -> None:
        while True:
            await asyncio.sleep(self._vehicle_interval)
            await self._queue.put(VehicleTick())

    async def _position_loop(self) -> None:
        assert self._geolocation is not None  # noqa: S101
        while True:
            try:
                async for position in self._geolocation.watch():
                    await self._queue.put(PositionUpdate(position))
            except GeolocationError as exc:
                _logger.warning("Geolocation failed (%s): %s", exc.reason, exc)
                await self._queue.put(PositionFailure(exc))
            except Exception as exc:
                _logger.exception("Geolocation provider crashed")
                error = GeolocationError(f"Geolocation provider crashed: {exc}", reason="provider_error")
                error.__cause__ = exc
                await self._queue.put(PositionFailure(error))
            else:
                _logger.info("Geolocation stream ended")
                return
            await asyncio.sleep(self._geolocation_retry_interval)

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------

    async def _dispatch(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                self._handle(message)
            except Exception:
                _logger.exception("Handling %s failed", type(message).__name__)
            finally:
                self._queue.task_done()

    def _handle(self, message: Message) -> None:
        if isinstance(message, VehicleTick):
            self._vehicles.fetch()
        elif isinstance(message, PositionUpdate):
            self._position.push(message.position)
            self.correlate(message.position)
        elif isinstance(message, PositionFailure):
            self._position.fail(message.error)

    def correlate(self, position: GeoPosition) -> tuple[NearestStation, MapWindow] | None:
        """Correlate *position* with the current stations and emit ``"nearest"``.

        Returns ``None`` (and emits nothing) when there is nothing to
        correlate against yet.
        """
        try:
            nearest, window = correlate(position, self._stations(), margin=self._map_margin)
        except (InsufficientDataError, NotFoundError, ParseError) as exc:
            _logger.info("Skipping correlation: %s", exc)
            return None
        _logger.debug("Nearest station %s at %.0f m", nearest.station.id, nearest.distance_m)
        self._channel.emit(EVENT_NEAREST, nearest, window)
        return nearest, window
