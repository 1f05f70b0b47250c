"""Geolocation provider interface.

A provider exposes a continuous stream of user positions. The stream ends
by raising :class:`~railwatch.exceptions.GeolocationError` when the platform
reports permission denied or position unavailable; subscribers may call
:meth:`GeolocationProvider.watch` again to resubscribe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Protocol

from railwatch.exceptions import GeolocationError
from railwatch.models.geo import GeoPosition

_logger = logging.getLogger(__name__)

_CLOSED = object()


class GeolocationProvider(Protocol):
    def watch(self) -> AsyncIterator[GeoPosition]:
        ...


class QueueGeolocation:
    """Provider fed by an external collaborator through :meth:`push`.

    Bridges callback-style platform APIs onto the async stream interface.
    Call :meth:`push` / :meth:`fail` from the event loop thread, or use the
    ``*_threadsafe`` variants from other threads.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def push(self, position: GeoPosition) -> None:
        self._queue.put_nowait(position)

    def fail(self, error: GeolocationError) -> None:
        self._queue.put_nowait(error)

    def close(self) -> None:
        """End every current and future :meth:`watch` stream."""
        self._queue.put_nowait(_CLOSED)

    def push_threadsafe(self, loop: asyncio.AbstractEventLoop, position: GeoPosition) -> None:
        loop.call_soon_threadsafe(self.push, position)

    def fail_threadsafe(self, loop: asyncio.AbstractEventLoop, error: GeolocationError) -> None:
        loop.call_soon_threadsafe(self.fail, error)

    async def watch(self) -> AsyncIterator[GeoPosition]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                # Leave the marker for any other subscriber.
                self._queue.put_nowait(_CLOSED)
                return
            if isinstance(item, GeolocationError):
                _logger.debug("Geolocation error: %s", item)
                raise item
            if isinstance(item, GeoPosition):
                yield item
