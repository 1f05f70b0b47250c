"""Named collection of data sources."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from railwatch._transport import Transport
from railwatch.events import EventChannel
from railwatch.exceptions import DuplicateSourceError, NotFoundError
from railwatch.sources import BaseSource, DataSource, PushSource, SourceOptions

_logger = logging.getLogger(__name__)


class DataSources:
    """Registry mapping unique names to sources.

    All sources share the registry's transport and event channel. The
    registry is append-only; re-registering a name raises
    :class:`DuplicateSourceError` unless ``replace_duplicates`` is set.
    """

    def __init__(
        self,
        transport: Transport,
        channel: EventChannel,
        *,
        replace_duplicates: bool = False,
    ) -> None:
        self._transport = transport
        self._channel = channel
        self._replace_duplicates = replace_duplicates
        self._sources: dict[str, BaseSource] = {}

    def _store(self, source: BaseSource) -> None:
        if source.name in self._sources:
            if not self._replace_duplicates:
                raise DuplicateSourceError(source.name)
            _logger.info("Replacing data source %s", source.name)
        self._sources[source.name] = source

    def add_source(self, name: str, url: str, options: SourceOptions | None = None) -> DataSource:
        """Create, register and (per ``options.auto_start``) start a feed source."""
        if name in self._sources and not self._replace_duplicates:
            # Checked before construction so a rejected source never auto-starts.
            raise DuplicateSourceError(name)
        source = DataSource(name, url, self._transport, self._channel, options)
        self._store(source)
        _logger.debug("Registered data source %s -> %s", name, url)
        return source

    def add_push_source(self, name: str) -> PushSource:
        source = PushSource(name, self._channel)
        self._store(source)
        _logger.debug("Registered push source %s", name)
        return source

    def source(self, name: str) -> BaseSource:
        try:
            return self._sources[name]
        except KeyError:
            raise NotFoundError(name) from None

    def get(self, name: str) -> Any:
        """Return the current readable value of source *name*.

        See :attr:`railwatch.sources.BaseSource.value`.
        """
        return self.source(name).value

    async def cancel_all(self) -> None:
        """Cancel every in-flight fetch; called when the session ends."""
        for source in list(self._sources.values()):
            if isinstance(source, DataSource):
                await source.cancel()

    def names(self) -> list[str]:
        return list(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[BaseSource]:
        return iter(list(self._sources.values()))
