"""Minimal synchronous publish/subscribe channel.

Handlers are called in registration order, on the emitting call stack.
The channel does not catch handler exceptions: a handler that raises aborts
the remaining handlers for that emit and propagates to the caller of
:meth:`EventChannel.emit`. Call sites that must survive a misbehaving
consumer (the scheduler dispatcher) guard the emit themselves.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class EventChannel:
    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)

    def on(self, event_type: str, handler: Handler) -> None:
        """Register *handler* for *event_type*."""
        self._handlers[event_type].append(handler)

    def emit(self, event_type: str, *args: Any) -> None:
        """Invoke every handler registered for *event_type* with *args*."""
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        _logger.debug("emit %s to %d handler(s)", event_type, len(handlers))
        # Snapshot so a handler registering another handler does not see it called now.
        for handler in list(handlers):
            handler(*args)

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))
