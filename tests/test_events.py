from __future__ import annotations

from typing import Any

import pytest

from railwatch.events import EventChannel


def test_handlers_called_once_each_in_registration_order() -> None:
    channel = EventChannel()
    calls: list[tuple[str, tuple[Any, ...]]] = []

    for label in ("first", "second", "third"):
        channel.on("change", lambda *args, label=label: calls.append((label, args)))

    channel.emit("change", "vehicles", 42, {"k": "v"})

    assert calls == [
        ("first", ("vehicles", 42, {"k": "v"})),
        ("second", ("vehicles", 42, {"k": "v"})),
        ("third", ("vehicles", 42, {"k": "v"})),
    ]


def test_emit_unknown_event_is_noop() -> None:
    channel = EventChannel()
    channel.on("change", lambda *_: pytest.fail("wrong event type"))

    channel.emit("nothing-registered", 1, 2)

    assert channel.handler_count("nothing-registered") == 0
    assert channel.handler_count("change") == 1


def test_handler_exception_propagates_to_emitter() -> None:
    channel = EventChannel()
    seen: list[str] = []

    def broken(*_: Any) -> None:
        raise RuntimeError("consumer bug")

    channel.on("change", lambda *_: seen.append("before"))
    channel.on("change", broken)
    channel.on("change", lambda *_: seen.append("after"))

    with pytest.raises(RuntimeError, match="consumer bug"):
        channel.emit("change")

    # Handlers after the failing one are not reached.
    assert seen == ["before"]


def test_handler_registered_during_emit_runs_next_time() -> None:
    channel = EventChannel()
    seen: list[str] = []

    def register_more(*_: Any) -> None:
        seen.append("outer")
        channel.on("change", lambda *_: seen.append("late"))

    channel.on("change", register_more)
    channel.emit("change")
    assert seen == ["outer"]

    channel.emit("change")
    assert seen == ["outer", "outer", "late"]
