import asyncio
import logging

from agency.core.events import EventBus, EventName


def test_listeners_run_in_registration_order():
    bus = EventBus()
    calls = []
    bus.on("ping", lambda payload: calls.append(("first", payload["n"])))
    bus.on("ping", lambda payload: calls.append(("second", payload["n"])))

    bus.emit("ping", {"n": 1})

    assert calls == [("first", 1), ("second", 1)]


def test_enum_and_string_names_are_interchangeable():
    bus = EventBus()
    received = []
    bus.on(EventName.RUN_START, received.append)

    bus.emit("run_start", {"owner": "g"})
    bus.emit(EventName.RUN_START, {"owner": "h"})

    assert [p["owner"] for p in received] == ["g", "h"]
    assert bus.listener_count("run_start") == 1


def test_off_and_unsubscribe():
    bus = EventBus()
    received = []
    listener = received.append
    unsubscribe = bus.on("a", listener)
    bus.on("b", listener)

    unsubscribe()
    bus.off("b", listener)
    bus.off("never-registered", listener)
    bus.emit("a", {})
    bus.emit("b", {})

    assert received == []


def test_once_fires_a_single_time():
    bus = EventBus()
    received = []
    bus.once("tick", received.append)

    bus.emit("tick", {"n": 1})
    bus.emit("tick", {"n": 2})

    assert received == [{"n": 1}]
    assert bus.listener_count("tick") == 0


def test_off_removes_once_listener_by_original_reference():
    bus = EventBus()
    received = []
    listener = received.append
    bus.once("tick", listener)

    bus.off("tick", listener)
    bus.emit("tick", {})

    assert received == []


def test_failing_listener_is_isolated(caplog):
    bus = EventBus()
    received = []

    def broken(payload):
        raise RuntimeError("listener bug")

    bus.on("x", broken)
    bus.on("x", received.append)

    with caplog.at_level(logging.ERROR):
        bus.emit("x", {"v": 1})

    assert received == [{"v": 1}]
    assert "Error in event listener for x" in caplog.text


def test_on_any_receives_event_name():
    bus = EventBus()
    seen = []
    unsubscribe = bus.on_any(lambda name, payload: seen.append((name, payload)))

    bus.emit(EventName.ENTRY_SUCCESS, {"entry": "a"})
    unsubscribe()
    bus.emit("other", {})

    assert seen == [("entry_success", {"entry": "a"})]


def test_async_listener_is_scheduled_on_running_loop():
    bus = EventBus()
    received = []

    async def listener(payload):
        received.append(payload)

    async def main():
        bus.on("x", listener)
        bus.emit("x", {"v": 1})
        assert received == []
        await asyncio.sleep(0.01)

    asyncio.run(main())
    assert received == [{"v": 1}]


def test_async_listener_without_loop_is_dropped(caplog):
    bus = EventBus()
    received = []

    async def listener(payload):
        received.append(payload)

    bus.on("x", listener)
    with caplog.at_level(logging.WARNING):
        bus.emit("x", {})

    assert received == []
    assert "outside an event loop" in caplog.text
