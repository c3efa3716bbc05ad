"""
Event Bus.

A small synchronous publish/subscribe mechanism used by groups and
organizations to report their activity:
- Listeners run in registration order
- A failing listener never affects other listeners or the emitter
- Coroutine listeners are scheduled on the running event loop
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Any]
AnyListener = Callable[[str, Dict[str, Any]], Any]


class EventName(str, Enum):
    """Names of the events emitted by groups and organizations."""

    RUN_START = "run_start"
    RUN_END = "run_end"
    ENTRY_START = "entry_start"
    ENTRY_INPUT_PREPARED = "entry_input_prepared"
    ENTRY_SUCCESS = "entry_success"
    ENTRY_ERROR = "entry_error"
    ENTRY_SKIPPED = "entry_skipped"
    PARALLEL_BATCH_START = "parallel_batch_start"
    PARALLEL_BATCH_END = "parallel_batch_end"
    INPUT_RESOLUTION_WARNING = "input_resolution_warning"
    INPUT_INFO = "input_info"
    INPUT_SERIALIZED = "input_serialized"
    OUTPUT_KEY_MISSING = "output_key_missing"

    UNIT_ADDED = "unit_added"
    JOB_ADDED = "job_added"
    WORKFLOW_SET = "workflow_set"
    GROUP_ADDED = "group_added"
    WORKFLOW_ADDED = "workflow_added"
    STEP_ADDED = "step_added"

    GROUP_RUN_START = "group_run_start"
    GROUP_RUN_SUCCESS = "group_run_success"
    GROUP_RUN_ERROR = "group_run_error"


def _event_key(event_name: Any) -> str:
    return event_name.value if isinstance(event_name, EventName) else str(event_name)


class EventBus:
    """
    Publish/subscribe hub.

    Listeners registered with ``on`` receive the payload only. Listeners
    registered with ``on_any`` receive every event as ``(event_name, payload)``,
    which is how organizations re-publish the activity of their groups.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._any_listeners: List[AnyListener] = []

    def on(self, event_name: Any, listener: Listener) -> Callable[[], None]:
        """Subscribe to an event. Returns a function that unsubscribes."""
        key = _event_key(event_name)
        self._listeners.setdefault(key, []).append(listener)
        return lambda: self.off(key, listener)

    def off(self, event_name: Any, listener: Listener) -> None:
        """Remove a listener by reference. Unknown listeners are ignored."""
        key = _event_key(event_name)
        listeners = self._listeners.get(key)
        if not listeners:
            return
        self._listeners[key] = [
            registered
            for registered in listeners
            if registered is not listener
            and getattr(registered, "original_listener", None) is not listener
        ]

    def once(self, event_name: Any, listener: Listener) -> Callable[[], None]:
        """Subscribe to the next occurrence of an event only."""
        key = _event_key(event_name)

        def once_wrapper(payload: Dict[str, Any]) -> Any:
            self.off(key, once_wrapper)
            return listener(payload)

        once_wrapper.original_listener = listener  # type: ignore[attr-defined]
        return self.on(key, once_wrapper)

    def on_any(self, listener: AnyListener) -> Callable[[], None]:
        """Subscribe to every event emitted on this bus."""
        self._any_listeners.append(listener)
        return lambda: self.off_any(listener)

    def off_any(self, listener: AnyListener) -> None:
        self._any_listeners = [
            registered for registered in self._any_listeners if registered is not listener
        ]

    def listener_count(self, event_name: Any) -> int:
        return len(self._listeners.get(_event_key(event_name), []))

    def emit(self, event_name: Any, payload: Dict[str, Any]) -> None:
        """
        Invoke all current listeners synchronously, in registration order.

        The listener lists are copied first so listeners may unsubscribe
        while the event is being delivered.
        """
        key = _event_key(event_name)
        for listener in list(self._listeners.get(key, [])):
            self._deliver(key, listener, (payload,))
        for listener in list(self._any_listeners):
            self._deliver(key, listener, (key, payload))

    def _deliver(self, key: str, listener: Callable, args: tuple) -> None:
        try:
            result = listener(*args)
        except Exception:
            logger.exception("Error in event listener for %s", key)
            return

        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    "Async listener for %s called outside an event loop; dropped", key
                )
                if inspect.iscoroutine(result):
                    result.close()
                return
            task = loop.create_task(_guarded(key, result))
            _pending.add(task)
            task.add_done_callback(_pending.discard)


# Strong references to scheduled listener tasks until they finish
_pending: "set[asyncio.Task]" = set()


async def _guarded(key: str, awaitable: Any) -> None:
    try:
        await awaitable
    except Exception:
        logger.exception("Error in async event listener for %s", key)
