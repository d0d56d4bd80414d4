from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Union

from .stats import StepReport


@dataclass(frozen=True)
class StartEvent:
    original_memory: int


@dataclass(frozen=True)
class StepEvent:
    memory: int


@dataclass(frozen=True)
class WarmupEvent:
    pass


@dataclass(frozen=True)
class InvokeEvent:
    index: int
    duration: int | None


@dataclass(frozen=True)
class ResultEvent:
    memory: int
    report: StepReport


@dataclass(frozen=True)
class FinishEvent:
    pass


SweepEvent = Union[StartEvent, StepEvent, WarmupEvent, InvokeEvent, ResultEvent, FinishEvent]
EventHandler = Callable[[SweepEvent], None]


class EventBus:
    """Ordered list of observers for sweep progress.

    Invoke events arrive from worker threads, so delivery is serialised with a
    lock: handlers never run concurrently and see events in emission order.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: list[tuple[EventHandler, tuple[type, ...]]] = []

    def subscribe(self, handler: EventHandler, *kinds: type) -> Callable[[], None]:
        entry = (handler, tuple(kinds))
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def emit(self, event: SweepEvent) -> None:
        with self._lock:
            for handler, kinds in list(self._subscribers):
                if kinds and not isinstance(event, kinds):
                    continue
                handler(event)


class EventRecorder:
    """Subscriber that keeps every event it sees, mostly for inspection in tests."""

    def __init__(self) -> None:
        self.events: list[SweepEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: SweepEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, kind: type) -> list[SweepEvent]:
        with self._lock:
            return [event for event in self.events if isinstance(event, kind)]


__all__ = [
    "EventBus",
    "EventHandler",
    "EventRecorder",
    "FinishEvent",
    "InvokeEvent",
    "ResultEvent",
    "StartEvent",
    "StepEvent",
    "SweepEvent",
    "WarmupEvent",
]
