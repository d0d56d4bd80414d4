from __future__ import annotations

import threading
import time
from typing import Any, Callable

import pytest

from memsweep.adapter import InvocationAdapter
from memsweep.errors import ConfigurationUpdateError


class FakeAdapter(InvocationAdapter):
    """In-memory adapter that replays scripted durations per memory size.

    ``durations`` maps a memory size to a list consumed one value per
    invocation; an exception instance in that list is raised instead.
    """

    def __init__(
        self,
        original_memory: int = 1024,
        durations: dict[int, list[Any]] | None = None,
        default_duration: int | None = 100,
        invoke_hook: Callable[[Any], None] | None = None,
        timeline: list[Any] | None = None,
    ) -> None:
        self.memory = original_memory
        self.original_memory = original_memory
        self.durations = {memory: list(values) for memory, values in (durations or {}).items()}
        self.default_duration = default_duration
        self.invoke_hook = invoke_hook
        self.timeline = timeline if timeline is not None else []
        self.get_calls = 0
        self.set_calls: list[int] = []
        self.payloads: list[Any] = []
        self.fail_set: set[int] = set()
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get_configuration(self, function_name: str) -> int:
        self.get_calls += 1
        return self.memory

    def set_configuration(self, function_name: str, memory: int) -> None:
        self.set_calls.append(memory)
        if memory in self.fail_set:
            raise ConfigurationUpdateError(f"rejected {memory}")
        self.memory = memory

    def invoke(self, function_name: str, payload: Any) -> int | None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.payloads.append(payload)
            self.timeline.append(("invoke", payload))
            queue = self.durations.get(self.memory)
            value = queue.pop(0) if queue else self.default_duration
        try:
            if self.invoke_hook is not None:
                self.invoke_hook(payload)
            if isinstance(value, BaseException):
                raise value
            return value
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def fake_adapter_cls() -> type[FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def timeline() -> list[Any]:
    return []


@pytest.fixture
def recording_sleep(timeline: list[Any]) -> Callable[[float], None]:
    def sleep(seconds: float) -> None:
        timeline.append(("sleep", seconds))

    return sleep


def slow_invoke(seconds: float = 0.01) -> Callable[[Any], None]:
    def hook(payload: Any) -> None:
        time.sleep(seconds)

    return hook


@pytest.fixture
def slow_hook() -> Callable[..., Callable[[Any], None]]:
    return slow_invoke
