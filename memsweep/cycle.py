from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from .adapter import InvocationAdapter
from .config import RunConfiguration
from .errors import NoMeasurableInvocationsError
from .events import EventBus, InvokeEvent, WarmupEvent

LOGGER = logging.getLogger("memsweep.cycle")

WARMUP_INDEX = 0


@dataclass
class CycleSample:
    """Durations gathered while the function held one memory size."""

    durations: list[int] = field(default_factory=list)
    attempted: int = 0
    unmeasured: int = 0


class CycleExecutor:
    """Run one memory step's worth of invocations.

    At most ``concurrency`` invocations are in flight. With a concurrency of one
    every call, including the optional warm-up, is preceded by the configured
    delay; with more workers the pool size alone throttles the load.

    The first failing invocation stops further dispatch. Calls already in
    flight are allowed to finish before that failure is re-raised.
    """

    def __init__(
        self,
        adapter: InvocationAdapter,
        config: RunConfiguration,
        events: EventBus,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._adapter = adapter
        self._config = config
        self._events = events
        self._sleep = sleep

    def run_cycle(self, repeats: int) -> CycleSample:
        if self._config.warmup and self._config.serialized:
            self._warmup()

        sample = CycleSample()
        lock = threading.Lock()
        failures: list[BaseException] = []
        slots = threading.BoundedSemaphore(self._config.concurrency)

        def on_done(future: Future) -> None:
            exc = future.exception()
            if exc is not None:
                with lock:
                    failures.append(exc)
            slots.release()

        with ThreadPoolExecutor(
            max_workers=self._config.concurrency,
            thread_name_prefix="memsweep-invoke",
        ) as pool:
            for index in range(1, repeats + 1):
                slots.acquire()
                with lock:
                    failed = bool(failures)
                if failed:
                    slots.release()
                    LOGGER.debug("Stopping dispatch at index %d after a failure", index)
                    break
                future = pool.submit(self._timed_invocation, index, sample, lock)
                future.add_done_callback(on_done)

        if failures:
            raise failures[0]

        if not sample.durations:
            raise NoMeasurableInvocationsError(
                f"none of the {sample.attempted} invocations of "
                f"{self._config.function_name} reported a duration"
            )
        if sample.unmeasured:
            LOGGER.warning(
                "%d of %d invocations reported no duration",
                sample.unmeasured,
                sample.attempted,
            )
        return sample

    def _warmup(self) -> None:
        self._pace()
        self._events.emit(WarmupEvent())
        LOGGER.debug("Warming up %s", self._config.function_name)
        self._invoke(WARMUP_INDEX)

    def _timed_invocation(self, index: int, sample: CycleSample, lock: threading.Lock) -> None:
        self._pace()
        duration = self._invoke(index)
        with lock:
            sample.attempted += 1
            if duration is None:
                sample.unmeasured += 1
            else:
                sample.durations.append(duration)
        LOGGER.debug("Invocation %d finished: %s ms", index, duration)
        self._events.emit(InvokeEvent(index=index, duration=duration))

    def _invoke(self, index: int) -> int | None:
        payload = self._config.payload.resolve(index)
        return self._adapter.invoke(self._config.function_name, payload)

    def _pace(self) -> None:
        if self._config.serialized and self._config.delay_ms > 0:
            self._sleep(self._config.delay_seconds)


__all__ = ["CycleExecutor", "CycleSample", "WARMUP_INDEX"]
