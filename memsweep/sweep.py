from __future__ import annotations

import contextlib
import logging
import time
from typing import Callable, Iterator

from .adapter import InvocationAdapter
from .config import RunConfiguration
from .cycle import CycleExecutor
from .errors import ConfigurationRestoreError, MemsweepError
from .events import EventBus, FinishEvent, ResultEvent, StartEvent, StepEvent
from .stats import StatisticsReducer, StepReport

LOGGER = logging.getLogger("memsweep.sweep")

RunReport = dict[int, StepReport]


class SweepController:
    """Drive a function through every configured memory size and summarise each.

    The memory size found at start is put back exactly once however the sweep
    ends. Steps run one after another; only a step's own cycle is concurrent.
    """

    def __init__(
        self,
        adapter: InvocationAdapter,
        events: EventBus | None = None,
        sleep: Callable[[float], None] = time.sleep,
        executor_factory: Callable[..., CycleExecutor] = CycleExecutor,
    ) -> None:
        self._adapter = adapter
        self._events = events if events is not None else EventBus()
        self._sleep = sleep
        self._executor_factory = executor_factory

    @property
    def events(self) -> EventBus:
        return self._events

    def run(self, config: RunConfiguration) -> RunReport:
        reducer = StatisticsReducer(config.percentiles)
        executor = self._executor_factory(self._adapter, config, self._events, sleep=self._sleep)
        report: RunReport = {}

        try:
            with self._original_configuration(config.function_name):
                for memory in config.memory_steps:
                    self._adapter.set_configuration(config.function_name, memory)
                    self._events.emit(StepEvent(memory))
                    LOGGER.info("Running %d invocation(s) at %d MB", config.repeats, memory)

                    sample = executor.run_cycle(config.repeats)
                    step_report = reducer.reduce(sample.durations)

                    self._events.emit(ResultEvent(memory, step_report))
                    LOGGER.info(
                        "%d MB: min=%dms avg=%dms max=%dms",
                        memory,
                        step_report.min,
                        step_report.avg,
                        step_report.max,
                    )
                    report[memory] = step_report
        except MemsweepError as exc:
            exc.partial_report = dict(report)
            raise

        return report

    @contextlib.contextmanager
    def _original_configuration(self, function_name: str) -> Iterator[int]:
        original = self._adapter.get_configuration(function_name)
        LOGGER.info("%s starts at %d MB", function_name, original)
        self._events.emit(StartEvent(original))

        try:
            yield original
        except BaseException as exc:
            self._restore(function_name, original, exc)
            raise
        else:
            self._restore(function_name, original, None)

    def _restore(self, function_name: str, original: int, failure: BaseException | None) -> None:
        try:
            self._adapter.set_configuration(function_name, original)
        except Exception as restore_exc:
            LOGGER.error(
                "Could not restore %s to %d MB: %s", function_name, original, restore_exc
            )
            self._events.emit(FinishEvent())
            message = f"failed to restore {function_name} to {original} MB"
            if failure is not None:
                message = f"{message} after sweep failure: {failure}"
            raise ConfigurationRestoreError(
                message, restore_error=restore_exc, original_error=failure
            ) from (failure if failure is not None else restore_exc)
        LOGGER.info("Restored %s to %d MB", function_name, original)
        self._events.emit(FinishEvent())


__all__ = ["RunReport", "SweepController"]
