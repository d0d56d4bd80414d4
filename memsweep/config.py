from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

from .errors import ConfigurationError
from .stats import DEFAULT_PERCENTILES, validate_percentiles

DEFAULT_MEMORY_STEPS: tuple[int, ...] = (128, 256, 512, 1024, 1536, 2048, 3008)
DEFAULT_REPEATS = 10
DEFAULT_CONCURRENCY = 1
DEFAULT_DELAY_MS = 0


class PayloadProvider(ABC):
    """Produces the payload for the invocation with the given index."""

    @abstractmethod
    def resolve(self, index: int) -> Any:
        """Return the payload for invocation ``index``."""


@dataclass(frozen=True)
class ConstantPayload(PayloadProvider):
    value: Any = None

    def resolve(self, index: int) -> Any:
        return self.value


@dataclass(frozen=True)
class IndexedPayload(PayloadProvider):
    factory: Callable[[int], Any]

    def resolve(self, index: int) -> Any:
        return self.factory(index)


def as_payload_provider(payload: Any) -> PayloadProvider:
    if isinstance(payload, PayloadProvider):
        return payload
    if callable(payload):
        return IndexedPayload(payload)
    return ConstantPayload(payload)


@dataclass(frozen=True)
class RunConfiguration:
    """Everything needed to sweep one function across a list of memory sizes."""

    function_name: str
    memory_steps: tuple[int, ...] = DEFAULT_MEMORY_STEPS
    repeats: int = DEFAULT_REPEATS
    concurrency: int = DEFAULT_CONCURRENCY
    warmup: bool = False
    delay_ms: int = DEFAULT_DELAY_MS
    payload: PayloadProvider = field(default_factory=ConstantPayload)
    percentiles: tuple[int, ...] = DEFAULT_PERCENTILES

    def __post_init__(self) -> None:
        # frozen, so normalised values go through object.__setattr__
        object.__setattr__(self, "memory_steps", tuple(self.memory_steps))
        object.__setattr__(self, "payload", as_payload_provider(self.payload))
        object.__setattr__(self, "percentiles", validate_percentiles(self.percentiles))

        if not self.function_name:
            raise ConfigurationError("function_name must not be empty")
        _require_int("repeats", self.repeats, minimum=1)
        _require_int("concurrency", self.concurrency, minimum=1)
        _require_int("delay_ms", self.delay_ms, minimum=0)
        for step in self.memory_steps:
            _require_int("memory step", step, minimum=1)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    @property
    def serialized(self) -> bool:
        """True when invocations run one at a time and are paced."""
        return self.concurrency == 1

    def describe(self) -> str:
        steps = ", ".join(str(step) for step in self.memory_steps) or "<none>"
        return (
            f"{self.function_name}: steps=[{steps}] repeats={self.repeats} "
            f"concurrency={self.concurrency} warmup={self.warmup} delay={self.delay_ms}ms"
        )


def parse_int_list(raw: str | Iterable[int], label: str) -> tuple[int, ...]:
    if not isinstance(raw, str):
        return tuple(raw)
    values: list[int] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            values.append(int(item))
        except ValueError as exc:
            raise ConfigurationError(f"invalid {label} value {item!r}") from exc
    return tuple(values)


def load_payload(raw: str | None, path: str | None) -> ConstantPayload:
    if raw and path:
        raise ConfigurationError("pass either a payload or a payload file, not both")
    if path:
        raw = Path(path).read_text(encoding="utf-8")
    if not raw:
        return ConstantPayload()
    try:
        return ConstantPayload(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"payload is not valid JSON: {exc}") from exc


def _require_int(name: str, value: object, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
