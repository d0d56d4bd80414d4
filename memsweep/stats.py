"""Reduce per-invocation latency samples into a step summary.

Percentiles use the nearest-rank method (numpy's ``inverted_cdf``): the value
reported for rank ``p`` is the smallest sample whose cumulative share of the
sorted set reaches ``p`` percent. Every reported percentile is therefore one
of the observed samples, and rank 0 yields the minimum.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

from .errors import ConfigurationError, EmptySampleSetError

DEFAULT_PERCENTILES: tuple[int, ...] = (50, 66, 75, 80, 90, 95, 98, 99)


@dataclass(frozen=True)
class StepReport:
    """Latency summary for one memory step, in whole milliseconds."""

    min: int
    max: int
    avg: int
    percentiles: dict[int, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "percentiles": dict(self.percentiles),
        }


def validate_percentiles(ranks: Iterable[int]) -> tuple[int, ...]:
    ranks = tuple(ranks)
    if not ranks:
        raise ConfigurationError("at least one percentile rank is required")
    seen: set[int] = set()
    for rank in ranks:
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise ConfigurationError(f"percentile rank {rank!r} is not an integer")
        if not 0 <= rank <= 100:
            raise ConfigurationError(f"percentile rank {rank} is outside [0, 100]")
        if rank in seen:
            raise ConfigurationError(f"percentile rank {rank} is listed twice")
        seen.add(rank)
    return ranks


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class StatisticsReducer:
    def __init__(self, percentiles: Iterable[int] = DEFAULT_PERCENTILES) -> None:
        self._percentiles = validate_percentiles(percentiles)

    @property
    def percentiles(self) -> tuple[int, ...]:
        return self._percentiles

    def reduce(self, samples: Sequence[int]) -> StepReport:
        if len(samples) == 0:
            raise EmptySampleSetError("cannot summarise an empty sample set")

        values = np.asarray(
            [sample if isinstance(sample, int) else round_half_up(sample) for sample in samples],
            dtype=np.int64,
        )
        ranked = np.percentile(values, self._percentiles, method="inverted_cdf")
        total = int(values.sum())

        return StepReport(
            min=int(values.min()),
            max=int(values.max()),
            avg=round_half_up(total / len(values)),
            percentiles={
                rank: int(value) for rank, value in zip(self._percentiles, ranked)
            },
        )


def reduce_samples(
    samples: Sequence[int], percentiles: Iterable[int] = DEFAULT_PERCENTILES
) -> StepReport:
    return StatisticsReducer(percentiles).reduce(samples)


__all__ = [
    "DEFAULT_PERCENTILES",
    "StatisticsReducer",
    "StepReport",
    "reduce_samples",
    "round_half_up",
    "validate_percentiles",
]
