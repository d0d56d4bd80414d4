"""
Memory sweep harness for remotely invoked functions.

This package drives a function through a list of memory sizes, times a cycle of
invocations at each size, and summarises the latencies so the cost/performance
tradeoff of each size can be compared.
"""

from .config import ConstantPayload, IndexedPayload, RunConfiguration
from .main import main
from .stats import StepReport, reduce_samples
from .sweep import RunReport, SweepController

__all__ = [
    "ConstantPayload",
    "IndexedPayload",
    "RunConfiguration",
    "RunReport",
    "StepReport",
    "SweepController",
    "main",
    "reduce_samples",
]
