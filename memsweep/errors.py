from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .stats import StepReport


class MemsweepError(Exception):
    """Base class for failures raised by the sweep engine."""

    partial_report: dict[int, "StepReport"] | None = None


class ConfigurationError(MemsweepError):
    """Raised when a run or reducer is configured with invalid values."""


class ConfigurationUpdateError(MemsweepError):
    """Raised by an adapter when the remote unit rejects a memory update."""


class ConfigurationRestoreError(MemsweepError):
    """Raised when the original memory size could not be put back."""

    def __init__(
        self,
        message: str,
        restore_error: BaseException,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.restore_error = restore_error
        self.original_error = original_error


class InvocationError(MemsweepError):
    """Raised by an adapter when a single invocation failed outright."""


class NoMeasurableInvocationsError(MemsweepError):
    """Raised when every invocation of a cycle came back without timing data."""


class EmptySampleSetError(MemsweepError):
    """Raised when the reducer is handed no samples."""


__all__ = [
    "ConfigurationError",
    "ConfigurationRestoreError",
    "ConfigurationUpdateError",
    "EmptySampleSetError",
    "InvocationError",
    "MemsweepError",
    "NoMeasurableInvocationsError",
]
