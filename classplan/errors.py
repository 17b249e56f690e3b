"""Exception types raised by the scheduling engine."""

from __future__ import annotations

from typing import Sequence


class SchedulingError(Exception):
    """Base class for every engine error."""


class InvalidScheduleError(SchedulingError, ValueError):
    """The schedule is not configured enough, or a request cannot apply to it.

    Callers usually recover locally, e.g. by showing "not yet configured".
    """


class SafetyCapExceeded(SchedulingError):
    """Generation walked the whole safety horizon without meeting its stop rule.

    ``partial`` keeps the occurrences produced before the cap was hit so the
    caller can log or display them; nothing derived from it is persisted.
    """

    def __init__(self, message: str, partial: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.partial = tuple(partial)


class ClassNotFoundError(SchedulingError, KeyError):
    """No class with the requested id exists in the repository."""

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""


class StaleScheduleError(SchedulingError):
    """The stored version no longer matches the version a writer started from."""


__all__ = [
    "ClassNotFoundError",
    "InvalidScheduleError",
    "SafetyCapExceeded",
    "SchedulingError",
    "StaleScheduleError",
]
