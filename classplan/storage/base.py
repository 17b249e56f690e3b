"""Repository interface shared by every storage adapter."""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..models import ClassSchedule


class ClassRepository(Protocol):
    """Per-class storage with optimistic versioning.

    ``save_class`` stores ``schedule`` only if the stored version still equals
    ``expected_version`` (``0`` for a class that does not exist yet) and
    returns the schedule stamped with the new version.  A mismatch raises
    :class:`classplan.errors.StaleScheduleError`.
    """

    def get_class(self, class_id: str) -> ClassSchedule:
        ...

    def list_classes(self) -> List[ClassSchedule]:
        ...

    def save_class(
        self, schedule: ClassSchedule, expected_version: Optional[int] = None
    ) -> ClassSchedule:
        ...


def expected_for(schedule: ClassSchedule, expected_version: Optional[int]) -> int:
    return schedule.version if expected_version is None else int(expected_version)


__all__ = ["ClassRepository", "expected_for"]
