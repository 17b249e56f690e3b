"""In-memory class repository used by tests and single-process tools."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..errors import ClassNotFoundError, StaleScheduleError
from ..models import ClassSchedule
from .base import expected_for


class InMemoryClassRepository:
    """Dictionary-backed repository; keeps insertion order for listings."""

    def __init__(self, classes: Iterable[ClassSchedule] = ()) -> None:
        self._lock = threading.Lock()
        self._classes: Dict[str, ClassSchedule] = {}
        for schedule in classes:
            self._classes[schedule.id] = schedule

    def get_class(self, class_id: str) -> ClassSchedule:
        with self._lock:
            try:
                return self._classes[class_id]
            except KeyError:
                raise ClassNotFoundError(f"class {class_id} not found") from None

    def list_classes(self) -> List[ClassSchedule]:
        with self._lock:
            return list(self._classes.values())

    def save_class(
        self, schedule: ClassSchedule, expected_version: Optional[int] = None
    ) -> ClassSchedule:
        expected = expected_for(schedule, expected_version)
        with self._lock:
            current = self._classes.get(schedule.id)
            stored = current.version if current is not None else 0
            if stored != expected:
                raise StaleScheduleError(
                    f"class {schedule.id}: stored version {stored}, expected {expected}"
                )
            saved = replace(schedule, version=expected + 1)
            self._classes[schedule.id] = saved
            return saved


__all__ = ["InMemoryClassRepository"]
