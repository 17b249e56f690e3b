"""Explicit class-edit commands.

Every command reads the stored class, applies one change and recomputes the
occurrences and end date before saving, all under the chain's class lock.  A
schedule that is not fully configured yet is saved with ``end_date=None``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, time
from typing import Any, Iterable, Union

from ..codec import load_off_days_csv, parse_time
from ..errors import InvalidScheduleError
from ..generator import project
from ..models import ClassSchedule, ExtraSession, parse_weekday
from .reschedule import RescheduleChain, UpdatedSchedule

_LOG = logging.getLogger(__name__)

Weekday = Union[int, str]


def _weekdays(values: Iterable[Weekday]) -> frozenset:
    days = set()
    for value in values:
        if isinstance(value, int):
            if not 0 <= value <= 6:
                raise InvalidScheduleError(f"weekday index out of range: {value}")
            days.add(value)
            continue
        parsed = parse_weekday(value)
        if parsed is None:
            raise InvalidScheduleError(f"unknown weekday: {value!r}")
        days.add(parsed)
    return frozenset(days)


class ClassEditCommands:
    def __init__(self, chain: RescheduleChain) -> None:
        self.chain = chain

    @property
    def repository(self):
        return self.chain.repository

    def create_class(self, schedule: ClassSchedule) -> UpdatedSchedule:
        """Store a new class together with its derived end date."""

        projection = project(replace(schedule, version=0))
        saved = self.repository.save_class(projection.schedule, expected_version=0)
        _LOG.info("Created class %s ending %s", saved.id, projection.end_date)
        return UpdatedSchedule(
            schedule=saved,
            occurrences=projection.occurrences,
            end_date=projection.end_date,
        )

    def set_pattern(self, class_id: str, weekdays: Iterable[Weekday]) -> UpdatedSchedule:
        pattern = _weekdays(weekdays)
        return self.chain.apply_edit(class_id, lambda s: replace(s, weekday_pattern=pattern))

    def set_time(self, class_id: str, value: Union[time, str, None]) -> UpdatedSchedule:
        start = parse_time(value)
        return self.chain.apply_edit(class_id, lambda s: replace(s, time_of_day=start))

    def set_target(self, class_id: str, total_sessions: int) -> UpdatedSchedule:
        """Stop after ``total_sessions`` sessions; clears any hard end date."""

        if int(total_sessions) <= 0:
            raise InvalidScheduleError("session target must be positive")
        return self.chain.apply_edit(
            class_id,
            lambda s: replace(s, total_sessions_target=int(total_sessions), hard_end_date=None),
        )

    def set_hard_end_date(self, class_id: str, day: date) -> UpdatedSchedule:
        """Stop on ``day``; clears the session target."""

        return self.chain.apply_edit(
            class_id, lambda s: replace(s, hard_end_date=day, total_sessions_target=None)
        )

    def add_off_day(self, class_id: str, day: date) -> UpdatedSchedule:
        return self.add_off_days(class_id, [day])

    def add_off_days(self, class_id: str, days: Iterable[date]) -> UpdatedSchedule:
        new_days = tuple(days)
        return self.chain.apply_edit(
            class_id, lambda s: replace(s, off_days=s.off_days + new_days)
        )

    def remove_off_day(self, class_id: str, day: date) -> UpdatedSchedule:
        def _remove(schedule: ClassSchedule) -> ClassSchedule:
            if day not in schedule.off_days:
                raise InvalidScheduleError(f"{day} is not an off-day of class {class_id}")
            return replace(schedule, off_days=tuple(d for d in schedule.off_days if d != day))

        return self.chain.apply_edit(class_id, _remove)

    def import_off_days(self, class_id: str, source: Any) -> UpdatedSchedule:
        """Add every holiday listed in a CSV file (``date`` column)."""

        days = load_off_days_csv(source)
        _LOG.info("Importing %d holiday(s) into class %s", len(days), class_id)
        return self.add_off_days(class_id, days)

    def add_extra_session(
        self,
        class_id: str,
        day: date,
        start_time: Union[time, str, None] = None,
        note: str = "",
    ) -> UpdatedSchedule:
        extra = ExtraSession(date=day, start_time=parse_time(start_time), note=note)

        def _add(schedule: ClassSchedule) -> ClassSchedule:
            if any(e.date == day for e in schedule.extra_sessions):
                raise InvalidScheduleError(f"class {class_id} already has an extra session on {day}")
            return replace(schedule, extra_sessions=schedule.extra_sessions + (extra,))

        return self.chain.apply_edit(class_id, _add)

    def remove_extra_session(self, class_id: str, day: date) -> UpdatedSchedule:
        def _remove(schedule: ClassSchedule) -> ClassSchedule:
            kept = tuple(e for e in schedule.extra_sessions if e.date != day)
            if len(kept) == len(schedule.extra_sessions):
                raise InvalidScheduleError(f"class {class_id} has no extra session on {day}")
            return replace(schedule, extra_sessions=kept)

        return self.chain.apply_edit(class_id, _remove)


def describe(result: UpdatedSchedule) -> str:
    """Short status line for an edit result."""

    if result.end_date is None:
        return "not yet configured"
    if result.shifted and result.previous_end_date is not None:
        return f"schedule shifted: ends {result.end_date} (was {result.previous_end_date})"
    return f"ends {result.end_date}"


__all__ = ["ClassEditCommands", "describe"]
