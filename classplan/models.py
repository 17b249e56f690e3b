"""Value types shared by the scheduling engine.

All types are frozen dataclasses.  Mutations go through
:func:`dataclasses.replace`, which is what lets a blocked or failed request hand
the caller back the schedule exactly as it was read.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .config import default_duration_minutes
from .errors import InvalidScheduleError

# Monday..Sunday as stored by the school ("Thứ 2".."Thứ 7", "Chủ nhật").
WEEKDAY_TOKENS: Tuple[str, ...] = ("T2", "T3", "T4", "T5", "T6", "T7", "CN")
_ENGLISH_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_WEEKDAY_LOOKUP: Dict[str, int] = {}
for _idx, _token in enumerate(WEEKDAY_TOKENS):
    _WEEKDAY_LOOKUP[_token.lower()] = _idx
for _idx, _name in enumerate(_ENGLISH_NAMES):
    _WEEKDAY_LOOKUP[_name] = _idx
    _WEEKDAY_LOOKUP[_name[:3]] = _idx

KIND_REGULAR = "regular"
KIND_EXTRA = "extra"
KIND_MOVED = "moved"

MODE_ONLINE = "online"
MODE_OFFLINE = "offline"

RESOURCE_TEACHER = "teacher"
RESOURCE_ROOM = "room"


def weekday_token(day: int) -> str:
    """Return the stored token (``T2``..``CN``) for a Python weekday index."""

    return WEEKDAY_TOKENS[int(day) % 7]


def parse_weekday(token: str) -> Optional[int]:
    """Return the weekday index for ``token`` or ``None`` when unrecognised."""

    key = " ".join(str(token or "").split()).strip(".").lower()
    return _WEEKDAY_LOOKUP.get(key)


def combine(day: date, start: time) -> datetime:
    return datetime.combine(day, start.replace(tzinfo=None))


def _sorted_unique_dates(values: Iterable[date]) -> Tuple[date, ...]:
    return tuple(sorted(set(values)))


@dataclass(frozen=True)
class ExtraSession:
    """A one-off makeup session outside the weekly pattern."""

    date: date
    start_time: Optional[time] = None
    note: str = ""


@dataclass(frozen=True)
class SessionMove:
    """Relocation of the regular slot that originally fell on ``original_date``."""

    original_date: date
    new_date: date
    new_time: Optional[time] = None


@dataclass(frozen=True)
class ClassSchedule:
    """Static schedule description of one class.

    Exactly one of ``total_sessions_target`` and ``hard_end_date`` decides when
    generation stops.  ``end_date`` is a stored copy of the engine-derived end
    date; :func:`classplan.generator.compute_end_date` is the only writer.
    """

    id: str
    teacher_id: str = ""
    room_ref: Optional[str] = None
    mode: str = MODE_OFFLINE
    weekday_pattern: FrozenSet[int] = frozenset()
    time_of_day: Optional[time] = None
    duration_minutes: int = field(default_factory=default_duration_minutes)
    start_date: Optional[date] = None
    total_sessions_target: Optional[int] = None
    hard_end_date: Optional[date] = None
    off_days: Tuple[date, ...] = ()
    extra_sessions: Tuple[ExtraSession, ...] = ()
    moved_sessions: Tuple[SessionMove, ...] = ()
    end_date: Optional[date] = None
    name: str = ""
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "weekday_pattern", frozenset(int(d) % 7 for d in self.weekday_pattern)
        )
        object.__setattr__(self, "off_days", _sorted_unique_dates(self.off_days))
        object.__setattr__(
            self,
            "extra_sessions",
            tuple(sorted(self.extra_sessions, key=lambda e: (e.date, e.start_time or time.min))),
        )
        object.__setattr__(
            self,
            "moved_sessions",
            tuple(sorted(self.moved_sessions, key=lambda m: m.original_date)),
        )

    @property
    def effective_room(self) -> Optional[str]:
        """Room that can clash with other classes; online classes have none."""

        if self.mode == MODE_ONLINE:
            return None
        room = (self.room_ref or "").strip()
        return room or None

    def with_changes(self, **changes) -> "ClassSchedule":
        return replace(self, **changes)


@dataclass(frozen=True)
class SessionOccurrence:
    """A concrete dated meeting of a class; derived on every read."""

    class_id: str
    date: date
    kind: str = KIND_REGULAR
    start_time: Optional[time] = None
    duration_minutes: int = 90
    teacher_id: str = ""
    room_ref: Optional[str] = None
    ordinal: int = 0
    note: str = ""
    moved_from: Optional[date] = None

    @property
    def start(self) -> Optional[datetime]:
        if self.start_time is None:
            return None
        return combine(self.date, self.start_time)

    @property
    def end(self) -> Optional[datetime]:
        start = self.start
        if start is None:
            return None
        return start + timedelta(minutes=self.duration_minutes)

    @property
    def weekday_token(self) -> str:
        return weekday_token(self.date.weekday())


@dataclass(frozen=True)
class CandidateSlot:
    """A slot a caller wants to occupy, tested against other classes."""

    date: date
    start_time: time
    duration_minutes: int = 90
    teacher_id: str = ""
    room_ref: Optional[str] = None

    @property
    def start(self) -> datetime:
        return combine(self.date, self.start_time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class ConflictReport:
    """A session of another class that clashes with a candidate slot."""

    conflicting_class_id: str
    resource_type: str
    conflicting_time: Optional[time]
    conflicting_date: Optional[date] = None
    conflicting_ordinal: int = 0
    duration_minutes: int = 90


@dataclass(frozen=True)
class RescheduleRequest:
    """Move session ``target_ordinal`` of ``class_id`` to a new date/time."""

    class_id: str
    target_ordinal: int
    new_date: date
    new_time: Optional[time] = None
    override_conflict: bool = False
    requester_is_privileged: bool = False


def validate_schedule(schedule: ClassSchedule) -> None:
    """Raise :class:`InvalidScheduleError` unless ``schedule`` can produce an end date."""

    if not schedule.weekday_pattern:
        raise InvalidScheduleError(f"class {schedule.id}: weekday pattern is empty")
    if schedule.start_date is None:
        raise InvalidScheduleError(f"class {schedule.id}: start date is missing")
    if schedule.time_of_day is None:
        raise InvalidScheduleError(f"class {schedule.id}: time of day is missing")
    target = schedule.total_sessions_target
    if target is None and schedule.hard_end_date is None:
        raise InvalidScheduleError(
            f"class {schedule.id}: needs a session target or a hard end date"
        )
    if target is not None and schedule.hard_end_date is not None:
        raise InvalidScheduleError(
            f"class {schedule.id}: set either a session target or a hard end date, not both"
        )
    if target is not None and target <= 0:
        raise InvalidScheduleError(f"class {schedule.id}: session target must be positive")
    if schedule.duration_minutes <= 0:
        raise InvalidScheduleError(f"class {schedule.id}: duration must be positive")


__all__ = [
    "KIND_EXTRA",
    "KIND_MOVED",
    "KIND_REGULAR",
    "MODE_OFFLINE",
    "MODE_ONLINE",
    "RESOURCE_ROOM",
    "RESOURCE_TEACHER",
    "WEEKDAY_TOKENS",
    "CandidateSlot",
    "ClassSchedule",
    "ConflictReport",
    "ExtraSession",
    "RescheduleRequest",
    "SessionMove",
    "SessionOccurrence",
    "combine",
    "parse_weekday",
    "validate_schedule",
    "weekday_token",
]
