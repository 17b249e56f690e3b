"""Teacher/room conflict detection and alternative-time suggestions.

Detection is first-match-wins: :func:`check_conflict` reports the first class,
in the order the caller supplied them, that overlaps the candidate slot on a
shared teacher or room.  Callers that need every clash use
:func:`find_all_conflicts` instead.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from .config import ROOM_MATCH_SUBSTRING, operating_window, room_match_mode, suggestion_offset_minutes
from .errors import SafetyCapExceeded
from .generator import generate_occurrences
from .models import (
    RESOURCE_ROOM,
    RESOURCE_TEACHER,
    CandidateSlot,
    ClassSchedule,
    ConflictReport,
    SessionOccurrence,
)

_LOG = logging.getLogger(__name__)
_MINUTES_PER_DAY = 24 * 60


def _normalise_room(value: Optional[str]) -> str:
    return " ".join(str(value or "").split()).casefold()


def rooms_match(left: Optional[str], right: Optional[str], *, mode: Optional[str] = None) -> bool:
    """Return True when two room references denote the same physical room.

    ``None`` or blank references (online classes) never match.
    """

    a, b = _normalise_room(left), _normalise_room(right)
    if not a or not b:
        return False
    if (mode or room_match_mode()) == ROOM_MATCH_SUBSTRING:
        return a in b or b in a
    return a == b


def teachers_match(left: Optional[str], right: Optional[str]) -> bool:
    a, b = (left or "").strip(), (right or "").strip()
    return bool(a) and a == b


def _occurrences_for_scan(schedule: ClassSchedule) -> Sequence[SessionOccurrence]:
    try:
        return generate_occurrences(schedule)
    except SafetyCapExceeded as exc:
        _LOG.warning("Scanning partial schedule of class %s: %s", schedule.id, exc)
        return exc.partial


def _scan(
    candidate: CandidateSlot,
    excluding_class_id: Optional[str],
    all_classes: Iterable[ClassSchedule],
) -> Iterator[ConflictReport]:
    test_start, test_end = candidate.start, candidate.end
    mode = room_match_mode()
    for other in all_classes:
        if other.id == excluding_class_id:
            continue
        teacher_hit = teachers_match(candidate.teacher_id, other.teacher_id)
        room_hit = rooms_match(candidate.room_ref, other.effective_room, mode=mode)
        if not (teacher_hit or room_hit):
            continue
        for occ in _occurrences_for_scan(other):
            if occ.date != candidate.date or occ.start is None:
                continue
            if test_start < occ.end and test_end > occ.start:
                yield ConflictReport(
                    conflicting_class_id=other.id,
                    resource_type=RESOURCE_TEACHER if teacher_hit else RESOURCE_ROOM,
                    conflicting_time=occ.start_time,
                    conflicting_date=occ.date,
                    conflicting_ordinal=occ.ordinal,
                    duration_minutes=occ.duration_minutes,
                )


def check_conflict(
    candidate: CandidateSlot,
    excluding_class_id: Optional[str],
    all_classes: Iterable[ClassSchedule],
) -> Optional[ConflictReport]:
    """Return the first clash of ``candidate`` with another class, or ``None``."""

    return next(_scan(candidate, excluding_class_id, all_classes), None)


def find_all_conflicts(
    candidate: CandidateSlot,
    excluding_class_id: Optional[str],
    all_classes: Iterable[ClassSchedule],
) -> List[ConflictReport]:
    """Return one report per overlapping occurrence of every other class."""

    return list(_scan(candidate, excluding_class_id, all_classes))


def suggest_alternatives(conflict_date: date, busy_time: Union[time, str]) -> List[str]:
    """Return ``HH:MM`` start times shifted before and after ``busy_time``.

    Only times inside the operating window are offered.  The suggestions are
    not checked against other classes; callers must validate before committing.
    """

    if isinstance(busy_time, str):
        busy_time = time.fromisoformat(busy_time.strip())
    offset = suggestion_offset_minutes()
    window_start, window_end = operating_window()
    busy = busy_time.hour * 60 + busy_time.minute

    suggestions: List[str] = []
    for minutes in (busy - offset, busy + offset):
        if minutes < 0 or minutes >= _MINUTES_PER_DAY:
            continue
        candidate = time(minutes // 60, minutes % 60)
        if window_start <= candidate <= window_end:
            suggestions.append(candidate.strftime("%H:%M"))
    _LOG.debug("Suggestions for %s around %s: %s", conflict_date, busy_time, suggestions)
    return suggestions


__all__ = [
    "check_conflict",
    "find_all_conflicts",
    "rooms_match",
    "suggest_alternatives",
    "teachers_match",
]
