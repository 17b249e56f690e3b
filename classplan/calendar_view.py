"""Calendar window projection across many classes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from .codec import format_time, occurrence_to_dict
from .conflicts import rooms_match, teachers_match
from .errors import SafetyCapExceeded
from .generator import generate_occurrences
from .models import MODE_ONLINE, ClassSchedule, SessionOccurrence

_LOG = logging.getLogger(__name__)

ROOM_PREFIX = "Phòng"

EVENT_COLUMNS = [
    "classId",
    "className",
    "ordinal",
    "date",
    "weekday",
    "start",
    "end",
    "kind",
    "teacher",
    "room",
    "hasConflict",
]


def room_label(schedule: ClassSchedule) -> str:
    """Short room label for calendar cells: ``"Phòng 101 (tầng 2)"`` -> ``"P.101"``."""

    if schedule.mode == MODE_ONLINE:
        return "Online"
    location = (schedule.room_ref or "").strip()
    if not location:
        return "TBD"
    if ROOM_PREFIX in location:
        rest = location.split(ROOM_PREFIX, 1)[1].split()
        if rest:
            return f"P.{rest[0]}"
    return location


@dataclass(frozen=True)
class CalendarEvent:
    occurrence: SessionOccurrence
    class_name: str
    room: str
    has_conflict: bool = False

    @property
    def event_id(self) -> str:
        occ = self.occurrence
        return f"{occ.class_id}-{occ.date.isoformat()}"


def _matches_room_filter(schedule: ClassSchedule, wanted: str) -> bool:
    needle = wanted.strip().casefold()
    label = room_label(schedule).casefold()
    return needle in label or needle in (schedule.room_ref or "").casefold()


def _class_occurrences(schedule: ClassSchedule) -> Sequence[SessionOccurrence]:
    try:
        return generate_occurrences(schedule)
    except SafetyCapExceeded as exc:
        _LOG.warning("Calendar shows partial schedule of class %s: %s", schedule.id, exc)
        return exc.partial


def _clash(a: SessionOccurrence, b: SessionOccurrence) -> bool:
    if a.start is None or b.start is None:
        return False
    if not (a.start < b.end and a.end > b.start):
        return False
    return teachers_match(a.teacher_id, b.teacher_id) or rooms_match(a.room_ref, b.room_ref)


def flag_conflicts(events: Sequence[CalendarEvent]) -> List[CalendarEvent]:
    """Mark every event that overlaps another event on a shared teacher or room."""

    flagged = [False] * len(events)
    for i in range(len(events)):
        for j in range(i + 1, len(events)):
            if _clash(events[i].occurrence, events[j].occurrence):
                flagged[i] = flagged[j] = True
    return [replace(evt, has_conflict=hit) for evt, hit in zip(events, flagged)]


def calendar_events(
    classes: Iterable[ClassSchedule],
    start: date,
    end: date,
    *,
    teacher: Optional[str] = None,
    room: Optional[str] = None,
) -> List[CalendarEvent]:
    """Return the sessions of ``classes`` dated ``start``..``end`` (inclusive).

    Ordinals are those of the full course, not of the window.  ``teacher``
    keeps only that teacher's classes; ``room`` keeps classes whose room label
    or location contains the given text ("Online" selects online classes).
    """

    events: List[CalendarEvent] = []
    for schedule in classes:
        if teacher and not teachers_match(schedule.teacher_id, teacher):
            continue
        if room and not _matches_room_filter(schedule, room):
            continue
        label = room_label(schedule)
        for occ in _class_occurrences(schedule):
            if start <= occ.date <= end:
                events.append(CalendarEvent(occ, schedule.name or schedule.id, label))

    events.sort(key=lambda e: (e.occurrence.date, format_time(e.occurrence.start_time), e.occurrence.class_id))
    return flag_conflicts(events)


def events_frame(events: Sequence[CalendarEvent]) -> pd.DataFrame:
    """Tabulate calendar events, one row per session."""

    rows = []
    for evt in events:
        occ = evt.occurrence
        rows.append(
            {
                "classId": occ.class_id,
                "className": evt.class_name,
                "ordinal": occ.ordinal,
                "date": occ.date.isoformat(),
                "weekday": occ.weekday_token,
                "start": format_time(occ.start_time),
                "end": occ.end.strftime("%H:%M") if occ.end is not None else "",
                "kind": occ.kind,
                "teacher": occ.teacher_id,
                "room": evt.room,
                "hasConflict": evt.has_conflict,
            }
        )
    return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def occurrences_frame(occurrences: Sequence[SessionOccurrence]) -> pd.DataFrame:
    frame = pd.DataFrame([occurrence_to_dict(occ) for occ in occurrences])
    if not frame.empty:
        frame["date"] = pd.to_datetime(frame["date"], errors="coerce")
    return frame


__all__ = [
    "CalendarEvent",
    "calendar_events",
    "events_frame",
    "flag_conflicts",
    "occurrences_frame",
    "room_label",
]
