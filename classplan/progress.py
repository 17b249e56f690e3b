"""Course progress summaries for dashboards."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from .codec import format_time
from .models import SessionOccurrence

STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_FINISHED = "finished"


@dataclass(frozen=True)
class CourseProgress:
    status: str
    completed: int
    total: int
    next_session: Optional[SessionOccurrence] = None

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    @property
    def percent(self) -> float:
        if not self.total:
            return 0.0
        return round(100.0 * self.completed / self.total, 1)


def next_session(occurrences: Sequence[SessionOccurrence], today: date) -> Optional[SessionOccurrence]:
    """Return the first session dated ``today`` or later."""

    for occ in occurrences:
        if occ.date >= today:
            return occ
    return None


def course_progress(occurrences: Sequence[SessionOccurrence], today: date) -> CourseProgress:
    """Summarise how far a course is on ``today``.

    Sessions dated before ``today`` count as completed.  A course with no
    sessions, or whose first session is still ahead, is upcoming.
    """

    ordered = sorted(occurrences, key=lambda occ: occ.date)
    total = len(ordered)
    completed = sum(1 for occ in ordered if occ.date < today)
    if not ordered or today < ordered[0].date:
        status = STATUS_UPCOMING
    elif today > ordered[-1].date:
        status = STATUS_FINISHED
    else:
        status = STATUS_ACTIVE
    return CourseProgress(
        status=status,
        completed=completed,
        total=total,
        next_session=next_session(ordered, today),
    )


def describe_next_session(progress: CourseProgress) -> str:
    """One-line summary such as ``"Session 4/12 on 2024-01-08 (T2) at 18:30"``."""

    occ = progress.next_session
    if occ is None:
        return "No upcoming sessions"
    line = f"Session {occ.ordinal}/{progress.total} on {occ.date.isoformat()} ({occ.weekday_token})"
    if occ.start_time is not None:
        line += f" at {format_time(occ.start_time)}"
    return line


__all__ = [
    "STATUS_ACTIVE",
    "STATUS_FINISHED",
    "STATUS_UPCOMING",
    "CourseProgress",
    "course_progress",
    "describe_next_session",
    "next_session",
]
