"""Occurrence generation, ordinal numbering and end-date derivation.

The generator walks the calendar one day at a time from the class start date,
the same way holiday-aware weekday patterns are expanded elsewhere in the
school tooling, but stops on a session count instead of a fixed window.
Ordinals are never stored: :func:`generate_occurrences` renumbers on every
call so edits to off-days, extras or moves show up immediately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import safety_horizon_days
from .errors import InvalidScheduleError, SafetyCapExceeded
from .models import (
    KIND_EXTRA,
    KIND_MOVED,
    KIND_REGULAR,
    ClassSchedule,
    SessionMove,
    SessionOccurrence,
    validate_schedule,
)

_LOG = logging.getLogger(__name__)
_ONE_DAY = timedelta(days=1)


def _occurrence(
    schedule: ClassSchedule,
    day: date,
    kind: str,
    *,
    start_time: Optional[time] = None,
    note: str = "",
    moved_from: Optional[date] = None,
) -> SessionOccurrence:
    return SessionOccurrence(
        class_id=schedule.id,
        date=day,
        kind=kind,
        start_time=start_time or schedule.time_of_day,
        duration_minutes=schedule.duration_minutes,
        teacher_id=schedule.teacher_id,
        room_ref=schedule.effective_room,
        note=note,
        moved_from=moved_from,
    )


def _with_extras(
    schedule: ClassSchedule, slots: Sequence[SessionOccurrence]
) -> List[SessionOccurrence]:
    taken = {occ.date for occ in slots}
    combined = list(slots)
    for extra in schedule.extra_sessions:
        if extra.date in taken:
            continue
        taken.add(extra.date)
        combined.append(
            _occurrence(
                schedule, extra.date, KIND_EXTRA, start_time=extra.start_time, note=extra.note
            )
        )
    combined.sort(key=lambda occ: occ.date)
    return combined


def generate(
    schedule: ClassSchedule,
    *,
    until: Optional[date] = None,
    lookahead: int = 0,
    ignore_hard_end: bool = False,
    horizon_days: Optional[int] = None,
) -> List[SessionOccurrence]:
    """Return the class occurrences in date order, without ordinals.

    Parameters
    ----------
    schedule:
        The class to expand.
    until:
        Optional last calendar date to walk to (calendar windows).
    lookahead:
        Extra slots to generate past the session target.
    ignore_hard_end:
        Stop on the session target even when a hard end date is set.
    horizon_days:
        Override for the safety horizon (number of walked days).

    Raises :class:`SafetyCapExceeded` with the partial list when the horizon is
    exhausted before the session target is met.  Walks bounded by ``until`` or
    a hard end date stop on that date instead.
    """

    slots, _ = _walk(
        schedule,
        until=until,
        lookahead=lookahead,
        ignore_hard_end=ignore_hard_end,
        horizon_days=horizon_days,
    )
    return _with_extras(schedule, slots)


def applied_moves(schedule: ClassSchedule) -> Tuple[SessionMove, ...]:
    """Return the recorded moves that actually relocate a session.

    Moves whose original date is never reached, or that went stale, are inert.
    """

    _, applied = _walk(schedule)
    return tuple(applied)


def _walk(
    schedule: ClassSchedule,
    *,
    until: Optional[date] = None,
    lookahead: int = 0,
    ignore_hard_end: bool = False,
    horizon_days: Optional[int] = None,
) -> Tuple[List[SessionOccurrence], List[SessionMove]]:
    horizon = horizon_days if horizon_days is not None else safety_horizon_days()
    hard_end = None if ignore_hard_end else schedule.hard_end_date
    target = schedule.total_sessions_target
    slot_cap: Optional[int] = None
    if hard_end is None and target is not None:
        slot_cap = max(0, target) + max(0, lookahead)

    date_bounded = hard_end is not None or until is not None
    has_stop_rule = date_bounded or slot_cap is not None
    if not (schedule.weekday_pattern and schedule.start_date and has_stop_rule):
        # Not configured yet: only the explicit extra sessions exist.
        return [], []

    pattern = schedule.weekday_pattern
    off_days = set(schedule.off_days)
    # A date can anchor several moves when an earlier move sends the walk back
    # over it; they fire in record order, one per visit.
    pending: Dict[date, List[SessionMove]] = {}
    for move in schedule.moved_sessions:
        pending.setdefault(move.original_date, []).append(move)
    applied: List[SessionMove] = []

    slots: List[SessionOccurrence] = []
    last: Optional[date] = None
    day = schedule.start_date
    steps = 0
    while True:
        if hard_end is not None and day > hard_end:
            break
        if until is not None and day > until:
            break
        if slot_cap is not None and len(slots) >= slot_cap:
            break
        # Date-bounded walks always terminate; only target-driven ones can run away.
        if not date_bounded and steps >= horizon:
            partial = index_occurrences(_with_extras(schedule, slots))
            raise SafetyCapExceeded(
                f"class {schedule.id}: stopped after {horizon} days with "
                f"{len(slots)} of {slot_cap if slot_cap is not None else '?'} sessions",
                partial=partial,
            )
        steps += 1

        if day.weekday() in pattern:
            queued = pending.get(day)
            if queued:
                move = queued.pop(0)
                if last is not None and move.new_date <= last:
                    _LOG.warning(
                        "Ignoring stale move of %s -> %s for class %s (previous session %s)",
                        day,
                        move.new_date,
                        schedule.id,
                        last,
                    )
                elif move.new_date in off_days:
                    _LOG.warning(
                        "Ignoring stale move of %s -> %s for class %s (off-day)",
                        day,
                        move.new_date,
                        schedule.id,
                    )
                else:
                    applied.append(move)
                    slots.append(
                        _occurrence(
                            schedule,
                            move.new_date,
                            KIND_MOVED,
                            start_time=move.new_time,
                            moved_from=day,
                        )
                    )
                    last = move.new_date
                    # The moved date is the new anchor for every later slot.
                    day = max(move.new_date + _ONE_DAY, schedule.start_date)
                    continue
            if day not in off_days:
                slots.append(_occurrence(schedule, day, KIND_REGULAR))
                last = day
        day += _ONE_DAY

    return slots, applied


def index_occurrences(
    occurrences: Iterable[SessionOccurrence],
) -> Tuple[SessionOccurrence, ...]:
    """Number ``occurrences`` 1..n in chronological order."""

    ordered = sorted(occurrences, key=lambda occ: (occ.date, occ.start_time or time.min))
    return tuple(replace(occ, ordinal=idx) for idx, occ in enumerate(ordered, start=1))


def generate_occurrences(schedule: ClassSchedule, **kwargs) -> Tuple[SessionOccurrence, ...]:
    """Return the indexed occurrences of ``schedule`` (see :func:`generate`)."""

    return index_occurrences(generate(schedule, **kwargs))


def compute_end_date(schedule: ClassSchedule) -> date:
    """Return the authoritative course end date of ``schedule``.

    Generation runs in "stop after the session target" mode; a schedule that
    only has a hard end date ends on its last session before that date.
    """

    validate_schedule(schedule)
    if schedule.total_sessions_target is not None:
        occurrences = generate(schedule, ignore_hard_end=True)
    else:
        occurrences = generate(schedule)
    if not occurrences:
        raise InvalidScheduleError(f"class {schedule.id}: no sessions fall in the schedule")
    return occurrences[-1].date


@dataclass(frozen=True)
class Projection:
    """A schedule together with the occurrences and end date derived from it."""

    schedule: ClassSchedule
    occurrences: Tuple[SessionOccurrence, ...]
    end_date: Optional[date]
    previous_end_date: Optional[date] = None

    @property
    def shifted(self) -> bool:
        return self.end_date != self.previous_end_date


def project(schedule: ClassSchedule) -> Projection:
    """Recompute occurrences and end date together and stamp the end date.

    An unconfigured schedule projects with ``end_date=None``;
    :class:`SafetyCapExceeded` propagates so callers can abort a write.
    """

    occurrences = generate_occurrences(schedule)
    try:
        end_date: Optional[date] = compute_end_date(schedule)
    except InvalidScheduleError as exc:
        _LOG.info("Class %s not yet configured: %s", schedule.id, exc)
        end_date = None
    if end_date != schedule.end_date:
        _LOG.info(
            "Class %s end date shifted from %s to %s", schedule.id, schedule.end_date, end_date
        )
    return Projection(
        schedule=replace(schedule, end_date=end_date),
        occurrences=occurrences,
        end_date=end_date,
        previous_end_date=schedule.end_date,
    )


__all__ = [
    "Projection",
    "applied_moves",
    "compute_end_date",
    "generate",
    "generate_occurrences",
    "index_occurrences",
    "project",
]
