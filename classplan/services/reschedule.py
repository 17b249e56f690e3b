"""Validated, serialized moves and cancellations of single sessions.

:class:`RescheduleChain` is the only writer of schedules outside the class
edit commands.  Each request runs ``VALIDATING -> {BLOCKED | COMMITTING} ->
COMMITTED`` while holding a lock for its class id; the repository's version
check catches writers in other processes.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from datetime import date, time
from enum import Enum
from typing import Callable, Deque, Dict, Optional, Sequence, Tuple, Union

from ..conflicts import check_conflict, suggest_alternatives
from ..errors import InvalidScheduleError
from ..generator import applied_moves, generate_occurrences, project
from ..models import (
    KIND_EXTRA,
    KIND_MOVED,
    CandidateSlot,
    ClassSchedule,
    ConflictReport,
    RescheduleRequest,
    SessionMove,
    SessionOccurrence,
)
from ..storage.base import ClassRepository

_LOG = logging.getLogger(__name__)


class ChainState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    COMMITTING = "committing"
    COMMITTED = "committed"


@dataclass(frozen=True)
class UpdatedSchedule:
    """Saved schedule plus the projection computed from it."""

    schedule: ClassSchedule
    occurrences: Tuple[SessionOccurrence, ...]
    end_date: Optional[date]
    previous_end_date: Optional[date] = None
    override_used: bool = False

    @property
    def shifted(self) -> bool:
        return self.end_date != self.previous_end_date


@dataclass(frozen=True)
class ConflictBlocked:
    """The requested slot clashes with another class; nothing was written."""

    schedule: ClassSchedule
    report: ConflictReport
    suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PermissionDenied(ConflictBlocked):
    """An override was requested by someone not allowed to override."""


RescheduleResult = Union[UpdatedSchedule, ConflictBlocked]


def _stored_time(schedule: ClassSchedule, new_time: time) -> Optional[time]:
    return None if new_time == schedule.time_of_day else new_time


def _find_move(schedule: ClassSchedule, target: SessionOccurrence) -> Optional[SessionMove]:
    for move in schedule.moved_sessions:
        if move.original_date == target.moved_from and move.new_date == target.date:
            return move
    return None


def apply_move(
    schedule: ClassSchedule, target: SessionOccurrence, new_date: date, new_time: time
) -> ClassSchedule:
    """Return ``schedule`` with ``target`` relocated to ``new_date`` at ``new_time``."""

    stored_time = _stored_time(schedule, new_time)
    if target.kind == KIND_EXTRA:
        extras = []
        for extra in schedule.extra_sessions:
            if extra.date == target.date:
                extra = replace(extra, date=new_date, start_time=stored_time)
            extras.append(extra)
        return replace(schedule, extra_sessions=tuple(extras))

    moves = list(schedule.moved_sessions)
    if target.kind == KIND_MOVED:
        anchor = target.moved_from
        existing = _find_move(schedule, target)
        if existing is not None:
            moves.remove(existing)
    else:
        anchor = target.date
    if not (new_date == anchor and stored_time is None):
        moves.append(SessionMove(original_date=anchor, new_date=new_date, new_time=stored_time))
    return replace(schedule, moved_sessions=tuple(moves))


def apply_cancel(schedule: ClassSchedule, target: SessionOccurrence) -> ClassSchedule:
    """Return ``schedule`` without the session ``target``.

    The session target is unchanged, so generation adds a slot at the tail.
    """

    if target.kind == KIND_EXTRA:
        extras = tuple(e for e in schedule.extra_sessions if e.date != target.date)
        return replace(schedule, extra_sessions=extras)
    if target.kind == KIND_MOVED:
        existing = _find_move(schedule, target)
        moves = tuple(m for m in schedule.moved_sessions if m is not existing)
        return replace(
            schedule,
            moved_sessions=moves,
            off_days=schedule.off_days + (target.moved_from,),
        )
    return replace(schedule, off_days=schedule.off_days + (target.date,))


def prune_inert_moves(schedule: ClassSchedule) -> ClassSchedule:
    used = applied_moves(schedule)
    if len(used) == len(schedule.moved_sessions):
        return schedule
    _LOG.info(
        "Class %s: dropping %d inert move(s)",
        schedule.id,
        len(schedule.moved_sessions) - len(used),
    )
    return replace(schedule, moved_sessions=used)


class RescheduleChain:
    """Apply single-session moves and cancellations to stored schedules.

    ``clock`` returns "today"; sessions dated before it are locked.
    """

    def __init__(
        self,
        repository: ClassRepository,
        *,
        clock: Callable[[], date] = date.today,
        history_limit: int = 50,
    ) -> None:
        self.repository = repository
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._states: Dict[str, ChainState] = {}
        self.history: Deque[Tuple[str, ChainState]] = deque(maxlen=max(1, history_limit))

    # -- state machine -------------------------------------------------
    def _lock_for(self, class_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(class_id, threading.Lock())

    def _enter(self, class_id: str, state: ChainState) -> None:
        self._states[class_id] = state
        self.history.append((class_id, state))
        _LOG.debug("Class %s -> %s", class_id, state.value)

    def state(self, class_id: str) -> ChainState:
        return self._states.get(class_id, ChainState.IDLE)

    # -- helpers --------------------------------------------------------
    def _blocked(
        self,
        schedule: ClassSchedule,
        report: ConflictReport,
        candidate: CandidateSlot,
        *,
        denied: bool = False,
    ) -> ConflictBlocked:
        self._enter(schedule.id, ChainState.BLOCKED)
        busy = report.conflicting_time or candidate.start_time
        suggestions = tuple(suggest_alternatives(candidate.date, busy))
        result_type = PermissionDenied if denied else ConflictBlocked
        _LOG.info(
            "%s for class %s on %s: %s clash with class %s",
            result_type.__name__,
            schedule.id,
            candidate.date,
            report.resource_type,
            report.conflicting_class_id,
        )
        return result_type(schedule=schedule, report=report, suggestions=suggestions)

    def _others(self, class_id: str) -> Sequence[ClassSchedule]:
        return [c for c in self.repository.list_classes() if c.id != class_id]

    def _locked_check(self, target: SessionOccurrence, today: date) -> None:
        if target.date < today:
            raise InvalidScheduleError(
                f"session {target.ordinal} on {target.date} is in the past and locked"
            )

    def _commit(
        self,
        original: ClassSchedule,
        mutated: ClassSchedule,
        *,
        candidate: Optional[CandidateSlot] = None,
        lands_on: Optional[date] = None,
        override_used: bool = False,
    ) -> RescheduleResult:
        self._enter(original.id, ChainState.COMMITTING)
        projection = project(prune_inert_moves(mutated))
        if lands_on is not None and sum(occ.date == lands_on for occ in projection.occurrences) != 1:
            raise InvalidScheduleError(
                f"class {original.id}: a session cannot be placed on {lands_on}"
            )
        if candidate is not None:
            # Another class may have taken the slot since validation started.
            report = check_conflict(candidate, original.id, self._others(original.id))
            if report is not None:
                return self._blocked(original, report, candidate)
        saved = self.repository.save_class(projection.schedule, expected_version=original.version)
        self._enter(original.id, ChainState.COMMITTED)
        return UpdatedSchedule(
            schedule=saved,
            occurrences=projection.occurrences,
            end_date=projection.end_date,
            previous_end_date=original.end_date,
            override_used=override_used,
        )

    # -- operations -----------------------------------------------------
    def reschedule(self, request: RescheduleRequest) -> RescheduleResult:
        """Move session ``request.target_ordinal`` to a new date and time.

        Raises :class:`InvalidScheduleError` for requests that can never
        apply; conflicts come back as :class:`ConflictBlocked` or
        :class:`PermissionDenied` with the schedule untouched.
        """

        class_id = request.class_id
        with self._lock_for(class_id):
            self._enter(class_id, ChainState.VALIDATING)
            try:
                return self._reschedule(request)
            finally:
                self._enter(class_id, ChainState.IDLE)

    def _reschedule(self, request: RescheduleRequest) -> RescheduleResult:
        schedule = self.repository.get_class(request.class_id)
        occurrences = generate_occurrences(schedule)
        ordinal = request.target_ordinal
        if not 1 <= ordinal <= len(occurrences):
            raise InvalidScheduleError(
                f"class {schedule.id} has no session {ordinal} (1..{len(occurrences)})"
            )
        target = occurrences[ordinal - 1]
        today = self.clock()
        self._locked_check(target, today)

        new_date = request.new_date
        new_time = request.new_time or target.start_time
        if new_time is None:
            raise InvalidScheduleError(f"class {schedule.id}: no time given and none configured")
        if new_date < today:
            raise InvalidScheduleError(f"cannot move a session into the past ({new_date})")
        if ordinal > 1 and new_date <= occurrences[ordinal - 2].date:
            raise InvalidScheduleError(
                f"new date {new_date} must follow session {ordinal - 1} "
                f"on {occurrences[ordinal - 2].date}"
            )
        if new_date in schedule.off_days:
            raise InvalidScheduleError(f"{new_date} is an off-day of class {schedule.id}")
        # Later regular slots regenerate past the new anchor; extras stay put.
        if target.kind == KIND_EXTRA:
            taken = {occ.date for occ in occurrences if occ.ordinal != ordinal}
        else:
            taken = {e.date for e in schedule.extra_sessions}
        if new_date in taken:
            raise InvalidScheduleError(f"class {schedule.id} already meets on {new_date}")

        candidate = CandidateSlot(
            date=new_date,
            start_time=new_time,
            duration_minutes=schedule.duration_minutes,
            teacher_id=schedule.teacher_id,
            room_ref=schedule.effective_room,
        )
        report = check_conflict(candidate, schedule.id, self._others(schedule.id))
        override_used = False
        if report is not None:
            if not request.override_conflict:
                return self._blocked(schedule, report, candidate)
            if not request.requester_is_privileged:
                return self._blocked(schedule, report, candidate, denied=True)
            override_used = True
            _LOG.warning(
                "Conflict with class %s overridden for class %s on %s",
                report.conflicting_class_id,
                schedule.id,
                new_date,
            )

        mutated = apply_move(schedule, target, new_date, new_time)
        result = self._commit(
            schedule,
            mutated,
            candidate=None if override_used else candidate,
            lands_on=new_date,
            override_used=override_used,
        )
        if isinstance(result, UpdatedSchedule):
            _LOG.info(
                "Class %s session %d moved %s -> %s; end date %s -> %s",
                schedule.id,
                ordinal,
                target.date,
                new_date,
                result.previous_end_date,
                result.end_date,
            )
        return result

    def cancel_session(self, class_id: str, day: date) -> UpdatedSchedule:
        """Cancel the session of ``class_id`` dated ``day``."""

        with self._lock_for(class_id):
            self._enter(class_id, ChainState.VALIDATING)
            try:
                schedule = self.repository.get_class(class_id)
                target = next(
                    (occ for occ in generate_occurrences(schedule) if occ.date == day), None
                )
                if target is None:
                    raise InvalidScheduleError(f"class {class_id} has no session on {day}")
                self._locked_check(target, self.clock())
                result = self._commit(schedule, apply_cancel(schedule, target))
                _LOG.info(
                    "Class %s session %d on %s cancelled; end date %s -> %s",
                    class_id,
                    target.ordinal,
                    day,
                    result.previous_end_date,
                    result.end_date,
                )
                return result
            finally:
                self._enter(class_id, ChainState.IDLE)

    def apply_edit(
        self, class_id: str, mutate: Callable[[ClassSchedule], ClassSchedule]
    ) -> UpdatedSchedule:
        """Apply a class edit and recompute, under the class lock."""

        with self._lock_for(class_id):
            self._enter(class_id, ChainState.VALIDATING)
            try:
                schedule = self.repository.get_class(class_id)
                return self._commit(schedule, mutate(schedule))
            finally:
                self._enter(class_id, ChainState.IDLE)


__all__ = [
    "ChainState",
    "ConflictBlocked",
    "PermissionDenied",
    "RescheduleChain",
    "RescheduleResult",
    "UpdatedSchedule",
    "apply_cancel",
    "apply_move",
    "prune_inert_moves",
]
