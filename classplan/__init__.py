"""Scheduling and conflict-resolution engine for recurring class sessions."""

from .conflicts import check_conflict, find_all_conflicts, suggest_alternatives
from .errors import (
    ClassNotFoundError,
    InvalidScheduleError,
    SafetyCapExceeded,
    SchedulingError,
    StaleScheduleError,
)
from .generator import compute_end_date, generate, generate_occurrences, index_occurrences
from .models import (
    CandidateSlot,
    ClassSchedule,
    ConflictReport,
    ExtraSession,
    RescheduleRequest,
    SessionMove,
    SessionOccurrence,
)
from .services import (
    ClassEditCommands,
    ConflictBlocked,
    PermissionDenied,
    RescheduleChain,
    UpdatedSchedule,
)

__all__ = [
    "CandidateSlot",
    "ClassEditCommands",
    "ClassNotFoundError",
    "ClassSchedule",
    "ConflictBlocked",
    "ConflictReport",
    "ExtraSession",
    "InvalidScheduleError",
    "PermissionDenied",
    "RescheduleChain",
    "RescheduleRequest",
    "SafetyCapExceeded",
    "SchedulingError",
    "SessionMove",
    "SessionOccurrence",
    "StaleScheduleError",
    "UpdatedSchedule",
    "check_conflict",
    "compute_end_date",
    "find_all_conflicts",
    "generate",
    "generate_occurrences",
    "index_occurrences",
    "suggest_alternatives",
]
