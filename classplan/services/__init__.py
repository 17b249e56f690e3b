"""Service-layer entry points for schedule changes."""

from .commands import ClassEditCommands, describe
from .reschedule import (
    ChainState,
    ConflictBlocked,
    PermissionDenied,
    RescheduleChain,
    UpdatedSchedule,
)

__all__ = [
    "ChainState",
    "ClassEditCommands",
    "ConflictBlocked",
    "PermissionDenied",
    "RescheduleChain",
    "UpdatedSchedule",
    "describe",
]
