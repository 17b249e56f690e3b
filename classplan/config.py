"""Engine configuration.

Every setting is read from the environment when it is needed so tests and
deployments can override a value without reloading modules.  Malformed values
raise :class:`RuntimeError` with the offending variable name, the same way the
session TTL helpers surface a broken deployment early instead of falling back
silently.
"""

from __future__ import annotations

import os
from datetime import time
from typing import FrozenSet

DEFAULT_SAFETY_HORIZON_DAYS = 500
DEFAULT_DURATION_MINUTES = 90
DEFAULT_DAY_START = time(7, 0)
DEFAULT_DAY_END = time(21, 0)
DEFAULT_SUGGESTION_OFFSET_MINUTES = 120
DEFAULT_PRIVILEGED_ROLES = ("admin", "manager")
DEFAULT_DB_PATH = "classplan.db"

ROOM_MATCH_EXACT = "exact"
ROOM_MATCH_SUBSTRING = "substring"

_HORIZON_ENV = "CLASSPLAN_SAFETY_HORIZON_DAYS"
_DURATION_ENV = "CLASSPLAN_DEFAULT_DURATION"
_DAY_START_ENV = "CLASSPLAN_DAY_START"
_DAY_END_ENV = "CLASSPLAN_DAY_END"
_OFFSET_ENV = "CLASSPLAN_SUGGESTION_OFFSET_MINUTES"
_ROOM_MATCH_ENV = "CLASSPLAN_ROOM_MATCH"
_ROLES_ENV = "CLASSPLAN_PRIVILEGED_ROLES"
DB_PATH_ENV = "CLASSPLAN_DB_PATH"
FIREBASE_CREDENTIALS_ENV = "CLASSPLAN_FIREBASE_CREDENTIALS"
STORAGE_ENV = "CLASSPLAN_STORAGE"

STORAGE_SQLITE = "sqlite"
STORAGE_FIRESTORE = "firestore"
STORAGE_MEMORY = "memory"
_STORAGE_BACKENDS = (STORAGE_SQLITE, STORAGE_FIRESTORE, STORAGE_MEMORY)


def _positive_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive (got {value})")
    return value


def _time_env(name: str, default: time) -> time:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return time.fromisoformat(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a HH:MM time (got {raw!r})") from exc


def safety_horizon_days() -> int:
    """Return how many calendar days the generator may walk before giving up."""

    return _positive_int_env(_HORIZON_ENV, DEFAULT_SAFETY_HORIZON_DAYS)


def default_duration_minutes() -> int:
    return _positive_int_env(_DURATION_ENV, DEFAULT_DURATION_MINUTES)


def operating_window() -> tuple[time, time]:
    """Return the ``(start, end)`` wall-clock window suggestions must fit in."""

    start = _time_env(_DAY_START_ENV, DEFAULT_DAY_START)
    end = _time_env(_DAY_END_ENV, DEFAULT_DAY_END)
    if end <= start:
        raise RuntimeError(f"{_DAY_END_ENV} must be later than {_DAY_START_ENV}")
    return start, end


def suggestion_offset_minutes() -> int:
    return _positive_int_env(_OFFSET_ENV, DEFAULT_SUGGESTION_OFFSET_MINUTES)


def room_match_mode() -> str:
    """Return ``"exact"`` or ``"substring"``.

    Substring containment mirrors how location strings were compared when rooms
    were free text; exact matching is the default.
    """

    raw = os.environ.get(_ROOM_MATCH_ENV, "").strip().lower()
    if not raw:
        return ROOM_MATCH_EXACT
    if raw not in (ROOM_MATCH_EXACT, ROOM_MATCH_SUBSTRING):
        raise RuntimeError(
            f"{_ROOM_MATCH_ENV} must be '{ROOM_MATCH_EXACT}' or '{ROOM_MATCH_SUBSTRING}'"
        )
    return raw


def privileged_roles() -> FrozenSet[str]:
    """Return the staff roles allowed to override a scheduling conflict."""

    raw = os.environ.get(_ROLES_ENV)
    if raw is None:
        return frozenset(DEFAULT_PRIVILEGED_ROLES)
    return frozenset(r.strip().lower() for r in raw.split(",") if r.strip())


def is_privileged_role(role: str | None) -> bool:
    return (role or "").strip().lower() in privileged_roles()


def db_path() -> str:
    return os.getenv(DB_PATH_ENV, DEFAULT_DB_PATH)


def storage_backend() -> str:
    """Return the class store the app uses: ``sqlite`` (default), ``firestore`` or ``memory``."""

    raw = os.environ.get(STORAGE_ENV, "").strip().lower()
    if not raw:
        return STORAGE_SQLITE
    if raw not in _STORAGE_BACKENDS:
        raise RuntimeError(f"{STORAGE_ENV} must be one of {', '.join(_STORAGE_BACKENDS)} (got {raw!r})")
    return raw


__all__ = [
    "DEFAULT_DURATION_MINUTES",
    "DEFAULT_SAFETY_HORIZON_DAYS",
    "ROOM_MATCH_EXACT",
    "ROOM_MATCH_SUBSTRING",
    "STORAGE_FIRESTORE",
    "STORAGE_MEMORY",
    "STORAGE_SQLITE",
    "db_path",
    "default_duration_minutes",
    "is_privileged_role",
    "operating_window",
    "privileged_roles",
    "room_match_mode",
    "safety_horizon_days",
    "storage_backend",
    "suggestion_offset_minutes",
]
