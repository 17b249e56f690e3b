"""Conversion between schedules and the school's persisted class records.

Records are plain JSON-compatible dicts with the camelCase keys used by the
class table (``schedule``, ``offDays``, ``extraSessions`` ...).  Dates coming
back from storage are coerced leniently with pandas so legacy rows written by
other tools (``01/03/2024``, full timestamps, blanks) still load.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .config import default_duration_minutes
from .errors import InvalidScheduleError
from .models import (
    MODE_OFFLINE,
    MODE_ONLINE,
    WEEKDAY_TOKENS,
    ClassSchedule,
    ConflictReport,
    ExtraSession,
    SessionMove,
    SessionOccurrence,
    parse_weekday,
)

_LOG = logging.getLogger(__name__)

PATTERN_SEPARATOR = " / "
TIME_SEPARATOR = " • "


def format_time(value: Optional[time]) -> str:
    return value.strftime("%H:%M") if value is not None else ""


def parse_time(value: Any) -> Optional[time]:
    """Parse ``HH:MM`` (seconds optional) into a :class:`time`.

    Blank values return ``None``; anything else that is not a time raises
    :class:`InvalidScheduleError`.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    parts = text.split(":")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        return time(hour, minute)
    except (IndexError, ValueError) as exc:
        raise InvalidScheduleError(f"invalid time of day: {text!r}") from exc


def format_pattern(pattern: Iterable[int], time_of_day: Optional[time] = None) -> str:
    """Return the display string, e.g. ``"T2 / T4 / T6 • 18:30"``.

    Tokens are always in Monday..Sunday order regardless of input order.
    """

    days = PATTERN_SEPARATOR.join(WEEKDAY_TOKENS[d] for d in sorted({int(d) % 7 for d in pattern}))
    if time_of_day is None:
        return days
    return f"{days}{TIME_SEPARATOR}{format_time(time_of_day)}"


def parse_pattern(text: Optional[str]) -> Tuple[FrozenSet[int], Optional[time]]:
    """Split a schedule string into its weekday set and time of day."""

    raw = str(text or "").strip()
    if not raw:
        return frozenset(), None
    days_part, _, time_part = raw.partition("•")
    days = set()
    for token in days_part.replace(",", "/").split("/"):
        token = token.strip()
        if not token:
            continue
        weekday = parse_weekday(token)
        if weekday is None:
            _LOG.warning("Ignoring unknown weekday token %r in schedule %r", token, raw)
            continue
        days.add(weekday)
    return frozenset(days), parse_time(time_part)


def coerce_date(value: Any) -> Optional[date]:
    """Return ``value`` as a :class:`date` or ``None`` when it is blank or unparseable."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text or text.lower() in ("nan", "none", "nat"):
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isnull(parsed):
        _LOG.warning("Could not parse date %r", text)
        return None
    return parsed.date()


def _coerce_stamp(value: Any) -> Tuple[Optional[date], Optional[time]]:
    """Return the date and, when present, the time component of ``value``."""

    if isinstance(value, datetime):
        return value.date(), value.time().replace(second=0, microsecond=0)
    day = coerce_date(value)
    if day is None or isinstance(value, date):
        return day, None
    text = str(value).strip()
    if len(text) <= 10:
        return day, None
    parsed = pd.to_datetime(text, errors="coerce")
    return day, parsed.time().replace(second=0, microsecond=0)


def format_stamp(day: date, start: Optional[time]) -> str:
    if start is None:
        return day.isoformat()
    return f"{day.isoformat()}T{start.strftime('%H:%M')}:00"


def format_off_days(days: Iterable[date]) -> List[str]:
    return [d.isoformat() for d in sorted(set(days))]


def extra_to_record(extra: ExtraSession) -> Dict[str, Any]:
    record: Dict[str, Any] = {"date": format_stamp(extra.date, extra.start_time)}
    if extra.note:
        record["note"] = extra.note
    return record


def extra_from_record(record: Mapping[str, Any]) -> Optional[ExtraSession]:
    day, start = _coerce_stamp(record.get("date"))
    if day is None:
        return None
    return ExtraSession(date=day, start_time=start, note=str(record.get("note") or ""))


def move_to_record(move: SessionMove) -> Dict[str, Any]:
    return {
        "from": move.original_date.isoformat(),
        "date": format_stamp(move.new_date, move.new_time),
    }


def move_from_record(record: Mapping[str, Any]) -> Optional[SessionMove]:
    original = coerce_date(record.get("from"))
    day, start = _coerce_stamp(record.get("date"))
    if original is None or day is None:
        return None
    return SessionMove(original_date=original, new_date=day, new_time=start)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def schedule_to_record(schedule: ClassSchedule) -> Dict[str, Any]:
    """Return the JSON-compatible class record for ``schedule``."""

    return {
        "id": schedule.id,
        "name": schedule.name,
        "teacher": schedule.teacher_id,
        "location": schedule.room_ref,
        "mode": schedule.mode,
        "schedule": format_pattern(schedule.weekday_pattern, schedule.time_of_day),
        "durationMinutes": schedule.duration_minutes,
        "startDate": _iso(schedule.start_date),
        "totalSessions": schedule.total_sessions_target,
        "hardEndDate": _iso(schedule.hard_end_date),
        "endDate": _iso(schedule.end_date),
        "offDays": format_off_days(schedule.off_days),
        "extraSessions": [extra_to_record(e) for e in schedule.extra_sessions],
        "movedSessions": [move_to_record(m) for m in schedule.moved_sessions],
        "version": schedule.version,
    }


def optional_int(value: Any, field_name: str) -> Optional[int]:
    """Return ``value`` as an int, ``None`` when blank; raise on anything else."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidScheduleError(f"{field_name} must be an integer (got {value!r})") from exc


def schedule_from_record(record: Mapping[str, Any]) -> ClassSchedule:
    """Build a :class:`ClassSchedule` from a stored class record."""

    class_id = str(record.get("id") or "").strip()
    if not class_id:
        raise InvalidScheduleError("class record has no id")
    pattern, time_of_day = parse_pattern(record.get("schedule"))
    mode = str(record.get("mode") or MODE_OFFLINE).strip().lower()
    if mode not in (MODE_ONLINE, MODE_OFFLINE):
        _LOG.warning("Class %s has unknown mode %r; treating as offline", class_id, mode)
        mode = MODE_OFFLINE

    off_days = [d for d in (coerce_date(v) for v in record.get("offDays") or []) if d]
    extras = [e for e in (extra_from_record(r) for r in record.get("extraSessions") or []) if e]
    moves = [m for m in (move_from_record(r) for r in record.get("movedSessions") or []) if m]
    duration = optional_int(record.get("durationMinutes"), "durationMinutes")

    return ClassSchedule(
        id=class_id,
        name=str(record.get("name") or ""),
        teacher_id=str(record.get("teacher") or ""),
        room_ref=record.get("location") or None,
        mode=mode,
        weekday_pattern=pattern,
        time_of_day=time_of_day,
        duration_minutes=duration if duration is not None else default_duration_minutes(),
        start_date=coerce_date(record.get("startDate")),
        total_sessions_target=optional_int(record.get("totalSessions"), "totalSessions"),
        hard_end_date=coerce_date(record.get("hardEndDate")),
        off_days=tuple(off_days),
        extra_sessions=tuple(extras),
        moved_sessions=tuple(moves),
        end_date=coerce_date(record.get("endDate")),
        version=optional_int(record.get("version"), "version") or 0,
    )


def load_off_days_csv(source: Any, *, date_column: str = "date") -> List[date]:
    """Read holiday dates from a CSV file or buffer with a ``date`` column."""

    frame = pd.read_csv(source, dtype=str)
    if date_column not in frame.columns:
        raise InvalidScheduleError(f"holiday file has no {date_column!r} column")
    parsed = pd.to_datetime(frame[date_column], errors="coerce")
    skipped = int(parsed.isna().sum())
    if skipped:
        _LOG.warning("Skipped %d holiday rows with unreadable dates", skipped)
    return sorted({ts.date() for ts in parsed.dropna()})


def occurrence_to_dict(occ: SessionOccurrence) -> Dict[str, Any]:
    return {
        "classId": occ.class_id,
        "ordinal": occ.ordinal,
        "date": occ.date.isoformat(),
        "weekday": occ.weekday_token,
        "kind": occ.kind,
        "time": format_time(occ.start_time),
        "durationMinutes": occ.duration_minutes,
        "teacher": occ.teacher_id,
        "room": occ.room_ref,
        "note": occ.note,
        "movedFrom": _iso(occ.moved_from),
    }


def report_to_dict(report: ConflictReport) -> Dict[str, Any]:
    return {
        "conflictingClassId": report.conflicting_class_id,
        "resourceType": report.resource_type,
        "conflictingTime": format_time(report.conflicting_time),
        "conflictingDate": _iso(report.conflicting_date),
        "conflictingOrdinal": report.conflicting_ordinal,
    }


__all__ = [
    "coerce_date",
    "extra_from_record",
    "extra_to_record",
    "format_off_days",
    "format_pattern",
    "format_stamp",
    "format_time",
    "load_off_days_csv",
    "move_from_record",
    "move_to_record",
    "occurrence_to_dict",
    "optional_int",
    "parse_pattern",
    "parse_time",
    "report_to_dict",
    "schedule_from_record",
    "schedule_to_record",
]
