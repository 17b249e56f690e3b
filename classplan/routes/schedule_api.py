"""JSON API over the scheduling engine.

The caller's role arrives in the ``X-Role`` header; only roles listed in
``CLASSPLAN_PRIVILEGED_ROLES`` may override a conflict.  Authentication
happens upstream.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from ..calendar_view import calendar_events
from ..codec import (
    coerce_date,
    format_time,
    occurrence_to_dict,
    optional_int,
    parse_time,
    report_to_dict,
    schedule_from_record,
    schedule_to_record,
)
from ..config import default_duration_minutes, is_privileged_role
from ..conflicts import check_conflict, suggest_alternatives
from ..errors import ClassNotFoundError, InvalidScheduleError, SafetyCapExceeded, StaleScheduleError
from ..generator import generate_occurrences
from ..models import CandidateSlot, RescheduleRequest
from ..progress import course_progress, describe_next_session
from ..services import ClassEditCommands, ConflictBlocked, PermissionDenied, RescheduleChain

_LOG = logging.getLogger(__name__)

api_bp = Blueprint("classplan_api", __name__, url_prefix="/api")

ROLE_HEADER = "X-Role"


def _chain() -> RescheduleChain:
    return current_app.extensions["classplan"]["chain"]


def _commands() -> ClassEditCommands:
    return current_app.extensions["classplan"]["commands"]


def _body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _required_date(value: Any, field: str) -> date:
    parsed = coerce_date(value)
    if parsed is None:
        raise InvalidScheduleError(f"{field} must be a date (YYYY-MM-DD)")
    return parsed


def _updated_payload(result) -> Dict[str, Any]:
    return {
        "class": schedule_to_record(result.schedule),
        "occurrences": [occurrence_to_dict(o) for o in result.occurrences],
        "endDate": result.end_date.isoformat() if result.end_date else None,
        "previousEndDate": (
            result.previous_end_date.isoformat() if result.previous_end_date else None
        ),
        "shifted": result.shifted,
        "overrideUsed": result.override_used,
    }


def _result_response(result):
    if isinstance(result, ConflictBlocked):
        status = 403 if isinstance(result, PermissionDenied) else 409
        return (
            jsonify(
                error="override not permitted" if status == 403 else "conflict",
                conflict=report_to_dict(result.report),
                suggestions=list(result.suggestions),
                **{"class": schedule_to_record(result.schedule)},
            ),
            status,
        )
    return jsonify(_updated_payload(result)), 200


@api_bp.errorhandler(InvalidScheduleError)
def _invalid(exc):
    return jsonify(error=str(exc)), 400


@api_bp.errorhandler(ClassNotFoundError)
def _not_found(exc):
    return jsonify(error=str(exc)), 404


@api_bp.errorhandler(StaleScheduleError)
def _stale(exc):
    return jsonify(error=str(exc)), 409


@api_bp.errorhandler(SafetyCapExceeded)
def _safety_cap(exc):
    _LOG.error("Safety cap hit: %s", exc)
    return jsonify(error=str(exc), partial=[occurrence_to_dict(o) for o in exc.partial]), 422


@api_bp.get("/classes")
def list_classes():
    return jsonify(classes=[schedule_to_record(c) for c in _chain().repository.list_classes()])


@api_bp.post("/classes")
def create_class():
    result = _commands().create_class(schedule_from_record(_body()))
    return jsonify(_updated_payload(result)), 201


@api_bp.get("/classes/<class_id>")
def get_class(class_id: str):
    return jsonify(schedule_to_record(_chain().repository.get_class(class_id)))


@api_bp.get("/classes/<class_id>/occurrences")
def class_occurrences(class_id: str):
    chain = _chain()
    schedule = chain.repository.get_class(class_id)
    occurrences = generate_occurrences(schedule)
    progress = course_progress(occurrences, chain.clock())
    return jsonify(
        classId=class_id,
        endDate=schedule.end_date.isoformat() if schedule.end_date else None,
        occurrences=[occurrence_to_dict(o) for o in occurrences],
        progress={
            "status": progress.status,
            "completed": progress.completed,
            "remaining": progress.remaining,
            "total": progress.total,
            "percent": progress.percent,
            "nextSession": describe_next_session(progress),
        },
    )


@api_bp.post("/classes/<class_id>/reschedule")
def reschedule(class_id: str):
    data = _body()
    try:
        ordinal = int(data.get("ordinal"))
    except (TypeError, ValueError):
        raise InvalidScheduleError("ordinal must be an integer") from None
    req = RescheduleRequest(
        class_id=class_id,
        target_ordinal=ordinal,
        new_date=_required_date(data.get("date"), "date"),
        new_time=parse_time(data.get("time")),
        override_conflict=bool(data.get("override", False)),
        requester_is_privileged=is_privileged_role(request.headers.get(ROLE_HEADER)),
    )
    return _result_response(_chain().reschedule(req))


@api_bp.post("/classes/<class_id>/cancel")
def cancel(class_id: str):
    day = _required_date(_body().get("date"), "date")
    return _result_response(_chain().cancel_session(class_id, day))


@api_bp.post("/classes/<class_id>/off-days")
def add_off_day(class_id: str):
    day = _required_date(_body().get("date"), "date")
    return _result_response(_commands().add_off_day(class_id, day))


@api_bp.delete("/classes/<class_id>/off-days/<day>")
def remove_off_day(class_id: str, day: str):
    return _result_response(_commands().remove_off_day(class_id, _required_date(day, "day")))


@api_bp.post("/classes/<class_id>/extra-sessions")
def add_extra_session(class_id: str):
    data = _body()
    result = _commands().add_extra_session(
        class_id,
        _required_date(data.get("date"), "date"),
        start_time=data.get("time"),
        note=str(data.get("note") or ""),
    )
    return _result_response(result)


@api_bp.post("/conflicts/check")
def conflicts_check():
    data = _body()
    start = parse_time(data.get("time"))
    if start is None:
        raise InvalidScheduleError("time is required")
    duration = optional_int(data.get("durationMinutes"), "durationMinutes")
    if duration is not None and duration <= 0:
        raise InvalidScheduleError("durationMinutes must be positive")
    candidate = CandidateSlot(
        date=_required_date(data.get("date"), "date"),
        start_time=start,
        duration_minutes=duration if duration is not None else default_duration_minutes(),
        teacher_id=str(data.get("teacher") or ""),
        room_ref=data.get("room") or None,
    )
    report = check_conflict(candidate, data.get("excludeClassId"), _chain().repository.list_classes())
    if report is None:
        return jsonify(conflict=None, suggestions=[])
    busy = report.conflicting_time or start
    return jsonify(
        conflict=report_to_dict(report),
        suggestions=suggest_alternatives(candidate.date, busy),
    )


@api_bp.get("/suggestions")
def suggestions():
    day = _required_date(request.args.get("date"), "date")
    busy = parse_time(request.args.get("time"))
    if busy is None:
        raise InvalidScheduleError("time is required")
    return jsonify(date=day.isoformat(), busy=format_time(busy), suggestions=suggest_alternatives(day, busy))


@api_bp.get("/calendar")
def calendar():
    start = _required_date(request.args.get("start"), "start")
    end = _required_date(request.args.get("end"), "end")
    if end < start:
        raise InvalidScheduleError("end must not be before start")
    events = calendar_events(
        _chain().repository.list_classes(),
        start,
        end,
        teacher=request.args.get("teacher") or None,
        room=request.args.get("room") or None,
    )
    return jsonify(
        events=[
            {
                "id": evt.event_id,
                "title": evt.class_name,
                "room": evt.room,
                "hasConflict": evt.has_conflict,
                **occurrence_to_dict(evt.occurrence),
            }
            for evt in events
        ]
    )


__all__ = ["api_bp"]
