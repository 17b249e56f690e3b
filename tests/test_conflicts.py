from datetime import date, time

import pytest

from classplan import CandidateSlot, ClassSchedule, check_conflict, find_all_conflicts, suggest_alternatives
from classplan.conflicts import rooms_match
from classplan.models import MODE_ONLINE, RESOURCE_ROOM, RESOURCE_TEACHER

MONDAY = date(2024, 1, 8)


def _monday_class(class_id, teacher, room, start=time(18, 0), **extra):
    return ClassSchedule(
        id=class_id,
        teacher_id=teacher,
        room_ref=room,
        weekday_pattern={0},
        time_of_day=start,
        duration_minutes=90,
        start_date=date(2024, 1, 1),
        total_sessions_target=4,
        **extra,
    )


def _slot(teacher, room, start=time(18, 30), day=MONDAY):
    return CandidateSlot(date=day, start_time=start, duration_minutes=90, teacher_id=teacher, room_ref=room)


def test_shared_room_conflict():
    class_a = _monday_class("A", "Alice", "P101")
    class_b = _monday_class("B", "Bob", "P101", start=time(18, 30))

    report = check_conflict(_slot("Bob", "P101"), "B", [class_a, class_b])

    assert report is not None
    assert report.conflicting_class_id == "A"
    assert report.resource_type == RESOURCE_ROOM
    assert report.conflicting_time == time(18, 0)
    assert report.conflicting_date == MONDAY
    assert report.conflicting_ordinal == 2


def test_online_slot_without_shared_teacher_is_free():
    class_a = _monday_class("A", "Alice", "P101")
    class_b = _monday_class("B", "Bob", None, mode=MODE_ONLINE)

    assert check_conflict(_slot("Bob", None, start=time(18, 0)), "B", [class_a, class_b]) is None


def test_online_class_never_conflicts_on_room():
    online = _monday_class("A", "Alice", "P101", mode=MODE_ONLINE)

    assert check_conflict(_slot("Bob", "P101"), None, [online]) is None


def test_teacher_takes_precedence_over_room():
    class_a = _monday_class("A", "Alice", "P101")

    report = check_conflict(_slot("Alice", "P101"), None, [class_a])

    assert report.resource_type == RESOURCE_TEACHER


def test_back_to_back_sessions_do_not_overlap():
    class_a = _monday_class("A", "Alice", "P101")

    assert check_conflict(_slot("Alice", "P101", start=time(19, 30)), None, [class_a]) is None
    assert check_conflict(_slot("Alice", "P101", start=time(16, 30)), None, [class_a]) is None
    assert check_conflict(_slot("Alice", "P101", start=time(19, 29)), None, [class_a]) is not None


def test_other_dates_are_ignored():
    class_a = _monday_class("A", "Alice", "P101")

    assert check_conflict(_slot("Alice", "P101", day=date(2024, 1, 9)), None, [class_a]) is None


def test_first_match_wins_and_exhaustive_alternate():
    first = _monday_class("C1", "Carol", "P101")
    second = _monday_class("C2", "Dan", "P101", start=time(19, 0))

    report = check_conflict(_slot("Bob", "P101"), None, [first, second])
    reversed_report = check_conflict(_slot("Bob", "P101"), None, [second, first])
    everything = find_all_conflicts(_slot("Bob", "P101"), None, [first, second])

    assert report.conflicting_class_id == "C1"
    assert reversed_report.conflicting_class_id == "C2"
    assert [r.conflicting_class_id for r in everything] == ["C1", "C2"]


def test_room_matching_is_exact_by_default(monkeypatch):
    monkeypatch.delenv("CLASSPLAN_ROOM_MATCH", raising=False)

    assert rooms_match(" p101 ", "P101")
    assert not rooms_match("P101", "Phòng P101 tầng 1")
    assert not rooms_match(None, "P101")


def test_room_matching_substring_mode(monkeypatch):
    monkeypatch.setenv("CLASSPLAN_ROOM_MATCH", "substring")
    class_a = _monday_class("A", "Alice", "Phòng P101 tầng 1")

    report = check_conflict(_slot("Bob", "P101"), None, [class_a])

    assert report is not None
    assert report.resource_type == RESOURCE_ROOM


def test_capped_class_is_scanned_over_partial_list(monkeypatch, caplog):
    monkeypatch.setenv("CLASSPLAN_SAFETY_HORIZON_DAYS", "10")
    endless = _monday_class("A", "Alice", "P101").with_changes(total_sessions_target=50)

    with caplog.at_level("WARNING"):
        report = check_conflict(_slot("Bob", "P101"), None, [endless])

    assert report.conflicting_class_id == "A"
    assert "partial schedule" in caplog.text


@pytest.mark.parametrize(
    "busy, expected",
    [
        (time(18, 0), ["16:00", "20:00"]),
        (time(20, 0), ["18:00"]),
        (time(7, 30), ["09:30"]),
        ("19:00", ["17:00", "21:00"]),
        (time(23, 30), []),
    ],
)
def test_suggestions_stay_inside_operating_window(busy, expected):
    assert suggest_alternatives(MONDAY, busy) == expected


def test_suggestion_offset_is_configurable(monkeypatch):
    monkeypatch.setenv("CLASSPLAN_SUGGESTION_OFFSET_MINUTES", "60")
    monkeypatch.setenv("CLASSPLAN_DAY_END", "22:00")

    assert suggest_alternatives(MONDAY, time(21, 0)) == ["20:00", "22:00"]
