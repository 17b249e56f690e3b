from datetime import date, time

from classplan.calendar_view import EVENT_COLUMNS, calendar_events, events_frame, occurrences_frame, room_label
from classplan.generator import generate_occurrences
from classplan.models import MODE_ONLINE, ClassSchedule


def _class(class_id, teacher, room, pattern, start, target, **extra):
    return ClassSchedule(
        id=class_id,
        name=f"Lớp {class_id}",
        teacher_id=teacher,
        room_ref=room,
        weekday_pattern=pattern,
        time_of_day=start,
        start_date=date(2024, 1, 1),
        total_sessions_target=target,
        **extra,
    )


def _classes():
    return [
        _class("A", "Alice", "Phòng 101", {0, 2}, time(18, 0), 4),
        _class("B", "Bob", "Phòng 101", {0}, time(18, 30), 2),
        _class("C", "Carol", None, {0}, time(18, 0), 2, mode=MODE_ONLINE),
    ]


def test_room_labels():
    assert room_label(_class("A", "x", "Phòng 204 (tầng 2)", {0}, time(8, 0), 1)) == "P.204"
    assert room_label(_class("A", "x", "Lab 3", {0}, time(8, 0), 1)) == "Lab 3"
    assert room_label(_class("A", "x", "", {0}, time(8, 0), 1)) == "TBD"
    assert room_label(_class("A", "x", "Phòng 101", {0}, time(8, 0), 1, mode=MODE_ONLINE)) == "Online"


def test_week_events_with_conflict_flags():
    events = calendar_events(_classes(), date(2024, 1, 1), date(2024, 1, 7))

    summary = [(e.occurrence.class_id, e.occurrence.date, e.has_conflict) for e in events]
    assert summary == [
        ("A", date(2024, 1, 1), True),
        ("C", date(2024, 1, 1), False),
        ("B", date(2024, 1, 1), True),
        ("A", date(2024, 1, 3), False),
    ]
    assert events[0].room == "P.101"
    assert events[1].room == "Online"
    assert events[0].event_id == "A-2024-01-01"


def test_window_keeps_course_ordinals():
    events = calendar_events(_classes(), date(2024, 1, 8), date(2024, 1, 10), teacher="Alice")

    assert [(e.occurrence.date, e.occurrence.ordinal) for e in events] == [
        (date(2024, 1, 8), 3),
        (date(2024, 1, 10), 4),
    ]


def test_room_filter():
    online = calendar_events(_classes(), date(2024, 1, 1), date(2024, 1, 31), room="Online")
    room_101 = calendar_events(_classes(), date(2024, 1, 1), date(2024, 1, 31), room="101")

    assert {e.occurrence.class_id for e in online} == {"C"}
    assert {e.occurrence.class_id for e in room_101} == {"A", "B"}


def test_frames():
    events = calendar_events(_classes(), date(2024, 1, 1), date(2024, 1, 7))

    frame = events_frame(events)

    assert list(frame.columns) == EVENT_COLUMNS
    assert len(frame) == 4
    assert frame.loc[0, "end"] == "19:30"
    assert frame["hasConflict"].sum() == 2
    assert events_frame([]).empty

    occ_frame = occurrences_frame(generate_occurrences(_classes()[0]))
    assert len(occ_frame) == 4
    assert occ_frame["date"].dt.day.tolist() == [1, 3, 8, 10]
