from datetime import date

import pytest

from classplan.app import create_app
from classplan.storage import FirestoreClassRepository, InMemoryClassRepository, SQLiteClassRepository

CLASS_A = {
    "id": "A",
    "name": "A1 evening",
    "teacher": "Alice",
    "location": "Phòng 101",
    "schedule": "T2 / T4 / T6 • 18:00",
    "startDate": "2024-01-01",
    "totalSessions": 6,
}

CLASS_B = {
    "id": "B",
    "name": "A2 evening",
    "teacher": "Bob",
    "location": "Phòng 101",
    "schedule": "T3 • 18:30",
    "startDate": "2024-01-02",
    "totalSessions": 4,
}


@pytest.fixture
def client():
    app = create_app(InMemoryClassRepository(), clock=lambda: date(2024, 1, 1))
    app.config["TESTING"] = True
    with app.test_client() as client:
        assert client.post("/api/classes", json=CLASS_A).status_code == 201
        assert client.post("/api/classes", json=CLASS_B).status_code == 201
        yield client


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "engine": True}


def test_create_derives_end_date():
    app = create_app(InMemoryClassRepository(), clock=lambda: date(2024, 1, 1))
    client = app.test_client()

    resp = client.post("/api/classes", json=CLASS_A)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["endDate"] == "2024-01-12"
    assert body["class"]["version"] == 1
    assert [o["date"] for o in body["occurrences"]][:3] == ["2024-01-01", "2024-01-03", "2024-01-05"]


def test_list_and_get(client):
    listed = client.get("/api/classes").get_json()["classes"]

    assert [c["id"] for c in listed] == ["A", "B"]
    assert client.get("/api/classes/B").get_json()["endDate"] == "2024-01-23"

    occ = client.get("/api/classes/A/occurrences").get_json()
    assert len(occ["occurrences"]) == 6
    assert occ["occurrences"][0]["weekday"] == "T2"


def test_unknown_class_is_404(client):
    resp = client.get("/api/classes/nope")

    assert resp.status_code == 404


def test_reschedule_blocked_returns_suggestions(client):
    resp = client.post("/api/classes/A/reschedule", json={"ordinal": 2, "date": "2024-01-09"})

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "conflict"
    assert body["conflict"]["conflictingClassId"] == "B"
    assert body["conflict"]["resourceType"] == "room"
    assert body["suggestions"] == ["16:30", "20:30"]
    assert body["class"]["endDate"] == "2024-01-12"


def test_override_needs_privileged_role(client):
    payload = {"ordinal": 2, "date": "2024-01-09", "override": True}

    denied = client.post("/api/classes/A/reschedule", json=payload)
    assert denied.status_code == 403
    assert denied.get_json()["error"] == "override not permitted"

    allowed = client.post("/api/classes/A/reschedule", json=payload, headers={"X-Role": "admin"})
    assert allowed.status_code == 200
    body = allowed.get_json()
    assert body["overrideUsed"] is True
    assert body["endDate"] == "2024-01-17"
    assert body["previousEndDate"] == "2024-01-12"
    assert body["class"]["movedSessions"] == [{"from": "2024-01-03", "date": "2024-01-09"}]


def test_reschedule_with_new_time_avoids_conflict(client):
    resp = client.post(
        "/api/classes/A/reschedule",
        json={"ordinal": 2, "date": "2024-01-09", "time": "16:30"},
    )

    assert resp.status_code == 200
    occurrences = resp.get_json()["occurrences"]
    assert occurrences[1]["date"] == "2024-01-09"
    assert occurrences[1]["time"] == "16:30"
    assert occurrences[1]["kind"] == "moved"


@pytest.mark.parametrize(
    "payload",
    [
        {"ordinal": 2, "date": "not a date"},
        {"ordinal": "two", "date": "2024-01-09"},
        {"ordinal": 99, "date": "2024-01-09"},
        {"ordinal": 2, "date": "2023-12-01"},
    ],
)
def test_invalid_reschedule_is_400(client, payload):
    resp = client.post("/api/classes/A/reschedule", json=payload)

    assert resp.status_code == 400
    assert resp.get_json()["error"]


def test_cancel_and_off_days(client):
    cancelled = client.post("/api/classes/A/cancel", json={"date": "2024-01-03"})

    assert cancelled.status_code == 200
    assert cancelled.get_json()["endDate"] == "2024-01-15"
    assert cancelled.get_json()["shifted"] is True

    restored = client.delete("/api/classes/A/off-days/2024-01-03")
    assert restored.status_code == 200
    assert restored.get_json()["endDate"] == "2024-01-12"

    added = client.post("/api/classes/A/off-days", json={"date": "2024-01-05"})
    assert added.get_json()["endDate"] == "2024-01-15"


def test_extra_session(client):
    resp = client.post(
        "/api/classes/B/extra-sessions",
        json={"date": "2024-01-06", "time": "09:00", "note": "makeup"},
    )

    assert resp.status_code == 200
    extras = [o for o in resp.get_json()["occurrences"] if o["kind"] == "extra"]
    assert extras == [
        {
            "classId": "B",
            "ordinal": 2,
            "date": "2024-01-06",
            "weekday": "T7",
            "kind": "extra",
            "time": "09:00",
            "durationMinutes": 90,
            "teacher": "Bob",
            "room": "Phòng 101",
            "note": "makeup",
            "movedFrom": None,
        }
    ]


def test_conflict_check_and_suggestions(client):
    clash = client.post(
        "/api/conflicts/check",
        json={"date": "2024-01-08", "time": "19:00", "teacher": "Alice"},
    ).get_json()

    assert clash["conflict"]["conflictingClassId"] == "A"
    assert clash["conflict"]["resourceType"] == "teacher"
    assert clash["suggestions"] == ["16:00", "20:00"]

    own = client.post(
        "/api/conflicts/check",
        json={"date": "2024-01-08", "time": "19:00", "teacher": "Alice", "excludeClassId": "A"},
    ).get_json()
    assert own == {"conflict": None, "suggestions": []}

    assert client.post("/api/conflicts/check", json={"date": "2024-01-08"}).status_code == 400

    suggested = client.get("/api/suggestions?date=2024-01-08&time=08:00").get_json()
    assert suggested == {"date": "2024-01-08", "busy": "08:00", "suggestions": ["10:00"]}


def test_calendar(client):
    resp = client.get("/api/calendar?start=2024-01-01&end=2024-01-03")

    events = resp.get_json()["events"]
    assert [(e["classId"], e["date"]) for e in events] == [
        ("A", "2024-01-01"),
        ("B", "2024-01-02"),
        ("A", "2024-01-03"),
    ]
    assert events[0]["id"] == "A-2024-01-01"
    assert events[0]["room"] == "P.101"
    assert not any(e["hasConflict"] for e in events)

    only_bob = client.get("/api/calendar?start=2024-01-01&end=2024-01-31&teacher=Bob").get_json()
    assert {e["classId"] for e in only_bob["events"]} == {"B"}

    assert client.get("/api/calendar?start=2024-01-09&end=2024-01-01").status_code == 400


def test_occurrences_carry_course_progress(client):
    progress = client.get("/api/classes/A/occurrences").get_json()["progress"]

    assert progress == {
        "status": "active",
        "completed": 0,
        "remaining": 6,
        "total": 6,
        "percent": 0.0,
        "nextSession": "Session 1/6 on 2024-01-01 (T2) at 18:00",
    }


@pytest.mark.parametrize("duration", ["long", -30])
def test_conflict_check_rejects_bad_duration(client, duration):
    resp = client.post(
        "/api/conflicts/check",
        json={"date": "2024-01-08", "time": "19:00", "teacher": "Alice", "durationMinutes": duration},
    )

    assert resp.status_code == 400
    assert "durationMinutes" in resp.get_json()["error"]


def test_conflict_check_uses_configured_default_duration(client, monkeypatch):
    monkeypatch.setenv("CLASSPLAN_DEFAULT_DURATION", "30")

    # 17:20-17:50 ends before Alice's 18:00 session.
    short = client.post(
        "/api/conflicts/check",
        json={"date": "2024-01-08", "time": "17:20", "teacher": "Alice"},
    ).get_json()

    assert short["conflict"] is None


@pytest.mark.parametrize(
    "backend, repo_type",
    [
        ("memory", InMemoryClassRepository),
        ("firestore", FirestoreClassRepository),
        ("sqlite", SQLiteClassRepository),
    ],
)
def test_storage_backend_from_env(monkeypatch, tmp_path, backend, repo_type):
    monkeypatch.setenv("CLASSPLAN_STORAGE", backend)
    monkeypatch.setenv("CLASSPLAN_DB_PATH", str(tmp_path / "classes.db"))

    app = create_app()

    assert type(app.extensions["classplan"]["chain"].repository) is repo_type


def test_unknown_storage_backend_fails_fast(monkeypatch):
    monkeypatch.setenv("CLASSPLAN_STORAGE", "postgres")

    with pytest.raises(RuntimeError):
        create_app()
