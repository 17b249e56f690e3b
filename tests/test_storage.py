from dataclasses import replace
from datetime import date, time
from types import SimpleNamespace

import pytest

from classplan.errors import ClassNotFoundError, StaleScheduleError
from classplan.models import ClassSchedule, ExtraSession
from classplan.storage import InMemoryClassRepository, SQLiteClassRepository
from classplan.storage import firestore_repo


def _schedule(class_id="A", **overrides):
    values = dict(
        id=class_id,
        teacher_id="Alice",
        room_ref="P101",
        weekday_pattern={0, 2, 4},
        time_of_day=time(18, 0),
        start_date=date(2024, 1, 1),
        total_sessions_target=6,
        off_days=(date(2024, 1, 3),),
        extra_sessions=(ExtraSession(date(2024, 1, 6), time(9, 0)),),
        end_date=date(2024, 1, 15),
    )
    values.update(overrides)
    return ClassSchedule(**values)


def _exercise_versioning(repo):
    saved = repo.save_class(_schedule(), expected_version=0)
    assert saved.version == 1
    assert repo.get_class("A") == saved

    with pytest.raises(StaleScheduleError):
        repo.save_class(_schedule(), expected_version=0)

    updated = repo.save_class(replace(saved, off_days=()), expected_version=1)
    assert updated.version == 2
    assert repo.get_class("A").off_days == ()

    with pytest.raises(StaleScheduleError):
        repo.save_class(replace(saved, name="late writer"), expected_version=1)
    assert repo.get_class("A").name == ""

    repo.save_class(_schedule("B", teacher_id="Bob"))
    assert [c.id for c in repo.list_classes()] == ["A", "B"]

    with pytest.raises(ClassNotFoundError):
        repo.get_class("missing")


def test_in_memory_repository_versioning():
    _exercise_versioning(InMemoryClassRepository())


def test_sqlite_repository_versioning(tmp_path):
    _exercise_versioning(SQLiteClassRepository(str(tmp_path / "classes.db")))


def test_sqlite_path_from_env(monkeypatch, tmp_path):
    db_file = tmp_path / "env.db"
    monkeypatch.setenv("CLASSPLAN_DB_PATH", str(db_file))

    repo = SQLiteClassRepository()
    repo.save_class(_schedule())

    assert db_file.exists()
    assert SQLiteClassRepository().get_class("A").teacher_id == "Alice"


def test_class_not_found_is_a_key_error():
    with pytest.raises(KeyError):
        InMemoryClassRepository().get_class("nope")


class _StubSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _StubDoc:
    def __init__(self, store, doc_id):
        self.store = store
        self.id = doc_id

    def get(self, transaction=None):
        return _StubSnapshot(self.id, self.store.get(self.id))


class _StubTransaction:
    def __init__(self):
        self.writes = []

    def set(self, ref, data):
        self.writes.append(ref.id)
        ref.store[ref.id] = data


class _StubFirestore:
    """Minimal Firestore client keeping documents in a dict."""

    def __init__(self):
        self.store = {}
        self.collection_calls = []
        self.transactions = []

    def collection(self, name):
        self.collection_calls.append(name)
        return SimpleNamespace(
            document=lambda doc_id: _StubDoc(self.store, doc_id),
            stream=lambda: [_StubSnapshot(k, v) for k, v in self.store.items()],
        )

    def transaction(self):
        txn = _StubTransaction()
        self.transactions.append(txn)
        return txn


def test_firestore_repository_versioning(monkeypatch):
    monkeypatch.setattr(firestore_repo.firestore, "transactional", lambda fn: fn)
    client = _StubFirestore()
    repo = firestore_repo.FirestoreClassRepository(client)

    _exercise_versioning(repo)

    assert set(client.collection_calls) == {"classes"}
    assert client.store["A"]["schedule"] == "T2 / T4 / T6 • 18:00"
    assert client.store["A"]["version"] == 2
