"""SQLite class repository.

The database location can be configured either by passing a path to
``get_connection`` (and the repository) or by setting the
``CLASSPLAN_DB_PATH`` environment variable.  By default a file named
``classplan.db`` in the current working directory is used.

Each class is one row holding its JSON record and a version counter; writes
use ``UPDATE ... WHERE version = ?`` so concurrent editors cannot overwrite
each other.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from typing import List, Optional

from ..codec import schedule_from_record, schedule_to_record
from ..config import db_path as configured_db_path
from ..errors import ClassNotFoundError, StaleScheduleError
from ..models import ClassSchedule
from .base import expected_for


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Return a SQLite connection using the configured database path."""

    path = db_path or configured_db_path()
    return sqlite3.connect(path, check_same_thread=False)


def init_db(db_path: Optional[str] = None) -> None:
    """Create the ``classes`` table if it does not exist."""

    with get_connection(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS classes (
                id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                payload TEXT NOT NULL
            )
            """
        )


def _load(payload: str, class_id: str) -> ClassSchedule:
    record = json.loads(payload)
    record["id"] = class_id
    return schedule_from_record(record)


class SQLiteClassRepository:
    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path
        init_db(db_path)

    def get_class(self, class_id: str) -> ClassSchedule:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT version, payload FROM classes WHERE id = ?", (class_id,)
            ).fetchone()
        if row is None:
            raise ClassNotFoundError(f"class {class_id} not found")
        return replace(_load(row[1], class_id), version=row[0])

    def list_classes(self) -> List[ClassSchedule]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT id, version, payload FROM classes ORDER BY rowid"
            ).fetchall()
        return [replace(_load(payload, cid), version=version) for cid, version, payload in rows]

    def save_class(
        self, schedule: ClassSchedule, expected_version: Optional[int] = None
    ) -> ClassSchedule:
        expected = expected_for(schedule, expected_version)
        saved = replace(schedule, version=expected + 1)
        payload = json.dumps(schedule_to_record(saved), ensure_ascii=False)
        with get_connection(self.db_path) as conn:
            if expected == 0:
                try:
                    conn.execute(
                        "INSERT INTO classes (id, version, payload) VALUES (?, ?, ?)",
                        (saved.id, saved.version, payload),
                    )
                except sqlite3.IntegrityError as exc:
                    raise StaleScheduleError(f"class {saved.id} already exists") from exc
            else:
                cur = conn.execute(
                    "UPDATE classes SET version = ?, payload = ? WHERE id = ? AND version = ?",
                    (saved.version, payload, saved.id, expected),
                )
                if cur.rowcount != 1:
                    raise StaleScheduleError(
                        f"class {saved.id}: version {expected} is no longer current"
                    )
        return saved


__all__ = ["SQLiteClassRepository", "get_connection", "init_db"]
