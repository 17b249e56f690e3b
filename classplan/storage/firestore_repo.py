"""Firestore class repository: one document per class in ``classes``."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Any, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from ..codec import schedule_from_record, schedule_to_record
from ..config import FIREBASE_CREDENTIALS_ENV
from ..errors import ClassNotFoundError, StaleScheduleError
from ..models import ClassSchedule
from .base import expected_for

_LOG = logging.getLogger(__name__)

CLASSES_COL = "classes"

_db_client: Optional[Any] = None


def get_db() -> Any:
    """Return a cached Firestore client.

    Credentials come from the service-account file named by
    ``CLASSPLAN_FIREBASE_CREDENTIALS``; without it the application default
    credentials are used.
    """

    global _db_client
    if _db_client is not None:
        return _db_client
    try:  # pragma: no cover - runtime side effects
        if not firebase_admin._apps:  # guard against re-init
            cred_path = os.getenv(FIREBASE_CREDENTIALS_ENV)
            cred = credentials.Certificate(cred_path) if cred_path else None
            firebase_admin.initialize_app(cred)
        _db_client = firestore.client()
        return _db_client
    except Exception as e:  # pragma: no cover - depends on deployment
        _LOG.exception("Firebase init failed")
        raise RuntimeError("Firebase initialization failed") from e


def _write_versioned(transaction, ref, record, expected_version: int) -> None:
    snap = ref.get(transaction=transaction)
    stored = int((snap.to_dict() or {}).get("version", 0)) if snap.exists else 0
    if stored != expected_version:
        raise StaleScheduleError(
            f"class {record['id']}: stored version {stored}, expected {expected_version}"
        )
    transaction.set(ref, record)


def _from_snapshot(snap) -> ClassSchedule:
    record = dict(snap.to_dict() or {})
    record["id"] = snap.id
    return schedule_from_record(record)


class FirestoreClassRepository:
    def __init__(self, client: Optional[Any] = None, collection: str = CLASSES_COL) -> None:
        self._client = client
        self.collection = collection

    @property
    def client(self) -> Any:
        return self._client if self._client is not None else get_db()

    def _ref(self, class_id: str):
        return self.client.collection(self.collection).document(class_id)

    def get_class(self, class_id: str) -> ClassSchedule:
        snap = self._ref(class_id).get()
        if not snap.exists:
            raise ClassNotFoundError(f"class {class_id} not found")
        return _from_snapshot(snap)

    def list_classes(self) -> List[ClassSchedule]:
        return [_from_snapshot(snap) for snap in self.client.collection(self.collection).stream()]

    def save_class(
        self, schedule: ClassSchedule, expected_version: Optional[int] = None
    ) -> ClassSchedule:
        expected = expected_for(schedule, expected_version)
        saved = replace(schedule, version=expected + 1)
        write = firestore.transactional(_write_versioned)
        write(self.client.transaction(), self._ref(saved.id), schedule_to_record(saved), expected)
        return saved


__all__ = ["CLASSES_COL", "FirestoreClassRepository", "get_db"]
