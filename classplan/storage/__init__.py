"""Storage adapters for class schedules."""

from .base import ClassRepository
from .firestore_repo import FirestoreClassRepository
from .memory import InMemoryClassRepository
from .sqlite_repo import SQLiteClassRepository

__all__ = [
    "ClassRepository",
    "FirestoreClassRepository",
    "InMemoryClassRepository",
    "SQLiteClassRepository",
]
