"""Flask application factory for the scheduling API."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from flask import Flask

from .config import STORAGE_FIRESTORE, STORAGE_MEMORY, storage_backend
from .routes import api_bp, register_health_route
from .services import ClassEditCommands, RescheduleChain
from .storage import (
    ClassRepository,
    FirestoreClassRepository,
    InMemoryClassRepository,
    SQLiteClassRepository,
)

_LOG = logging.getLogger(__name__)


def default_repository() -> ClassRepository:
    """Build the class store named by ``CLASSPLAN_STORAGE``."""

    backend = storage_backend()
    if backend == STORAGE_FIRESTORE:
        return FirestoreClassRepository()
    if backend == STORAGE_MEMORY:
        return InMemoryClassRepository()
    return SQLiteClassRepository()


def create_app(
    repository: Optional[ClassRepository] = None,
    *,
    clock: Callable[[], date] = date.today,
) -> Flask:
    """Build the app; without a repository the configured store is used."""

    app = Flask(__name__)
    if repository is None:
        repository = default_repository()
    chain = RescheduleChain(repository, clock=clock)
    app.extensions["classplan"] = {
        "chain": chain,
        "commands": ClassEditCommands(chain),
    }
    app.register_blueprint(api_bp)
    register_health_route(app)
    _LOG.info("classplan API ready (%s)", type(repository).__name__)
    return app


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO)
    create_app().run()
