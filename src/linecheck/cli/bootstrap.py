# src/linecheck/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the task repository (seeded in-memory mock or SQLite),
- wires the repository and the task service into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import TaskRepository
from ..core.state import AppState
from ..tasks.mock_store import MockTaskStore
from ..tasks.task_api import QualityTaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_task_store(settings) -> TaskRepository:
    backend = str(getattr(settings, "storage_backend", "sqlite")).lower()
    if backend == "mock":
        org = getattr(settings, "organization_id", None) or "org1"
        logger.info("Using in-memory mock task store (organization=%s)", org)
        return MockTaskStore.seeded(organization_id=org)
    return TaskStore(settings.tasks_db_path)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = create_task_store(settings)
    service = QualityTaskService(
        store,
        organization_id=getattr(settings, "organization_id", None),
        almost_late_minutes=int(getattr(settings, "almost_late_minutes", 5)),
    )
    return AppState(settings=settings, task_store=store, service=service)
