# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from linecheck.core.state import AppState
from linecheck.tasks.mock_store import MockTaskStore
from linecheck.tasks.task_api import QualityTaskService

from .fakes import NOW, TODAY


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the service layer.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        storage_backend="mock",
        organization_id="org1",
        almost_late_minutes=5,
        notifier_enabled=False,
        notifier_interval_seconds=0.01,
    )


@pytest.fixture()
def mock_store() -> MockTaskStore:
    return MockTaskStore.seeded(today=TODAY, organization_id="org1")


@pytest.fixture()
def service(mock_store: MockTaskStore) -> QualityTaskService:
    return QualityTaskService(mock_store, organization_id="org1", clock=lambda: NOW)


@pytest.fixture()
def state(settings: SimpleNamespace, mock_store: MockTaskStore, service: QualityTaskService) -> AppState:
    """AppState wired with the seeded in-memory store and a frozen clock."""
    return AppState(settings=settings, task_store=mock_store, service=service)
