# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from linecheck.cli.bootstrap import create_initial_state, create_task_store
from linecheck.config import Settings
from linecheck.logging_setup import _ConsoleNoiseFilter, setup_logging
from linecheck.tasks.mock_store import MockTaskStore
from linecheck.tasks.task_store import TaskStore


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LINECHECK_STORAGE", "MOCK")
    monkeypatch.setenv("LINECHECK_ALMOST_LATE_MINUTES", "10")
    monkeypatch.setenv("LINECHECK_NOTIFIER_INTERVAL_SECONDS", "oops")
    monkeypatch.setenv("LINECHECK_MATRIX_ROOMS", "!a:x.org, !b:x.org")
    monkeypatch.setenv("LINECHECK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("LINECHECK_ORGANIZATION_ID", "  ")

    s = Settings.from_env()

    assert s.storage_backend == "mock"
    assert s.almost_late_minutes == 10
    assert s.notifier_interval_seconds == 30.0
    assert s.matrix_rooms == ["!a:x.org", "!b:x.org"]
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.organization_id is None


def test_unknown_storage_backend_falls_back_to_sqlite(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LINECHECK_STORAGE", "postgres")
    assert Settings.from_env().storage_backend == "sqlite"


def test_create_task_store_picks_backend(settings) -> None:
    assert isinstance(create_task_store(settings), MockTaskStore)

    settings.storage_backend = "sqlite"
    assert isinstance(create_task_store(settings), TaskStore)
    assert settings.tasks_db_path.exists()


def test_create_initial_state_wires_service(settings) -> None:
    settings.almost_late_minutes = 7

    state = create_initial_state(settings=settings)

    assert state.service.repo is state.task_store
    assert state.service.organization_id == "org1"
    assert state.service.almost_late_minutes == 7


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_quiets_background_loggers() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("linecheck.cli.commands", logging.INFO))
    assert not f.filter(_record("linecheck.tasks.task_scheduler", logging.INFO))
    assert f.filter(_record("linecheck.tasks.task_scheduler", logging.WARNING))
    assert not f.filter(_record("nio.responses", logging.WARNING))
    assert f.filter(_record("nio.responses", logging.ERROR))
    assert not f.filter(_record("linecheck.connectors.matrix_connector", logging.INFO))
    assert not f.filter(_record("py.warnings", logging.WARNING))


def test_setup_logging_writes_file_and_tames_transport(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    saved_nio = logging.getLogger("nio").level
    try:
        for h in saved_handlers:
            root.removeHandler(h)
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.INFO)
        logging.getLogger("linecheck.tasks.task_scheduler").info("Reminder sent task_id=QTASK002")
        for h in root.handlers:
            h.flush()

        assert log_file == tmp_path / "logs" / "linecheck.log"
        assert "Reminder sent task_id=QTASK002" in log_file.read_text("utf-8")
        assert logging.getLogger("nio").level == logging.INFO
        assert len(root.handlers) == 2
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.getLogger("nio").setLevel(saved_nio)
        logging.captureWarnings(False)
