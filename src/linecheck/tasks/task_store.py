# src/linecheck/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import TaskNotFound
from .task_models import (
    CrossDepartmentDoc,
    QualityTask,
    QualityTaskSchedule,
    Record,
    SwabTest,
    record_from_dict,
    record_to_dict,
)

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def stamp_new(record: Record) -> Record:
    """Fill id/created_at/updated_at for a record about to be inserted."""
    if not record.organization_id or not str(record.organization_id).strip():
        raise ValueError("organization_id is required")
    ts = now_iso()
    stamped = replace(
        record,
        id=record.id or uuid.uuid4().hex,
        created_at=record.created_at or ts,
        updated_at=ts,
    )
    # Round-trip so enum fields given as plain strings are coerced; unknown values raise.
    return record_from_dict(type(record), record_to_dict(stamped), strict=True)


def apply_updates(record: Record, updates: dict[str, Any]) -> Record:
    """
    Return a copy of `record` with `updates` applied and updated_at bumped.

    Values go through record_from_dict so enum strings and nested dicts are coerced
    the same way as rows loaded from storage, except that an unknown enum value
    raises ValueError instead of falling back to a default.
    """
    known = {f.name for f in fields(record)}
    unknown = sorted(k for k in updates if k not in known)
    if unknown:
        raise ValueError(f"Unknown field(s) for {type(record).__name__}: {', '.join(unknown)}")
    if "id" in updates and updates["id"] != record.id:
        raise ValueError("id cannot be changed")

    data = record_to_dict(record)
    data.update(updates)
    data["updated_at"] = now_iso()
    return record_from_dict(type(record), data, strict=True)


@dataclass(slots=True, frozen=True)
class _Collection:
    table: str
    cls: type
    label: str


SCHEDULES = _Collection("quality_task_schedules", QualityTaskSchedule, "schedule")
TASKS = _Collection("quality_tasks", QualityTask, "task")
CROSS_DEPT_DOCS = _Collection("cross_department_docs", CrossDepartmentDoc, "cross-department doc")
SWAB_TESTS = _Collection("swab_tests", SwabTest, "swab test")

_COLLECTIONS = (SCHEDULES, TASKS, CROSS_DEPT_DOCS, SWAB_TESTS)


class TaskStore:
    """
    SQLite-backed TaskRepository.

    Each collection is one table. The full record is kept as a JSON document in
    `data`; the columns used for filtering (organization_id, status,
    scheduled_date) are duplicated next to it.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "linecheck.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s tasks=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            for coll in _COLLECTIONS:
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {coll.table} (
                        id TEXT PRIMARY KEY,
                        organization_id TEXT NOT NULL,
                        status TEXT,
                        scheduled_date TEXT,
                        data TEXT NOT NULL DEFAULT '{{}}',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )

                # Migrations (safe): add missing columns.
                cur.execute(f"PRAGMA table_info({coll.table})")
                cols = {row["name"] for row in cur.fetchall()}

                def add_col(name: str, decl: str, table: str = coll.table) -> None:
                    if name in cols:
                        return
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.info("TaskStore migration: added column %s.%s", table, name)

                add_col("status", "TEXT")
                add_col("scheduled_date", "TEXT")
                add_col("data", "TEXT NOT NULL DEFAULT '{}'")
                add_col("updated_at", "TEXT NOT NULL DEFAULT ''")

                cur.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{coll.table}_org ON {coll.table}(organization_id)"
                )

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_quality_tasks_date_status "
                "ON quality_tasks(scheduled_date, status)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _encode(record: Record) -> str:
        return json.dumps(record_to_dict(record), ensure_ascii=False)

    @staticmethod
    def _decode(coll: _Collection, row: sqlite3.Row) -> Any:
        try:
            data = json.loads(row["data"] or "{}")
        except json.JSONDecodeError:
            logger.exception("Corrupt JSON in %s id=%s; loading columns only.", coll.table, row["id"])
            data = {}
        if not isinstance(data, dict):
            data = {}
        data["id"] = row["id"]
        data["organization_id"] = row["organization_id"]
        return record_from_dict(coll.cls, data)

    def _list(self, coll: _Collection, *, organization_id: str | None, **where: Any) -> list[Any]:
        clauses: list[str] = []
        params: list[Any] = []
        if organization_id:
            clauses.append("organization_id = ?")
            params.append(organization_id)
        for col, val in where.items():
            if val is None:
                continue
            clauses.append(f"{col} = ?")
            params.append(val)

        sql = f"SELECT * FROM {coll.table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at ASC, id ASC"

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [self._decode(coll, r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _get(self, coll: _Collection, record_id: str) -> Any | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM {coll.table} WHERE id = ?", (str(record_id),))
            row = cur.fetchone()
            return self._decode(coll, row) if row else None
        finally:
            conn.close()

    def _insert(self, coll: _Collection, record: Record) -> Any:
        record = stamp_new(record)
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                INSERT INTO {coll.table}(
                    id, organization_id, status, scheduled_date, data, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.organization_id,
                    self._status_of(record),
                    getattr(record, "scheduled_date", None),
                    self._encode(record),
                    record.created_at,
                    record.updated_at,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError(f"{coll.label} id already exists: {record.id}") from e
        finally:
            conn.close()
        logger.debug("%s created id=%s", coll.label, record.id)
        return record

    def _update(self, coll: _Collection, record_id: str, updates: dict[str, Any]) -> Any:
        current = self._get(coll, record_id)
        if current is None:
            raise TaskNotFound(coll.label, record_id)
        if not updates:
            return current

        record = apply_updates(current, updates)
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                UPDATE {coll.table}
                SET status = ?, scheduled_date = ?, data = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    self._status_of(record),
                    getattr(record, "scheduled_date", None),
                    self._encode(record),
                    record.updated_at,
                    record.id,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("%s updated id=%s fields=%s", coll.label, record_id, sorted(updates))
        return record

    @staticmethod
    def _status_of(record: Record) -> str | None:
        if isinstance(record, QualityTaskSchedule):
            return "active" if record.is_active else "inactive"
        return str(record.status)

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM quality_tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_schedules(self, *, organization_id: str | None = None) -> list[QualityTaskSchedule]:
        return self._list(SCHEDULES, organization_id=organization_id)

    def get_schedule(self, schedule_id: str) -> QualityTaskSchedule | None:
        return self._get(SCHEDULES, schedule_id)

    def create_schedule(self, schedule: QualityTaskSchedule) -> QualityTaskSchedule:
        if not schedule.schedule_name or not schedule.schedule_name.strip():
            raise ValueError("schedule_name is required")
        return self._insert(SCHEDULES, schedule)

    def update_schedule(self, schedule_id: str, **updates: Any) -> QualityTaskSchedule:
        return self._update(SCHEDULES, schedule_id, updates)

    def list_tasks(
        self,
        *,
        organization_id: str | None = None,
        scheduled_date: str | None = None,
    ) -> list[QualityTask]:
        return self._list(TASKS, organization_id=organization_id, scheduled_date=scheduled_date)

    def get_task(self, task_id: str) -> QualityTask | None:
        return self._get(TASKS, task_id)

    def create_task(self, task: QualityTask) -> QualityTask:
        if not task.title or not task.title.strip():
            raise ValueError("title is required")
        return self._insert(TASKS, task)

    def update_task(self, task_id: str, **updates: Any) -> QualityTask:
        return self._update(TASKS, task_id, updates)

    def list_cross_dept_docs(self, *, organization_id: str | None = None) -> list[CrossDepartmentDoc]:
        return self._list(CROSS_DEPT_DOCS, organization_id=organization_id)

    def get_cross_dept_doc(self, doc_id: str) -> CrossDepartmentDoc | None:
        return self._get(CROSS_DEPT_DOCS, doc_id)

    def create_cross_dept_doc(self, doc: CrossDepartmentDoc) -> CrossDepartmentDoc:
        if not doc.work_performed or not doc.work_performed.strip():
            raise ValueError("work_performed is required")
        return self._insert(CROSS_DEPT_DOCS, doc)

    def update_cross_dept_doc(self, doc_id: str, **updates: Any) -> CrossDepartmentDoc:
        return self._update(CROSS_DEPT_DOCS, doc_id, updates)

    def list_swab_tests(self, *, organization_id: str | None = None) -> list[SwabTest]:
        return self._list(SWAB_TESTS, organization_id=organization_id)

    def get_swab_test(self, swab_id: str) -> SwabTest | None:
        return self._get(SWAB_TESTS, swab_id)

    def create_swab_test(self, swab: SwabTest) -> SwabTest:
        if not swab.location or not swab.location.strip():
            raise ValueError("location is required")
        return self._insert(SWAB_TESTS, swab)

    def update_swab_test(self, swab_id: str, **updates: Any) -> SwabTest:
        return self._update(SWAB_TESTS, swab_id, updates)
