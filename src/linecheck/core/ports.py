# src/linecheck/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task service and the reminder notifier depend on Protocols instead of concrete
implementations, so the in-memory mock store and the SQLite store are interchangeable
and connectors stay swappable.
"""

from typing import Any, Awaitable, Protocol

from ..tasks.task_models import CrossDepartmentDoc, QualityTask, QualityTaskSchedule, SwabTest


class OutboundMessenger(Protocol):
    """
    Connector-side port: how services (reminder notifier) send text outward.

    The connector decides how to interpret:
    - room_id (can be None)
    - to_user_id (can be None)
    E.g. Matrix connector may pick a default room if room_id is missing.
    """

    def send_text(
            self,
            *,
            text: str,
            room_id: str | None = None,
            to_user_id: str | None = None,
    ) -> Awaitable[None]: ...


class TaskRepository(Protocol):
    """
    Storage for quality task schedules, task instances, cross-department docs and swab tests.

    create_* assign id/created_at/updated_at when missing and return the stored record.
    update_* apply field updates and return the stored record, raising TaskNotFound
    for unknown ids. get_* return None for unknown ids.
    """

    # Schedules
    def list_schedules(self, *, organization_id: str | None = None) -> list[QualityTaskSchedule]: ...
    def get_schedule(self, schedule_id: str) -> QualityTaskSchedule | None: ...
    def create_schedule(self, schedule: QualityTaskSchedule) -> QualityTaskSchedule: ...
    def update_schedule(self, schedule_id: str, **updates: Any) -> QualityTaskSchedule: ...

    # Task instances
    def list_tasks(
            self,
            *,
            organization_id: str | None = None,
            scheduled_date: str | None = None,
    ) -> list[QualityTask]: ...
    def get_task(self, task_id: str) -> QualityTask | None: ...
    def create_task(self, task: QualityTask) -> QualityTask: ...
    def update_task(self, task_id: str, **updates: Any) -> QualityTask: ...

    # Cross-department docs
    def list_cross_dept_docs(self, *, organization_id: str | None = None) -> list[CrossDepartmentDoc]: ...
    def get_cross_dept_doc(self, doc_id: str) -> CrossDepartmentDoc | None: ...
    def create_cross_dept_doc(self, doc: CrossDepartmentDoc) -> CrossDepartmentDoc: ...
    def update_cross_dept_doc(self, doc_id: str, **updates: Any) -> CrossDepartmentDoc: ...

    # Swab tests
    def list_swab_tests(self, *, organization_id: str | None = None) -> list[SwabTest]: ...
    def get_swab_test(self, swab_id: str) -> SwabTest | None: ...
    def create_swab_test(self, swab: SwabTest) -> SwabTest: ...
    def update_swab_test(self, swab_id: str, **updates: Any) -> SwabTest: ...
