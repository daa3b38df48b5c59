# src/linecheck/tasks/task_api.py

from __future__ import annotations

"""
High-level quality task operations used by commands and connectors.

QualityTaskService wraps a TaskRepository with:
- derived lists (today / available / overdue / by type / by status),
- reminder phase + message per task,
- dashboard statistics,
- lifecycle helpers (start / complete / sign off, doc sign-off, swab results),
- record number generators.
"""

import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Any

from ..core.ports import TaskRepository
from .errors import InvalidTimeFormat, OrganizationRequired, TaskNotFound
from .reminders import reminder_message
from .task_models import (
    ACTIVE_REMINDER_STATUSES,
    CLOSED_STATUSES,
    OPEN_STATUSES,
    ChecklistItem,
    CrossDepartmentDoc,
    CrossDeptDocStatus,
    QualityTask,
    QualityTaskResult,
    QualityTaskSchedule,
    QualityTaskStatus,
    QualityTaskType,
    RecordedParameter,
    ReminderStatus,
    SwabTest,
    SwabTestStatus,
)
from .task_store import now_iso
from .time_window import ALMOST_LATE_MINUTES, classify, parse_hhmm

logger = logging.getLogger(__name__)

SCHEDULE_PREFIX = "QS"
TASK_PREFIX = "QT"
CROSS_DEPT_DOC_PREFIX = "EHR"
SWAB_PREFIX = "SW"

_SIGN_OFF_OUTCOMES = frozenset(
    {CrossDeptDocStatus.APPROVED, CrossDeptDocStatus.REJECTED, CrossDeptDocStatus.NEEDS_ACTION}
)


def generate_number(prefix: str, now: datetime | None = None, rng: random.Random | None = None) -> str:
    """Record number like QT-2510-0042: prefix, two-digit year + month, random 4 digits."""
    now = now or datetime.now()
    n = (rng or random).randrange(10000)
    return f"{prefix}-{now:%y%m}-{n:04d}"


@dataclass(slots=True, frozen=True)
class DashboardStats:
    open_tasks: int
    completed_today: int
    pending_review: int
    first_pass_yield: float
    compliance_rate: int


def _round_half_up(value: float, digits: int = 0) -> float:
    """Round with .5 going up (not to even), e.g. 12.5 -> 13, 6.25 -> 6.3 at one digit."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _to_local_naive(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone().replace(tzinfo=None)


def completed_on_time(task: QualityTask) -> bool:
    """True if the task was completed at or before window_end on its scheduled date."""
    if not task.completed_at:
        return False
    try:
        completed = _to_local_naive(datetime.fromisoformat(task.completed_at))
        end_minutes = parse_hhmm(task.window_end, "window_end")
        deadline = datetime.combine(
            date.fromisoformat(task.scheduled_date),
            time(end_minutes // 60, end_minutes % 60),
        )
    except ValueError:
        logger.warning("Cannot evaluate on-time completion for task %s", task.id, exc_info=True)
        return False
    return completed <= deadline


class QualityTaskService:
    def __init__(
        self,
        repo: TaskRepository,
        *,
        organization_id: str | None = None,
        almost_late_minutes: int = ALMOST_LATE_MINUTES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repo = repo
        self.organization_id = organization_id
        self.almost_late_minutes = int(almost_late_minutes)
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    def _require_org(self) -> str:
        if not self.organization_id:
            raise OrganizationRequired()
        return self.organization_id

    # ---- queries ----

    def schedules(self) -> list[QualityTaskSchedule]:
        return self.repo.list_schedules(organization_id=self.organization_id)

    def tasks(self) -> list[QualityTask]:
        return self.repo.list_tasks(organization_id=self.organization_id)

    def todays_tasks(self, now: datetime | None = None) -> list[QualityTask]:
        today = (now or self.now()).date().isoformat()
        return self.repo.list_tasks(organization_id=self.organization_id, scheduled_date=today)

    def cross_dept_docs(self) -> list[CrossDepartmentDoc]:
        return self.repo.list_cross_dept_docs(organization_id=self.organization_id)

    def pending_sign_offs(self) -> list[CrossDepartmentDoc]:
        return [d for d in self.cross_dept_docs() if d.status == CrossDeptDocStatus.PENDING_QUALITY]

    def swab_tests(self) -> list[SwabTest]:
        return self.repo.list_swab_tests(organization_id=self.organization_id)

    def get_task(self, task_id: str) -> QualityTask:
        task = self.repo.get_task(task_id)
        if task is None:
            raise TaskNotFound("task", task_id)
        return task

    def tasks_by_type(self, task_type: QualityTaskType | str) -> list[QualityTask]:
        return [t for t in self.tasks() if t.task_type == task_type]

    def tasks_by_status(self, status: QualityTaskStatus | str) -> list[QualityTask]:
        return [t for t in self.tasks() if t.status == status]

    # ---- reminders ----

    def reminder_status(self, task: QualityTask, now: datetime | None = None) -> ReminderStatus:
        return classify(task, now or self.now(), almost_late_minutes=self.almost_late_minutes)

    def reminder_message(self, task: QualityTask, now: datetime | None = None) -> str:
        status = self.reminder_status(task, now)
        return reminder_message(task, status, almost_late_minutes=self.almost_late_minutes)

    def _status_or_none(self, task: QualityTask, now: datetime) -> ReminderStatus | None:
        try:
            return self.reminder_status(task, now)
        except InvalidTimeFormat:
            logger.warning("Skipping task %s with malformed time window", task.id, exc_info=True)
            return None

    def available_tasks(self, now: datetime | None = None) -> list[QualityTask]:
        """Open tasks scheduled today whose window is active (can_start / due_now / almost_late)."""
        now = now or self.now()
        return [
            t
            for t in self.todays_tasks(now)
            if t.status not in CLOSED_STATUSES
            and self._status_or_none(t, now) in ACTIVE_REMINDER_STATUSES
        ]

    def overdue_tasks(self, now: datetime | None = None) -> list[QualityTask]:
        now = now or self.now()
        return [
            t
            for t in self.tasks()
            if t.status not in CLOSED_STATUSES
            and self._status_or_none(t, now) == ReminderStatus.OVERDUE
        ]

    # ---- dashboard ----

    def dashboard_stats(self, now: datetime | None = None) -> DashboardStats:
        now = now or self.now()
        today = now.date().isoformat()
        tasks = self.tasks()

        todays = [t for t in tasks if t.scheduled_date == today]
        open_tasks = sum(1 for t in todays if t.status in OPEN_STATUSES)
        completed_today = sum(1 for t in todays if t.status == QualityTaskStatus.COMPLETED)

        pending_docs = sum(
            1 for d in self.cross_dept_docs() if d.status == CrossDeptDocStatus.PENDING_QUALITY
        )
        pending_swabs = sum(
            1
            for s in self.swab_tests()
            if s.status in (SwabTestStatus.PENDING, SwabTestStatus.AWAITING_RESULTS)
        )
        unsigned = sum(
            1
            for t in tasks
            if t.requires_sign_off and not t.signed_off_at and t.status == QualityTaskStatus.COMPLETED
        )

        completed = [t for t in tasks if t.status == QualityTaskStatus.COMPLETED]
        if completed:
            passed = sum(1 for t in completed if t.result == QualityTaskResult.PASS)
            first_pass_yield = _round_half_up(passed / len(completed) * 100, 1)
            on_time = sum(1 for t in completed if completed_on_time(t))
            compliance_rate = _round_half_up(on_time / len(completed) * 100)
        else:
            first_pass_yield = 100.0
            compliance_rate = 100

        return DashboardStats(
            open_tasks=open_tasks,
            completed_today=completed_today,
            pending_review=pending_docs + pending_swabs + unsigned,
            first_pass_yield=first_pass_yield,
            compliance_rate=int(compliance_rate),
        )

    # ---- number generators ----

    def generate_schedule_number(self) -> str:
        return generate_number(SCHEDULE_PREFIX, self.now())

    def generate_task_number(self) -> str:
        return generate_number(TASK_PREFIX, self.now())

    def generate_cross_dept_doc_number(self) -> str:
        return generate_number(CROSS_DEPT_DOC_PREFIX, self.now())

    def generate_swab_number(self) -> str:
        return generate_number(SWAB_PREFIX, self.now())

    # ---- mutations ----

    def create_schedule(self, schedule: QualityTaskSchedule) -> QualityTaskSchedule:
        org = self._require_org()
        logger.info("Creating schedule: %s", schedule.schedule_name)
        schedule = replace(
            schedule,
            organization_id=org,
            schedule_number=schedule.schedule_number or self.generate_schedule_number(),
        )
        return self.repo.create_schedule(schedule)

    def update_schedule(self, schedule_id: str, **updates: Any) -> QualityTaskSchedule:
        logger.info("Updating schedule: %s", schedule_id)
        return self.repo.update_schedule(schedule_id, **updates)

    def create_task(self, task: QualityTask) -> QualityTask:
        org = self._require_org()
        task = replace(
            task,
            organization_id=org,
            task_number=task.task_number or self.generate_task_number(),
        )
        logger.info("Creating task: %s", task.task_number)
        return self.repo.create_task(task)

    def start_task(self, task_id: str, started_by: str, started_by_id: str | None = None) -> QualityTask:
        logger.info("Starting task: %s", task_id)
        return self.repo.update_task(
            task_id,
            status=QualityTaskStatus.IN_PROGRESS,
            started_at=now_iso(),
            started_by=started_by,
            started_by_id=started_by_id,
        )

    def complete_task(
        self,
        task_id: str,
        completed_by: str,
        result: QualityTaskResult | str,
        *,
        completed_by_id: str | None = None,
        checklist_items: list[ChecklistItem] | None = None,
        recorded_parameters: list[RecordedParameter] | None = None,
        issues_found: str | None = None,
        corrective_action: str | None = None,
        ncr_required: bool = False,
        notes: str | None = None,
    ) -> QualityTask:
        """
        Mark a task completed with its result and recorded data.

        duration_minutes is measured from started_at; tasks completed without
        being started get 0.
        """
        logger.info("Completing task: %s", task_id)
        task = self.get_task(task_id)
        completed_at = now_iso()

        duration = 0
        if task.started_at:
            try:
                started = datetime.fromisoformat(task.started_at)
                finished = datetime.fromisoformat(completed_at)
                if started.tzinfo is None:
                    finished = _to_local_naive(finished)
                duration = max(0, round((finished - started).total_seconds() / 60))
            except ValueError:
                logger.warning("Bad started_at on task %s: %r", task_id, task.started_at)

        return self.repo.update_task(
            task_id,
            status=QualityTaskStatus.COMPLETED,
            completed_at=completed_at,
            completed_by=completed_by,
            completed_by_id=completed_by_id,
            result=QualityTaskResult(result),
            checklist_items=list(checklist_items or []),
            recorded_parameters=list(recorded_parameters or []),
            issues_found=issues_found or None,
            corrective_action=corrective_action or None,
            ncr_required=bool(ncr_required),
            duration_minutes=duration,
            notes=notes or None,
        )

    def sign_off_task(
        self,
        task_id: str,
        signed_off_by: str,
        *,
        signed_off_by_id: str | None = None,
        notes: str | None = None,
    ) -> QualityTask:
        logger.info("Signing off task: %s", task_id)
        return self.repo.update_task(
            task_id,
            signed_off_by=signed_off_by,
            signed_off_by_id=signed_off_by_id,
            signed_off_at=now_iso(),
            sign_off_notes=notes or None,
        )

    def create_cross_dept_doc(self, doc: CrossDepartmentDoc) -> CrossDepartmentDoc:
        org = self._require_org()
        doc = replace(
            doc,
            organization_id=org,
            doc_number=doc.doc_number or self.generate_cross_dept_doc_number(),
        )
        logger.info("Creating cross-dept doc: %s", doc.doc_number)
        return self.repo.create_cross_dept_doc(doc)

    def sign_off_cross_dept_doc(
        self,
        doc_id: str,
        signed_off_by: str,
        status: CrossDeptDocStatus | str,
        *,
        signed_off_by_id: str | None = None,
        food_safety_compromised: bool = False,
        corrective_actions: str | None = None,
        notes: str | None = None,
    ) -> CrossDepartmentDoc:
        outcome = CrossDeptDocStatus(status)
        if outcome not in _SIGN_OFF_OUTCOMES:
            raise ValueError(f"Invalid sign-off status: {outcome.value}")
        logger.info("Signing off cross-dept doc: %s (%s)", doc_id, outcome.value)
        return self.repo.update_cross_dept_doc(
            doc_id,
            status=outcome,
            quality_signed_off_by=signed_off_by,
            quality_signed_off_by_id=signed_off_by_id,
            quality_signed_off_at=now_iso(),
            food_safety_compromised=bool(food_safety_compromised),
            corrective_actions=corrective_actions or None,
            quality_notes=notes or None,
        )

    def create_swab_test(self, swab: SwabTest) -> SwabTest:
        org = self._require_org()
        swab = replace(
            swab,
            organization_id=org,
            swab_number=swab.swab_number or self.generate_swab_number(),
        )
        logger.info("Creating swab test: %s", swab.swab_number)
        return self.repo.create_swab_test(swab)

    def record_swab_result(
        self,
        swab_id: str,
        result: str,
        entered_by: str,
        *,
        entered_by_id: str | None = None,
        atp_reading: float | None = None,
        detailed_results: Any = None,
        corrective_action_required: bool = False,
        corrective_action: str | None = None,
        retest_required: bool = False,
    ) -> SwabTest:
        if result not in ("pass", "fail"):
            raise ValueError(f"Swab result must be 'pass' or 'fail', got {result!r}")
        logger.info("Recording swab result: %s -> %s", swab_id, result)
        return self.repo.update_swab_test(
            swab_id,
            status=SwabTestStatus.COMPLETED,
            result=result,
            atp_reading=atp_reading,
            detailed_results=detailed_results,
            results_received_at=now_iso(),
            results_entered_by=entered_by,
            results_entered_by_id=entered_by_id,
            corrective_action_required=bool(corrective_action_required),
            corrective_action=corrective_action or None,
            retest_required=bool(retest_required),
        )
