# src/linecheck/tasks/mock_store.py

from __future__ import annotations

"""
In-memory TaskRepository seeded with demo records.

Used for demos, the "mock" storage backend and unit tests. Same contract as the
SQLite TaskStore; records are copied on the way in and out so callers cannot
mutate stored state by accident.
"""

import copy
import logging
from datetime import date, datetime, timezone
from typing import Any

from .errors import TaskNotFound
from .task_models import (
    ChecklistItem,
    CrossDepartmentDoc,
    CrossDeptDocStatus,
    CrossDeptDocType,
    NotificationSettings,
    ParameterConfig,
    QualityTask,
    QualityTaskFrequency,
    QualityTaskPriority,
    QualityTaskResult,
    QualityTaskSchedule,
    QualityTaskStatus,
    QualityTaskType,
    RecordedParameter,
    SwabTest,
    SwabTestStatus,
    SwabTestType,
)
from .task_store import apply_updates, stamp_new

logger = logging.getLogger(__name__)


class MockTaskStore:
    def __init__(self, records: dict[str, list[Any]] | None = None) -> None:
        self._schedules: dict[str, QualityTaskSchedule] = {}
        self._tasks: dict[str, QualityTask] = {}
        self._docs: dict[str, CrossDepartmentDoc] = {}
        self._swabs: dict[str, SwabTest] = {}

        records = records or {}
        for s in records.get("schedules", []):
            self._schedules[s.id] = copy.deepcopy(s)
        for t in records.get("tasks", []):
            self._tasks[t.id] = copy.deepcopy(t)
        for d in records.get("cross_dept_docs", []):
            self._docs[d.id] = copy.deepcopy(d)
        for w in records.get("swab_tests", []):
            self._swabs[w.id] = copy.deepcopy(w)

        logger.info(
            "MockTaskStore ready schedules=%d tasks=%d docs=%d swabs=%d",
            len(self._schedules),
            len(self._tasks),
            len(self._docs),
            len(self._swabs),
        )

    @classmethod
    def seeded(cls, today: date | None = None, organization_id: str = "org1") -> MockTaskStore:
        return cls(build_seed_records(today or date.today(), organization_id))

    def close(self) -> None:
        return

    # ---- helpers ----

    @staticmethod
    def _filter_org(items: dict[str, Any], organization_id: str | None) -> list[Any]:
        return [
            copy.deepcopy(v)
            for v in items.values()
            if not organization_id or v.organization_id == organization_id
        ]

    @staticmethod
    def _insert(bucket: dict[str, Any], record: Any, label: str) -> Any:
        record = stamp_new(record)
        if record.id in bucket:
            raise ValueError(f"{label} id already exists: {record.id}")
        bucket[record.id] = record
        return copy.deepcopy(record)

    @staticmethod
    def _update(bucket: dict[str, Any], record_id: str, updates: dict[str, Any], label: str) -> Any:
        current = bucket.get(record_id)
        if current is None:
            raise TaskNotFound(label, record_id)
        if not updates:
            return copy.deepcopy(current)
        record = apply_updates(current, updates)
        bucket[record_id] = record
        return copy.deepcopy(record)

    # ---- schedules ----

    def list_schedules(self, *, organization_id: str | None = None) -> list[QualityTaskSchedule]:
        return self._filter_org(self._schedules, organization_id)

    def get_schedule(self, schedule_id: str) -> QualityTaskSchedule | None:
        return copy.deepcopy(self._schedules.get(schedule_id))

    def create_schedule(self, schedule: QualityTaskSchedule) -> QualityTaskSchedule:
        if not schedule.schedule_name or not schedule.schedule_name.strip():
            raise ValueError("schedule_name is required")
        return self._insert(self._schedules, schedule, "schedule")

    def update_schedule(self, schedule_id: str, **updates: Any) -> QualityTaskSchedule:
        return self._update(self._schedules, schedule_id, updates, "schedule")

    # ---- tasks ----

    def list_tasks(
        self,
        *,
        organization_id: str | None = None,
        scheduled_date: str | None = None,
    ) -> list[QualityTask]:
        out = self._filter_org(self._tasks, organization_id)
        if scheduled_date is not None:
            out = [t for t in out if t.scheduled_date == scheduled_date]
        return out

    def get_task(self, task_id: str) -> QualityTask | None:
        return copy.deepcopy(self._tasks.get(task_id))

    def create_task(self, task: QualityTask) -> QualityTask:
        if not task.title or not task.title.strip():
            raise ValueError("title is required")
        return self._insert(self._tasks, task, "task")

    def update_task(self, task_id: str, **updates: Any) -> QualityTask:
        return self._update(self._tasks, task_id, updates, "task")

    # ---- cross-department docs ----

    def list_cross_dept_docs(self, *, organization_id: str | None = None) -> list[CrossDepartmentDoc]:
        return self._filter_org(self._docs, organization_id)

    def get_cross_dept_doc(self, doc_id: str) -> CrossDepartmentDoc | None:
        return copy.deepcopy(self._docs.get(doc_id))

    def create_cross_dept_doc(self, doc: CrossDepartmentDoc) -> CrossDepartmentDoc:
        if not doc.work_performed or not doc.work_performed.strip():
            raise ValueError("work_performed is required")
        return self._insert(self._docs, doc, "cross-department doc")

    def update_cross_dept_doc(self, doc_id: str, **updates: Any) -> CrossDepartmentDoc:
        return self._update(self._docs, doc_id, updates, "cross-department doc")

    # ---- swab tests ----

    def list_swab_tests(self, *, organization_id: str | None = None) -> list[SwabTest]:
        return self._filter_org(self._swabs, organization_id)

    def get_swab_test(self, swab_id: str) -> SwabTest | None:
        return copy.deepcopy(self._swabs.get(swab_id))

    def create_swab_test(self, swab: SwabTest) -> SwabTest:
        if not swab.location or not swab.location.strip():
            raise ValueError("location is required")
        return self._insert(self._swabs, swab, "swab test")

    def update_swab_test(self, swab_id: str, **updates: Any) -> SwabTest:
        return self._update(self._swabs, swab_id, updates, "swab test")


# --------------------------------------------------------------------------------------
# Seed data
# --------------------------------------------------------------------------------------

_TEMP_CHECKLIST = [
    "Verify thermometer is calibrated",
    "Record ambient temperature",
    "Record product temperature (3 samples)",
    "Check equipment display matches readings",
]

_PREOP_CHECKLIST = [
    "Verify sanitation completed",
    "Check equipment cleanliness",
    "Inspect conveyor belts",
    "Verify no foreign materials",
    "Check allergen controls",
]


def _checklist(items: list[str], completed: bool = False) -> list[ChecklistItem]:
    return [
        ChecklistItem(id=str(i), item=text, required=True, completed=completed)
        for i, text in enumerate(items, start=1)
    ]


def build_seed_records(today: date, organization_id: str = "org1") -> dict[str, list[Any]]:
    """Demo schedules/tasks/docs/swabs; task instances are dated `today`."""
    day = today.isoformat()
    created = "2025-01-01T00:00:00+00:00"
    stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")

    schedules = [
        QualityTaskSchedule(
            id="QSCHED001",
            organization_id=organization_id,
            schedule_number="QS-2501-0001",
            schedule_name="Hourly Temperature Check - Line 1",
            task_type=QualityTaskType.TEMP_CHECK,
            frequency=QualityTaskFrequency.HOURLY,
            priority=QualityTaskPriority.HIGH,
            facility_id="FAC001",
            department_code="QA",
            department_name="Quality Assurance",
            location="Production Floor",
            line_id="LINE001",
            line_name="Line 1",
            description="Hourly temperature verification for Line 1 production",
            instructions="Check ambient temp, product temp at 3 points, and equipment temp",
            checklist_items=_checklist(_TEMP_CHECKLIST),
            parameters_to_record=[
                ParameterConfig("p1", "Ambient Temp", "°F", 35, 45, 40),
                ParameterConfig("p2", "Product Temp 1", "°F", 32, 40, 36),
                ParameterConfig("p3", "Product Temp 2", "°F", 32, 40, 36),
                ParameterConfig("p4", "Product Temp 3", "°F", 32, 40, 36),
            ],
            start_time="06:00",
            end_time="18:00",
            grace_period_before_minutes=15,
            grace_period_after_minutes=15,
            days_of_week=[1, 2, 3, 4, 5],
            assigned_role="QA Technician",
            effective_date="2025-01-01",
            notification_settings=NotificationSettings(
                notify_before_late_minutes=5,
                escalate_to_supervisor=True,
                escalation_delay_minutes=30,
            ),
            created_at=created,
            updated_at=created,
        ),
        QualityTaskSchedule(
            id="QSCHED002",
            organization_id=organization_id,
            schedule_number="QS-2501-0002",
            schedule_name="Daily Pre-Op Line Inspection",
            task_type=QualityTaskType.INSPECTION,
            frequency=QualityTaskFrequency.DAILY,
            priority=QualityTaskPriority.CRITICAL,
            facility_id="FAC001",
            department_code="QA",
            department_name="Quality Assurance",
            location="Production Floor",
            line_name="All Lines",
            description="Daily pre-operational inspection of all production lines",
            instructions="Complete full pre-op checklist before production starts",
            checklist_items=_checklist(_PREOP_CHECKLIST),
            start_time="05:00",
            grace_period_before_minutes=30,
            grace_period_after_minutes=30,
            days_of_week=[1, 2, 3, 4, 5, 6],
            assigned_role="QA Supervisor",
            requires_sign_off=True,
            sign_off_role="Production Supervisor",
            effective_date="2025-01-01",
            notification_settings=NotificationSettings(
                notify_before_late_minutes=10,
                escalate_to_supervisor=True,
                escalation_delay_minutes=15,
            ),
            created_at=created,
            updated_at=created,
        ),
        QualityTaskSchedule(
            id="QSCHED003",
            organization_id=organization_id,
            schedule_number="QS-2501-0003",
            schedule_name="Weekly Calibration Verification",
            task_type=QualityTaskType.CALIBRATION,
            frequency=QualityTaskFrequency.WEEKLY,
            priority=QualityTaskPriority.HIGH,
            facility_id="FAC001",
            department_code="QA",
            department_name="Quality Assurance",
            location="Lab / Production",
            description="Weekly verification of all critical measuring equipment",
            instructions="Verify calibration of thermometers, scales, pH meters, and metal detectors",
            checklist_items=_checklist(
                [
                    "Thermometers (ice point check)",
                    "Scales (test weights)",
                    "pH meters (buffer solutions)",
                    "Metal detectors (test wands)",
                ]
            ),
            start_time="08:00",
            grace_period_before_minutes=60,
            grace_period_after_minutes=120,
            days_of_week=[1],
            assigned_role="QA Technician",
            requires_sign_off=True,
            sign_off_role="QA Manager",
            effective_date="2025-01-01",
            notification_settings=NotificationSettings(
                notify_before_late_minutes=30,
                escalate_to_supervisor=True,
                escalation_delay_minutes=60,
            ),
            created_at=created,
            updated_at=created,
        ),
    ]

    def temp_task(task_id: str, number: str, hour: int, **extra: Any) -> QualityTask:
        label = f"{hour % 12 or 12}:00 {'AM' if hour < 12 else 'PM'}"
        base = dict(
            id=task_id,
            organization_id=organization_id,
            task_number=number,
            schedule_id="QSCHED001",
            schedule_name="Hourly Temperature Check - Line 1",
            task_type=QualityTaskType.TEMP_CHECK,
            status=QualityTaskStatus.SCHEDULED,
            priority=QualityTaskPriority.HIGH,
            facility_id="FAC001",
            department_code="QA",
            department_name="Quality Assurance",
            location="Production Floor",
            line_id="LINE001",
            line_name="Line 1",
            title=f"{label} Temperature Check - Line 1",
            description="Hourly temperature verification",
            instructions="Check ambient temp, product temp at 3 points",
            scheduled_date=day,
            scheduled_time=f"{hour:02d}:00",
            window_start=f"{hour - 1:02d}:45",
            window_end=f"{hour:02d}:15",
            due_time=f"{hour:02d}:00",
            checklist_items=_checklist(_TEMP_CHECKLIST),
            created_at=stamp,
            updated_at=stamp,
        )
        base.update(extra)
        return QualityTask(**base)

    tasks = [
        temp_task(
            "QTASK001",
            "QT-2501-0001",
            9,
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.PASS,
            assigned_to="John Smith",
            assigned_to_id="EMP001",
            started_at=stamp,
            started_by="John Smith",
            started_by_id="EMP001",
            completed_at=stamp,
            completed_by="John Smith",
            completed_by_id="EMP001",
            duration_minutes=8,
            checklist_items=_checklist(_TEMP_CHECKLIST, completed=True),
            recorded_parameters=[
                RecordedParameter("p1", "Ambient Temp", 38, "°F", True, stamp),
                RecordedParameter("p2", "Product Temp 1", 35, "°F", True, stamp),
                RecordedParameter("p3", "Product Temp 2", 36, "°F", True, stamp),
                RecordedParameter("p4", "Product Temp 3", 35, "°F", True, stamp),
            ],
        ),
        temp_task("QTASK002", "QT-2501-0002", 10, status=QualityTaskStatus.AVAILABLE),
        temp_task("QTASK003", "QT-2501-0003", 11),
        QualityTask(
            id="QTASK004",
            organization_id=organization_id,
            task_number="QT-2501-0004",
            schedule_id="QSCHED002",
            schedule_name="Daily Pre-Op Line Inspection",
            task_type=QualityTaskType.INSPECTION,
            status=QualityTaskStatus.COMPLETED,
            priority=QualityTaskPriority.CRITICAL,
            result=QualityTaskResult.PASS,
            facility_id="FAC001",
            department_code="QA",
            department_name="Quality Assurance",
            location="Production Floor",
            line_name="All Lines",
            title="Daily Pre-Op Inspection",
            description="Daily pre-operational inspection",
            scheduled_date=day,
            scheduled_time="05:00",
            window_start="04:30",
            window_end="05:30",
            due_time="05:00",
            assigned_to="Sarah Wilson",
            assigned_to_id="EMP002",
            started_at=stamp,
            started_by="Sarah Wilson",
            started_by_id="EMP002",
            completed_at=stamp,
            completed_by="Sarah Wilson",
            completed_by_id="EMP002",
            duration_minutes=25,
            checklist_items=_checklist(_PREOP_CHECKLIST, completed=True),
            requires_sign_off=True,
            signed_off_by="Tom Brown",
            signed_off_by_id="EMP003",
            signed_off_at=stamp,
            created_at=stamp,
            updated_at=stamp,
        ),
    ]

    docs = [
        CrossDepartmentDoc(
            id="CDD001",
            organization_id=organization_id,
            doc_number="EHR-2501-0001",
            doc_type=CrossDeptDocType.EQUIPMENT_WORK,
            status=CrossDeptDocStatus.PENDING_QUALITY,
            facility_id="FAC001",
            location="Production Floor - Line 1",
            equipment_id="EQ001",
            equipment_name="Mixer #1",
            work_performed="Replaced agitator blade and seals",
            work_date=day,
            work_start_time="06:00",
            work_end_time="08:30",
            performed_by="Mike Johnson",
            performed_by_id="EMP010",
            performed_by_department="Maintenance",
            sanitation_required=True,
            sanitation_completed=True,
            sanitation_completed_by="Maria Garcia",
            sanitation_completed_at=stamp,
            swab_test_required=True,
            swab_test_id="SWAB001",
            swab_test_result="pending",
            quality_sign_off_required=True,
            notes="Regular maintenance per PM schedule",
            created_at=stamp,
            updated_at=stamp,
        ),
    ]

    swabs = [
        SwabTest(
            id="SWAB001",
            organization_id=organization_id,
            swab_number="SW-2501-0001",
            test_type=SwabTestType.ATP,
            status=SwabTestStatus.AWAITING_RESULTS,
            result="pending",
            facility_id="FAC001",
            location="Production Floor - Line 1",
            zone="1",
            equipment_id="EQ001",
            equipment_name="Mixer #1",
            surface_type="Food contact surface",
            reason="post_maintenance",
            related_doc_id="CDD001",
            sampled_by="John Smith",
            sampled_by_id="EMP001",
            sampled_at=stamp,
            sample_id="ATP-001",
            atp_threshold=30,
            notes="Post-maintenance swab for Mixer #1 agitator replacement",
            created_at=stamp,
            updated_at=stamp,
        ),
    ]

    return {
        "schedules": schedules,
        "tasks": tasks,
        "cross_dept_docs": docs,
        "swab_tests": swabs,
    }
