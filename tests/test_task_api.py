# tests/test_task_api.py

from __future__ import annotations

import random
import re
from datetime import datetime

import pytest

from linecheck.tasks.errors import OrganizationRequired, TaskNotFound
from linecheck.tasks.mock_store import MockTaskStore
from linecheck.tasks.task_api import (
    DashboardStats,
    QualityTaskService,
    completed_on_time,
    generate_number,
)
from linecheck.tasks.task_models import (
    CrossDepartmentDoc,
    CrossDeptDocStatus,
    CrossDeptDocType,
    QualityTaskResult,
    QualityTaskStatus,
    QualityTaskType,
    ReminderStatus,
    SwabTestStatus,
)

from .fakes import NOW, make_task


def _service(*tasks, now: datetime = NOW, organization_id: str | None = "org1") -> QualityTaskService:
    return QualityTaskService(
        MockTaskStore({"tasks": list(tasks)}),
        organization_id=organization_id,
        clock=lambda: now,
    )


# ---- derived queries ----


def test_todays_tasks_and_reminders(service: QualityTaskService) -> None:
    todays = {t.id: t for t in service.todays_tasks()}
    assert set(todays) == {"QTASK001", "QTASK002", "QTASK003", "QTASK004"}

    assert service.reminder_status(todays["QTASK002"]) == ReminderStatus.DUE_NOW
    assert service.reminder_status(todays["QTASK003"]) == ReminderStatus.UPCOMING
    assert service.reminder_message(todays["QTASK002"]) == "10:00 AM Temperature Check - Line 1 is due"


def test_available_tasks_excludes_closed_and_inactive(service: QualityTaskService) -> None:
    # QTASK001 is completed (its window is over), QTASK003 has not opened yet.
    assert [t.id for t in service.available_tasks()] == ["QTASK002"]


def test_overdue_tasks(service: QualityTaskService) -> None:
    assert service.overdue_tasks() == []

    late = datetime(2026, 10, 18, 11, 20)
    assert sorted(t.id for t in service.overdue_tasks(late)) == ["QTASK002", "QTASK003"]


def test_overdue_skips_malformed_windows() -> None:
    service = _service(
        make_task(id="bad", window_end="late"),
        make_task(id="ok", status=QualityTaskStatus.AVAILABLE),
        now=datetime(2026, 10, 18, 12, 0),
    )
    assert [t.id for t in service.overdue_tasks()] == ["ok"]


def test_tasks_by_type_and_status(service: QualityTaskService) -> None:
    assert {t.id for t in service.tasks_by_type(QualityTaskType.TEMP_CHECK)} == {
        "QTASK001",
        "QTASK002",
        "QTASK003",
    }
    assert {t.id for t in service.tasks_by_status("completed")} == {"QTASK001", "QTASK004"}


def test_get_task_unknown_raises(service: QualityTaskService) -> None:
    with pytest.raises(TaskNotFound):
        service.get_task("QTASK999")


def test_pending_sign_offs(service: QualityTaskService) -> None:
    assert [d.id for d in service.pending_sign_offs()] == ["CDD001"]


# ---- dashboard ----


def test_dashboard_counts_on_seed(service: QualityTaskService) -> None:
    stats = service.dashboard_stats()

    assert stats.open_tasks == 2
    assert stats.completed_today == 2
    # CDD001 pending quality + SWAB001 awaiting results; QTASK004 is already signed off.
    assert stats.pending_review == 2
    assert stats.first_pass_yield == 100.0


def test_dashboard_with_no_completed_tasks() -> None:
    stats = _service(make_task()).dashboard_stats()
    assert stats == DashboardStats(
        open_tasks=1,
        completed_today=0,
        pending_review=0,
        first_pass_yield=100.0,
        compliance_rate=100,
    )


def test_dashboard_yield_and_compliance() -> None:
    service = _service(
        make_task(
            id="a",
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.PASS,
            completed_at="2026-10-18T10:10:00",
        ),
        make_task(
            id="b",
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.PASS,
            completed_at="2026-10-18T10:40:00",
        ),
        make_task(
            id="c",
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.FAIL,
            completed_at="2026-10-18T10:15:00",
            requires_sign_off=True,
        ),
    )

    stats = service.dashboard_stats()

    assert stats.first_pass_yield == 66.7
    assert stats.compliance_rate == 67
    assert stats.completed_today == 3
    assert stats.pending_review == 1


@pytest.mark.parametrize(
    ("total", "expected_compliance", "expected_yield"),
    [(8, 13, 12.5), (16, 6, 6.3)],
)
def test_dashboard_rounds_halves_up(total: int, expected_compliance: int, expected_yield: float) -> None:
    # One on-time pass; the rest finished late and failed.
    tasks = [
        make_task(
            id="t0",
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.PASS,
            completed_at="2026-10-18T10:00:00",
        )
    ] + [
        make_task(
            id=f"t{i}",
            status=QualityTaskStatus.COMPLETED,
            result=QualityTaskResult.FAIL,
            completed_at="2026-10-18T11:00:00",
        )
        for i in range(1, total)
    ]

    stats = _service(*tasks).dashboard_stats()

    assert stats.compliance_rate == expected_compliance
    assert stats.first_pass_yield == expected_yield


def test_completed_on_time_edges() -> None:
    assert completed_on_time(make_task(completed_at="2026-10-18T10:15:00"))
    assert not completed_on_time(make_task(completed_at="2026-10-18T10:16:00"))
    assert not completed_on_time(make_task(completed_at=None))
    assert not completed_on_time(make_task(completed_at="not a timestamp"))


# ---- numbers ----


def test_generate_number_format() -> None:
    now = datetime(2026, 10, 18, 10, 5)
    number = generate_number("QT", now, random.Random(7))

    assert re.fullmatch(r"QT-2610-\d{4}", number)
    assert number == generate_number("QT", now, random.Random(7))


def test_service_number_generators(service: QualityTaskService) -> None:
    assert service.generate_schedule_number().startswith("QS-2610-")
    assert service.generate_task_number().startswith("QT-2610-")
    assert service.generate_cross_dept_doc_number().startswith("EHR-2610-")
    assert service.generate_swab_number().startswith("SW-2610-")


# ---- mutations ----


def test_create_task_requires_organization() -> None:
    service = _service(organization_id=None)
    with pytest.raises(OrganizationRequired, match="No organization selected"):
        service.create_task(make_task(id="", task_number=""))


def test_create_task_fills_org_and_number() -> None:
    service = _service()
    created = service.create_task(make_task(id="", organization_id="", task_number=""))

    assert created.organization_id == "org1"
    assert re.fullmatch(r"QT-2610-\d{4}", created.task_number)
    assert service.get_task(created.id) == created


def test_start_then_complete_task(service: QualityTaskService) -> None:
    started = service.start_task("QTASK002", "Dana Reyes", started_by_id="EMP007")
    assert started.status is QualityTaskStatus.IN_PROGRESS
    assert started.started_at

    done = service.complete_task("QTASK002", "Dana Reyes", "pass", notes="all in spec")

    assert done.status is QualityTaskStatus.COMPLETED
    assert done.result is QualityTaskResult.PASS
    assert done.completed_by == "Dana Reyes"
    assert done.duration_minutes is not None and done.duration_minutes >= 0
    assert done.notes == "all in spec"
    assert service.available_tasks() == []


def test_complete_without_start_has_zero_duration(service: QualityTaskService) -> None:
    done = service.complete_task("QTASK003", "Dana Reyes", QualityTaskResult.NEEDS_REVIEW)
    assert done.duration_minutes == 0


def test_complete_rejects_unknown_result(service: QualityTaskService) -> None:
    with pytest.raises(ValueError):
        service.complete_task("QTASK002", "Dana Reyes", "great")


def test_sign_off_task(service: QualityTaskService) -> None:
    signed = service.sign_off_task("QTASK001", "Supervisor", notes="ok")
    assert signed.signed_off_by == "Supervisor"
    assert signed.signed_off_at
    assert signed.sign_off_notes == "ok"


def test_cross_dept_doc_sign_off(service: QualityTaskService) -> None:
    doc = service.create_cross_dept_doc(
        CrossDepartmentDoc(
            id="",
            organization_id="",
            doc_number="",
            doc_type=CrossDeptDocType.SANITATION,
            status=CrossDeptDocStatus.PENDING_QUALITY,
            work_performed="Deep clean of Line 1",
            work_date="2026-10-18",
            performed_by="Sanitation crew",
        )
    )
    assert doc.doc_number.startswith("EHR-2610-")

    with pytest.raises(ValueError, match="Invalid sign-off status"):
        service.sign_off_cross_dept_doc(doc.id, "QA Lead", "pending_quality")

    approved = service.sign_off_cross_dept_doc(doc.id, "QA Lead", "approved", food_safety_compromised=False)
    assert approved.status is CrossDeptDocStatus.APPROVED
    assert approved.quality_signed_off_by == "QA Lead"
    assert approved.quality_signed_off_at


def test_record_swab_result(service: QualityTaskService) -> None:
    with pytest.raises(ValueError, match="pass' or 'fail"):
        service.record_swab_result("SWAB001", "maybe", "Lab Tech")

    swab = service.record_swab_result("SWAB001", "fail", "Lab Tech", retest_required=True)

    assert swab.status is SwabTestStatus.COMPLETED
    assert swab.result == "fail"
    assert swab.retest_required is True
    assert swab.results_received_at


def test_mutating_unknown_task_raises_not_found(service: QualityTaskService) -> None:
    with pytest.raises(TaskNotFound):
        service.start_task("QTASK999", "Dana Reyes")
