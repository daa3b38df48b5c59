# src/linecheck/tasks/task_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import StrEnum
from typing import Any, TypeVar


class _DbEnum(StrEnum):
    """StrEnum with a tolerant constructor for values read back from storage."""

    @classmethod
    def from_db(cls, raw: str | None, default: Any = None) -> Any:
        if not raw:
            return default
        try:
            return cls(raw)
        except ValueError:
            return default


class QualityTaskFrequency(_DbEnum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    ONE_TIME = "one_time"


class QualityTaskStatus(_DbEnum):
    """
    Task instance lifecycle.

    scheduled -> available -> in_progress -> completed
    Tasks that were never done end up missed or skipped.
    """

    SCHEDULED = "scheduled"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    SKIPPED = "skipped"


OPEN_STATUSES = frozenset(
    {QualityTaskStatus.SCHEDULED, QualityTaskStatus.AVAILABLE, QualityTaskStatus.IN_PROGRESS}
)
CLOSED_STATUSES = frozenset({QualityTaskStatus.COMPLETED, QualityTaskStatus.SKIPPED})


class QualityTaskType(_DbEnum):
    LINE_CHECK = "line_check"
    TEMP_CHECK = "temp_check"
    SWAB_TEST = "swab_test"
    CALIBRATION = "calibration"
    INSPECTION = "inspection"
    VERIFICATION = "verification"
    SIGN_OFF = "sign_off"
    AUDIT = "audit"
    OTHER = "other"


class QualityTaskPriority(_DbEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class QualityTaskResult(_DbEnum):
    PASS = "pass"
    FAIL = "fail"
    CONDITIONAL = "conditional"
    NEEDS_REVIEW = "needs_review"


class ReminderStatus(_DbEnum):
    """Where "now" falls relative to a task's time window."""

    UPCOMING = "upcoming"
    CAN_START = "can_start"
    DUE_NOW = "due_now"
    ALMOST_LATE = "almost_late"
    OVERDUE = "overdue"


ACTIVE_REMINDER_STATUSES = frozenset(
    {ReminderStatus.CAN_START, ReminderStatus.DUE_NOW, ReminderStatus.ALMOST_LATE}
)


class CrossDeptDocType(_DbEnum):
    EQUIPMENT_WORK = "equipment_work"
    PART_INTRODUCTION = "part_introduction"
    MAINTENANCE = "maintenance"
    SANITATION = "sanitation"
    OTHER = "other"


class CrossDeptDocStatus(_DbEnum):
    PENDING_QUALITY = "pending_quality"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_ACTION = "needs_action"


class SwabTestType(_DbEnum):
    ATP = "atp"
    MICRO = "micro"
    ALLERGEN = "allergen"
    LISTERIA = "listeria"
    SALMONELLA = "salmonella"
    ENVIRONMENTAL = "environmental"
    OTHER = "other"


class SwabTestStatus(_DbEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    AWAITING_RESULTS = "awaiting_results"
    COMPLETED = "completed"
    FAILED = "failed"


# ---- value objects ----


@dataclass(slots=True)
class ChecklistItem:
    id: str
    item: str
    required: bool = True
    completed: bool = False
    completed_at: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class ParameterConfig:
    id: str
    name: str
    unit: str
    min_value: float | None = None
    max_value: float | None = None
    target_value: float | None = None
    required: bool = True


@dataclass(slots=True)
class RecordedParameter:
    id: str
    name: str
    value: float | str
    unit: str
    in_spec: bool
    recorded_at: str


@dataclass(slots=True)
class NotificationSettings:
    notify_on_available: bool = True
    notify_on_due: bool = True
    notify_before_late_minutes: int = 5
    notify_on_missed: bool = True
    escalate_to_supervisor: bool = False
    escalation_delay_minutes: int = 30


# ---- entities ----


@dataclass(slots=True)
class QualityTaskSchedule:
    id: str
    organization_id: str
    schedule_number: str
    schedule_name: str
    task_type: QualityTaskType
    frequency: QualityTaskFrequency
    priority: QualityTaskPriority
    start_time: str

    facility_id: str | None = None
    department_code: str | None = None
    department_name: str | None = None
    location: str | None = None
    line_id: str | None = None
    line_name: str | None = None
    description: str | None = None
    instructions: str | None = None
    checklist_items: list[ChecklistItem] = field(default_factory=list)
    parameters_to_record: list[ParameterConfig] = field(default_factory=list)
    end_time: str | None = None
    # Recorded for reference; reminder phases use ALMOST_LATE_MINUTES instead.
    grace_period_before_minutes: int = 15
    grace_period_after_minutes: int = 15
    days_of_week: list[int] | None = None
    days_of_month: list[int] | None = None
    months_of_year: list[int] | None = None
    assigned_role: str | None = None
    assigned_to: str | None = None
    assigned_to_id: str | None = None
    requires_sign_off: bool = False
    sign_off_role: str | None = None
    cross_department_required: bool = False
    cross_department_type: str | None = None
    is_active: bool = True
    effective_date: str = ""
    end_date: str | None = None
    notification_settings: NotificationSettings = field(default_factory=NotificationSettings)
    created_at: str = ""
    updated_at: str = ""


@dataclass(slots=True)
class QualityTask:
    id: str
    organization_id: str
    task_number: str
    task_type: QualityTaskType
    status: QualityTaskStatus
    priority: QualityTaskPriority
    title: str
    scheduled_date: str
    scheduled_time: str
    window_start: str
    window_end: str
    due_time: str

    schedule_id: str | None = None
    schedule_name: str | None = None
    result: QualityTaskResult | None = None
    facility_id: str | None = None
    department_code: str | None = None
    department_name: str | None = None
    location: str | None = None
    line_id: str | None = None
    line_name: str | None = None
    description: str | None = None
    instructions: str | None = None
    assigned_to: str | None = None
    assigned_to_id: str | None = None
    started_at: str | None = None
    started_by: str | None = None
    started_by_id: str | None = None
    completed_at: str | None = None
    completed_by: str | None = None
    completed_by_id: str | None = None
    duration_minutes: int | None = None
    checklist_items: list[ChecklistItem] = field(default_factory=list)
    recorded_parameters: list[RecordedParameter] = field(default_factory=list)
    issues_found: str | None = None
    corrective_action: str | None = None
    ncr_required: bool = False
    ncr_id: str | None = None
    photos: list[str] = field(default_factory=list)
    notes: str | None = None
    requires_sign_off: bool = False
    signed_off_by: str | None = None
    signed_off_by_id: str | None = None
    signed_off_at: str | None = None
    sign_off_notes: str | None = None
    cross_department_doc_id: str | None = None
    verified_by: str | None = None
    verified_by_id: str | None = None
    verified_at: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(slots=True)
class CrossDepartmentDoc:
    """Work performed by another department that needs quality sign-off."""

    id: str
    organization_id: str
    doc_number: str
    doc_type: CrossDeptDocType
    status: CrossDeptDocStatus
    work_performed: str
    work_date: str
    performed_by: str

    facility_id: str | None = None
    location: str | None = None
    equipment_id: str | None = None
    equipment_name: str | None = None
    work_start_time: str | None = None
    work_end_time: str | None = None
    performed_by_id: str | None = None
    performed_by_department: str | None = None
    sanitation_required: bool = False
    sanitation_completed: bool = False
    sanitation_completed_by: str | None = None
    sanitation_completed_at: str | None = None
    swab_test_required: bool = False
    swab_test_id: str | None = None
    swab_test_result: str | None = None
    quality_sign_off_required: bool = True
    quality_signed_off_by: str | None = None
    quality_signed_off_by_id: str | None = None
    quality_signed_off_at: str | None = None
    quality_notes: str | None = None
    food_safety_compromised: bool = False
    corrective_actions: str | None = None
    photos: list[str] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    notes: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(slots=True)
class SwabTest:
    id: str
    organization_id: str
    swab_number: str
    test_type: SwabTestType
    status: SwabTestStatus
    location: str
    reason: str
    sampled_by: str
    sampled_at: str

    result: str | None = None  # pass | fail | pending
    facility_id: str | None = None
    zone: str | None = None
    equipment_id: str | None = None
    equipment_name: str | None = None
    surface_type: str | None = None
    related_doc_id: str | None = None
    sampled_by_id: str | None = None
    sample_id: str | None = None
    atp_reading: float | None = None
    atp_threshold: float | None = None
    sent_to_lab: bool = False
    lab_name: str | None = None
    lab_sample_id: str | None = None
    results_received_at: str | None = None
    results_entered_by: str | None = None
    results_entered_by_id: str | None = None
    detailed_results: Any = None
    corrective_action_required: bool = False
    corrective_action: str | None = None
    retest_required: bool = False
    retest_id: str | None = None
    photos: list[str] = field(default_factory=list)
    notes: str | None = None
    reviewed_by: str | None = None
    reviewed_by_id: str | None = None
    reviewed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""


# ---- (de)serialization helpers shared by the stores ----

Record = QualityTaskSchedule | QualityTask | CrossDepartmentDoc | SwabTest
R = TypeVar("R", QualityTaskSchedule, QualityTask, CrossDepartmentDoc, SwabTest)

_ENUM_FIELDS: dict[str, type[_DbEnum]] = {
    "task_type": QualityTaskType,
    "frequency": QualityTaskFrequency,
    "priority": QualityTaskPriority,
    "result": QualityTaskResult,
    "doc_type": CrossDeptDocType,
    "test_type": SwabTestType,
}

_STATUS_ENUMS: dict[type, type[_DbEnum]] = {
    QualityTask: QualityTaskStatus,
    CrossDepartmentDoc: CrossDeptDocStatus,
    SwabTest: SwabTestStatus,
}


def record_to_dict(record: Record) -> dict[str, Any]:
    """Plain dict (enums as their string values, nested dataclasses as dicts)."""
    out = asdict(record)
    for key, value in out.items():
        if isinstance(value, StrEnum):
            out[key] = value.value
    return out


def _load_items(cls: type, raw: Any) -> list[Any]:
    if not raw:
        return []
    out = []
    for item in raw:
        if isinstance(item, cls):
            out.append(item)
        elif isinstance(item, dict):
            known = {f.name for f in fields(cls)}
            out.append(cls(**{k: v for k, v in item.items() if k in known}))
    return out


def record_from_dict(cls: type[R], data: dict[str, Any], *, strict: bool = False) -> R:
    """
    Build a record from a dict produced by record_to_dict / a DB row.

    Unknown keys are ignored so old rows and partial payloads load cleanly.
    Enum values are read tolerantly (unknown -> default) unless strict=True,
    which is used for caller input and raises ValueError on an unknown value.
    """
    known = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in known}

    for key, enum_cls in _ENUM_FIELDS.items():
        if key in kwargs and kwargs[key] is not None and not isinstance(kwargs[key], enum_cls):
            # Swab results are plain strings; only QualityTask.result is an enum.
            if key == "result" and cls is not QualityTask:
                continue
            kwargs[key] = enum_cls(kwargs[key]) if strict else enum_cls.from_db(kwargs[key])

    status_enum = _STATUS_ENUMS.get(cls)
    if status_enum is not None and "status" in kwargs:
        if strict:
            kwargs["status"] = status_enum(kwargs["status"])
        else:
            kwargs["status"] = status_enum.from_db(kwargs["status"], default=next(iter(status_enum)))

    if "checklist_items" in kwargs:
        kwargs["checklist_items"] = _load_items(ChecklistItem, kwargs["checklist_items"])
    if "parameters_to_record" in kwargs:
        kwargs["parameters_to_record"] = _load_items(ParameterConfig, kwargs["parameters_to_record"])
    if "recorded_parameters" in kwargs:
        kwargs["recorded_parameters"] = _load_items(RecordedParameter, kwargs["recorded_parameters"])

    ns = kwargs.get("notification_settings")
    if isinstance(ns, dict):
        ns_known = {f.name for f in fields(NotificationSettings)}
        kwargs["notification_settings"] = NotificationSettings(
            **{k: v for k, v in ns.items() if k in ns_known}
        )
    elif "notification_settings" in kwargs and ns is None:
        kwargs["notification_settings"] = NotificationSettings()

    return cls(**kwargs)
