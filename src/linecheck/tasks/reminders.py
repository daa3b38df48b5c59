# src/linecheck/tasks/reminders.py

from __future__ import annotations

from datetime import datetime
from typing import Any

from .task_models import ReminderStatus
from .time_window import ALMOST_LATE_MINUTES, classify

_TEMPLATES: dict[ReminderStatus, str] = {
    ReminderStatus.UPCOMING: "Upcoming at {scheduled_time}",
    ReminderStatus.CAN_START: "{title} can be started now",
    ReminderStatus.DUE_NOW: "{title} is due",
    ReminderStatus.ALMOST_LATE: "You have {minutes} minutes to complete {title}",
    ReminderStatus.OVERDUE: "{title} is overdue!",
}


def reminder_message(
    task: Any,
    status: ReminderStatus | None = None,
    now: datetime | None = None,
    *,
    almost_late_minutes: int = ALMOST_LATE_MINUTES,
) -> str:
    """
    Human-readable reminder for a task.

    If `status` is not given it is computed with classify(task, now).
    """
    if status is None:
        status = classify(task, now, almost_late_minutes=almost_late_minutes)

    template = _TEMPLATES[ReminderStatus(status)]
    return template.format(
        title=task.title,
        scheduled_time=task.scheduled_time,
        minutes=int(almost_late_minutes),
    )


def escalation_message(task: Any, overdue_minutes: int) -> str:
    who = getattr(task, "assigned_to", None) or "unassigned"
    return (
        f"ESCALATION: {task.title} ({task.task_number}) is {int(overdue_minutes)} min past its "
        f"window end {task.window_end} (assigned: {who})"
    )
