# src/linecheck/tasks/task_scheduler.py

from __future__ import annotations

"""
Reminder notifier.

A small polling loop that:
- fetches today's open task instances,
- classifies each one into a reminder phase,
- sends a reminder via an injected messenger port when the phase changes
  (subject to the schedule's notification settings),
- escalates tasks that stay overdue past the schedule's escalation delay.

Phase memory is in-process only. Transport routing (room selection, formatting)
belongs to the connector, not the notifier.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from ..core.ports import OutboundMessenger, TaskRepository
from .errors import InvalidTimeFormat
from .reminders import escalation_message, reminder_message
from .task_models import (
    OPEN_STATUSES,
    NotificationSettings,
    QualityTask,
    QualityTaskSchedule,
    ReminderStatus,
)
from .time_window import ALMOST_LATE_MINUTES, classify, minute_of_day, parse_hhmm

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_SETTINGS = NotificationSettings()


@dataclass(slots=True, frozen=True)
class ReminderDispatch:
    """
    What the notifier wants to send.

    The notifier decides:
    - which phase the task is in and whether it changed
    - whether the schedule wants a notification for that phase
    - the suggested text

    The connector decides where/how to actually deliver it.
    """

    task: QualityTask
    status: ReminderStatus
    text: str
    escalation: bool = False


def wants_notification(status: ReminderStatus, settings: NotificationSettings) -> bool:
    if status == ReminderStatus.CAN_START:
        return settings.notify_on_available
    if status == ReminderStatus.DUE_NOW:
        return settings.notify_on_due
    if status == ReminderStatus.ALMOST_LATE:
        return settings.notify_before_late_minutes > 0
    if status == ReminderStatus.OVERDUE:
        return settings.notify_on_missed
    return False


@dataclass(slots=True)
class ReminderTracker:
    """Remembers the last phase handled per task and which tasks were escalated."""

    last_status: dict[str, ReminderStatus] = field(default_factory=dict)
    escalated: set[str] = field(default_factory=set)

    def plan(
        self,
        tasks: Iterable[QualityTask],
        schedules: dict[str, QualityTaskSchedule],
        now: datetime,
        *,
        almost_late_minutes: int = ALMOST_LATE_MINUTES,
    ) -> list[ReminderDispatch]:
        """
        Decide what to send at `now`. Does not mutate phase memory for dispatches;
        call mark_sent() once a dispatch was delivered.

        Phases the schedule does not want notifications for are recorded as handled
        right away so they are not re-evaluated every tick.
        """
        out: list[ReminderDispatch] = []

        for task in tasks:
            if task.status not in OPEN_STATUSES:
                continue

            try:
                status = classify(task, now, almost_late_minutes=almost_late_minutes)
            except InvalidTimeFormat:
                logger.warning("Reminder skipped for task %s: malformed time window", task.id)
                continue

            schedule = schedules.get(task.schedule_id or "")
            settings = schedule.notification_settings if schedule else DEFAULT_NOTIFICATION_SETTINGS

            if self.last_status.get(task.id) != status:
                if status == ReminderStatus.UPCOMING or not wants_notification(status, settings):
                    self.last_status[task.id] = status
                else:
                    text = reminder_message(task, status, almost_late_minutes=almost_late_minutes)
                    out.append(ReminderDispatch(task=task, status=status, text=text))

            if (
                status == ReminderStatus.OVERDUE
                and settings.escalate_to_supervisor
                and task.id not in self.escalated
            ):
                late_by = minute_of_day(now) - parse_hhmm(task.window_end, "window_end")
                if late_by >= settings.escalation_delay_minutes:
                    out.append(
                        ReminderDispatch(
                            task=task,
                            status=status,
                            text=escalation_message(task, late_by),
                            escalation=True,
                        )
                    )

        return out

    def mark_sent(self, dispatch: ReminderDispatch) -> None:
        if dispatch.escalation:
            self.escalated.add(dispatch.task.id)
        else:
            self.last_status[dispatch.task.id] = dispatch.status

    def forget(self, keep_ids: Iterable[str]) -> None:
        """Drop memory for tasks no longer tracked (e.g. after the day rolls over)."""
        keep = set(keep_ids)
        for task_id in list(self.last_status):
            if task_id not in keep:
                del self.last_status[task_id]
        self.escalated &= keep


async def run_reminder_notifier(
        repo: TaskRepository,
        messenger: OutboundMessenger,
        *,
        organization_id: str | None = None,
        room_id: str | None = None,
        interval_seconds: float = 30.0,
        almost_late_minutes: int = ALMOST_LATE_MINUTES,
        clock: Callable[[], datetime] | None = None,
        tracker: ReminderTracker | None = None,
) -> None:
    """
    Simple polling notifier.

    Every interval_seconds:
    - fetch today's tasks and the schedules they belong to
    - plan dispatches (phase changes + escalations)
    - send via messenger.send_text(...) to room_id / the assignee
      On failure: log, leave the phase unhandled so the next tick retries.

    To stop the notifier, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))
    clock = clock or datetime.now
    tracker = tracker if tracker is not None else ReminderTracker()

    while True:
        now = clock()
        today = now.date().isoformat()

        try:
            tasks = repo.list_tasks(organization_id=organization_id, scheduled_date=today)
            schedules = {s.id: s for s in repo.list_schedules(organization_id=organization_id)}
        except Exception:
            logger.exception("Reminder notifier: loading tasks failed")
            tasks, schedules = [], {}
        else:
            tracker.forget(t.id for t in tasks)

        for dispatch in tracker.plan(tasks, schedules, now, almost_late_minutes=almost_late_minutes):
            try:
                await messenger.send_text(
                    text=dispatch.text,
                    room_id=room_id,
                    to_user_id=dispatch.task.assigned_to_id,
                )
            except Exception:
                logger.exception(
                    "Reminder send failed task_id=%s status=%s", dispatch.task.id, dispatch.status.value
                )
                continue

            tracker.mark_sent(dispatch)
            logger.info(
                "Reminder sent task_id=%s status=%s escalation=%s",
                dispatch.task.id,
                dispatch.status.value,
                dispatch.escalation,
            )

        await asyncio.sleep(sleep_s)
