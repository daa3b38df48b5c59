# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from linecheck.tasks.mock_store import MockTaskStore
from linecheck.tasks.task_models import (
    NotificationSettings,
    QualityTaskFrequency,
    QualityTaskPriority,
    QualityTaskSchedule,
    QualityTaskStatus,
    QualityTaskType,
    ReminderStatus,
)
from linecheck.tasks.task_scheduler import ReminderTracker, run_reminder_notifier, wants_notification

from .fakes import NOW, FailingMessenger, FakeMessenger, make_task


def _schedule(**settings) -> QualityTaskSchedule:
    return QualityTaskSchedule(
        id="S1",
        organization_id="org1",
        schedule_number="QS-2610-0001",
        schedule_name="Line 2 Check",
        task_type=QualityTaskType.LINE_CHECK,
        frequency=QualityTaskFrequency.HOURLY,
        priority=QualityTaskPriority.MEDIUM,
        start_time="09:00",
        notification_settings=NotificationSettings(**settings),
    )


def at(hhmm: str) -> datetime:
    h, m = (int(x) for x in hhmm.split(":"))
    return datetime(2026, 10, 18, h, m)


def _plan_and_send(tracker: ReminderTracker, tasks, schedules, now: datetime) -> list[str]:
    dispatches = tracker.plan(tasks, schedules, now)
    for d in dispatches:
        tracker.mark_sent(d)
    return [d.text for d in dispatches]


def test_wants_notification_follows_schedule_settings() -> None:
    quiet = NotificationSettings(
        notify_on_available=False,
        notify_on_due=False,
        notify_before_late_minutes=0,
        notify_on_missed=False,
    )
    loud = NotificationSettings()

    for status in ReminderStatus:
        assert wants_notification(status, quiet) is False
    assert wants_notification(ReminderStatus.UPCOMING, loud) is False
    assert wants_notification(ReminderStatus.CAN_START, loud) is True
    assert wants_notification(ReminderStatus.OVERDUE, loud) is True


def test_tracker_notifies_once_per_phase_change() -> None:
    tracker = ReminderTracker()
    task = make_task(schedule_id="S1")
    schedules = {"S1": _schedule()}

    assert _plan_and_send(tracker, [task], schedules, at("08:30")) == []
    assert _plan_and_send(tracker, [task], schedules, at("09:10")) == ["Line 2 Check can be started now"]
    assert _plan_and_send(tracker, [task], schedules, at("09:20")) == []
    assert _plan_and_send(tracker, [task], schedules, at("10:00")) == ["Line 2 Check is due"]
    assert _plan_and_send(tracker, [task], schedules, at("10:11")) == [
        "You have 5 minutes to complete Line 2 Check"
    ]
    assert _plan_and_send(tracker, [task], schedules, at("10:16")) == ["Line 2 Check is overdue!"]
    assert _plan_and_send(tracker, [task], schedules, at("10:30")) == []


def test_tracker_first_sighting_mid_window_notifies() -> None:
    tracker = ReminderTracker()
    texts = _plan_and_send(tracker, [make_task()], {}, at("10:12"))
    assert texts == ["You have 5 minutes to complete Line 2 Check"]


def test_tracker_skips_unwanted_phases_but_remembers_them() -> None:
    tracker = ReminderTracker()
    task = make_task(schedule_id="S1")
    schedules = {"S1": _schedule(notify_on_due=False)}

    assert tracker.plan([task], schedules, at("10:00")) == []
    assert tracker.last_status["T1"] == ReminderStatus.DUE_NOW


def test_tracker_ignores_closed_tasks_and_bad_windows(caplog: pytest.LogCaptureFixture) -> None:
    tracker = ReminderTracker()
    tasks = [
        make_task(id="done", status=QualityTaskStatus.COMPLETED),
        make_task(id="skipped", status=QualityTaskStatus.SKIPPED),
        make_task(id="bad", due_time="ten"),
    ]

    assert tracker.plan(tasks, {}, at("10:20")) == []
    assert "malformed time window" in caplog.text


def test_unsent_dispatch_is_planned_again() -> None:
    tracker = ReminderTracker()
    task = make_task()

    first = tracker.plan([task], {}, at("10:00"))
    second = tracker.plan([task], {}, at("10:01"))

    assert [d.status for d in first] == [ReminderStatus.DUE_NOW]
    assert [d.status for d in second] == [ReminderStatus.DUE_NOW]


def test_escalation_fires_once_after_delay() -> None:
    tracker = ReminderTracker()
    task = make_task(schedule_id="S1", assigned_to="Dana Reyes")
    schedules = {"S1": _schedule(escalate_to_supervisor=True, escalation_delay_minutes=30)}

    assert _plan_and_send(tracker, [task], schedules, at("10:20")) == ["Line 2 Check is overdue!"]
    assert _plan_and_send(tracker, [task], schedules, at("10:44")) == []

    dispatches = tracker.plan([task], schedules, at("10:45"))
    assert len(dispatches) == 1
    assert dispatches[0].escalation is True
    assert dispatches[0].text.startswith("ESCALATION: Line 2 Check")
    tracker.mark_sent(dispatches[0])

    assert tracker.plan([task], schedules, at("11:30")) == []
    assert tracker.escalated == {"T1"}


def test_no_escalation_unless_enabled() -> None:
    tracker = ReminderTracker()
    schedules = {"S1": _schedule(escalate_to_supervisor=False)}
    texts = _plan_and_send(tracker, [make_task(schedule_id="S1")], schedules, at("12:00"))
    assert texts == ["Line 2 Check is overdue!"]


def test_forget_drops_untracked_tasks() -> None:
    tracker = ReminderTracker()
    tracker.last_status.update({"a": ReminderStatus.DUE_NOW, "b": ReminderStatus.OVERDUE})
    tracker.escalated.update({"a", "b"})

    tracker.forget(["a"])

    assert tracker.last_status == {"a": ReminderStatus.DUE_NOW}
    assert tracker.escalated == {"a"}


async def _run_briefly(coro) -> None:
    runner = asyncio.create_task(coro)
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner


@pytest.mark.asyncio
async def test_notifier_sends_due_reminder_once(mock_store: MockTaskStore) -> None:
    messenger = FakeMessenger()
    tracker = ReminderTracker()

    await _run_briefly(
        run_reminder_notifier(
            mock_store,
            messenger,
            organization_id="org1",
            room_id="!qa:example.org",
            interval_seconds=0.01,
            clock=lambda: NOW,
            tracker=tracker,
        )
    )

    assert [m.text for m in messenger.sent] == ["10:00 AM Temperature Check - Line 1 is due"]
    assert messenger.sent[0].room_id == "!qa:example.org"
    assert tracker.last_status["QTASK002"] == ReminderStatus.DUE_NOW
    assert tracker.last_status["QTASK003"] == ReminderStatus.UPCOMING


@pytest.mark.asyncio
async def test_notifier_keeps_phase_unhandled_when_send_fails(mock_store: MockTaskStore) -> None:
    messenger = FailingMessenger()
    tracker = ReminderTracker()

    await _run_briefly(
        run_reminder_notifier(
            mock_store,
            messenger,
            organization_id="org1",
            interval_seconds=0.01,
            clock=lambda: NOW,
            tracker=tracker,
        )
    )

    assert messenger.attempts >= 1
    assert "QTASK002" not in tracker.last_status


@pytest.mark.asyncio
async def test_notifier_ignores_other_days(mock_store: MockTaskStore) -> None:
    messenger = FakeMessenger()

    await _run_briefly(
        run_reminder_notifier(
            mock_store,
            messenger,
            organization_id="org1",
            interval_seconds=0.01,
            clock=lambda: datetime(2026, 10, 19, 10, 5),
        )
    )

    assert messenger.sent == []
