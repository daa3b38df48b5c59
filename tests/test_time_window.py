# tests/test_time_window.py

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from linecheck.tasks.errors import InconsistentWindow, InvalidTimeFormat
from linecheck.tasks.task_models import (
    NotificationSettings,
    QualityTaskFrequency,
    QualityTaskPriority,
    QualityTaskSchedule,
    QualityTaskType,
    ReminderStatus,
)
from linecheck.tasks.time_window import (
    TaskTimeWindow,
    classify,
    format_minutes,
    is_scheduled_today,
    parse_hhmm,
)

from .fakes import make_task


def at(hhmm: str, day: int = 18) -> datetime:
    h, m = (int(x) for x in hhmm.split(":"))
    return datetime(2026, 10, day, h, m)


@pytest.mark.parametrize(
    ("clock", "expected"),
    [
        ("08:59", ReminderStatus.UPCOMING),
        ("09:00", ReminderStatus.CAN_START),
        ("09:59", ReminderStatus.CAN_START),
        ("10:00", ReminderStatus.DUE_NOW),
        ("10:09", ReminderStatus.DUE_NOW),
        ("10:10", ReminderStatus.ALMOST_LATE),
        ("10:15", ReminderStatus.ALMOST_LATE),
        ("10:16", ReminderStatus.OVERDUE),
        ("23:59", ReminderStatus.OVERDUE),
    ],
)
def test_phase_boundaries(clock: str, expected: ReminderStatus) -> None:
    assert classify(make_task(), at(clock)) == expected


def test_midnight_is_upcoming() -> None:
    assert classify(make_task(), at("00:00")) == ReminderStatus.UPCOMING


@pytest.mark.parametrize("day", [17, 19])
def test_other_days_are_always_upcoming(day: int) -> None:
    # 23:00 would be overdue if the date check were skipped.
    assert classify(make_task(), at("23:00", day=day)) == ReminderStatus.UPCOMING


def test_other_days_do_not_parse_time_fields() -> None:
    task = make_task(scheduled_date="2026-10-17", window_start="junk", due_time="", window_end="25:99")
    assert classify(task, at("12:00")) == ReminderStatus.UPCOMING


def test_classify_is_idempotent() -> None:
    task = make_task()
    now = at("10:12")
    assert classify(task, now) == classify(task, now) == ReminderStatus.ALMOST_LATE


def test_almost_late_threshold_ignores_schedule_grace_periods() -> None:
    schedule = QualityTaskSchedule(
        id="S1",
        organization_id="org1",
        schedule_number="QS-2610-0001",
        schedule_name="Line 2",
        task_type=QualityTaskType.LINE_CHECK,
        frequency=QualityTaskFrequency.HOURLY,
        priority=QualityTaskPriority.MEDIUM,
        start_time="09:00",
        grace_period_before_minutes=60,
        grace_period_after_minutes=45,
        notification_settings=NotificationSettings(notify_before_late_minutes=30),
    )
    task = make_task(schedule_id=schedule.id)

    window = TaskTimeWindow.from_task(task)
    assert window.almost_late_threshold == parse_hhmm("10:10")
    assert classify(task, at("10:09")) == ReminderStatus.DUE_NOW


def test_almost_late_margin_is_configurable() -> None:
    task = make_task()
    assert classify(task, at("10:05"), almost_late_minutes=10) == ReminderStatus.ALMOST_LATE
    assert classify(task, at("10:05")) == ReminderStatus.DUE_NOW


@pytest.mark.parametrize(
    ("value", "minutes"),
    [("00:00", 0), ("9:05", 545), ("09:05", 545), ("09:05:59", 545), ("23:59", 1439), (" 10:15 ", 615)],
)
def test_parse_hhmm_accepts(value: str, minutes: int) -> None:
    assert parse_hhmm(value) == minutes


@pytest.mark.parametrize("value", ["", "9", "24:00", "10:60", "ab:cd", "10:5", "10-15", None, 1015])
def test_parse_hhmm_rejects(value: object) -> None:
    with pytest.raises(InvalidTimeFormat):
        parse_hhmm(value, "window_end")


def test_malformed_time_on_todays_task_raises() -> None:
    task = make_task(window_end="10:75")
    with pytest.raises(InvalidTimeFormat) as exc_info:
        classify(task, at("10:00"))

    assert exc_info.value.field_name == "window_end"
    assert isinstance(exc_info.value, ValueError)


def test_format_minutes_round_trips_with_parse() -> None:
    assert format_minutes(parse_hhmm("07:30")) == "07:30"


def test_inconsistent_window_strict_raises() -> None:
    task = make_task(window_start="10:00", due_time="09:00", window_end="08:00")
    with pytest.raises(InconsistentWindow):
        classify(task, at("09:30"), strict=True)


def test_inconsistent_window_lenient_logs_and_classifies(caplog: pytest.LogCaptureFixture) -> None:
    task = make_task(window_start="10:00", due_time="09:00", window_end="08:00")
    with caplog.at_level(logging.WARNING, logger="linecheck.tasks.time_window"):
        status = classify(task, at("09:30"))

    assert status == ReminderStatus.UPCOMING
    assert "Inconsistent time window" in caplog.text


def test_consistent_window_has_no_problems() -> None:
    window = TaskTimeWindow.from_task(make_task())
    assert window.is_consistent()
    window.validate()


def test_is_scheduled_today() -> None:
    task = make_task()
    assert is_scheduled_today(task, at("01:00"))
    assert not is_scheduled_today(task, at("01:00", day=19))
