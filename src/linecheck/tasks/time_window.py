# src/linecheck/tasks/time_window.py

from __future__ import annotations

"""
Reminder phase classification.

A scheduled task instance carries three clock times (window_start, due_time,
window_end) for its scheduled_date. Given "now", the task falls into exactly
one phase:

    upcoming     now < window_start            (or scheduled_date is not today)
    can_start    window_start <= now < due_time
    due_now      due_time <= now < window_end - 5 min
    almost_late  window_end - 5 min <= now <= window_end
    overdue      now > window_end

Notes:
- A task whose scheduled_date is not today is always "upcoming", including
  past dates. Stale instances from earlier days are never reported overdue.
- The almost-late margin is a fixed number of minutes. Schedule grace periods
  (grace_period_before/after_minutes) are not consulted.
- Comparisons are at minute resolution.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .errors import InconsistentWindow, InvalidTimeFormat
from .task_models import ReminderStatus

logger = logging.getLogger(__name__)

ALMOST_LATE_MINUTES = 5

# Seconds are tolerated (Postgres TIME columns come back as HH:MM:SS) but ignored.
_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")


def parse_hhmm(value: Any, field_name: str | None = None) -> int:
    """Parse a 24-hour "HH:MM" string into minutes since midnight."""
    if not isinstance(value, str):
        raise InvalidTimeFormat(value, field_name)
    m = _HHMM_RE.match(value.strip())
    if not m:
        raise InvalidTimeFormat(value, field_name)
    return int(m.group(1)) * 60 + int(m.group(2))


def minute_of_day(ts: datetime) -> int:
    return ts.hour * 60 + ts.minute


def format_minutes(minutes: int) -> str:
    """Inverse of parse_hhmm for values inside a single day."""
    h, m = divmod(int(minutes), 60)
    return f"{h:02d}:{m:02d}"


@dataclass(slots=True, frozen=True)
class TaskTimeWindow:
    """Time window of a single task instance, in minutes since midnight."""

    scheduled_date: str
    window_start: int
    due_time: int
    window_end: int
    almost_late_minutes: int = ALMOST_LATE_MINUTES

    @property
    def almost_late_threshold(self) -> int:
        return self.window_end - self.almost_late_minutes

    @classmethod
    def from_task(cls, task: Any, *, almost_late_minutes: int = ALMOST_LATE_MINUTES) -> TaskTimeWindow:
        """
        Build the window from any object exposing scheduled_date, window_start,
        due_time and window_end (a QualityTask or a plain namespace).

        Raises InvalidTimeFormat if one of the clock times does not parse.
        """
        return cls(
            scheduled_date=str(task.scheduled_date),
            window_start=parse_hhmm(task.window_start, "window_start"),
            due_time=parse_hhmm(task.due_time, "due_time"),
            window_end=parse_hhmm(task.window_end, "window_end"),
            almost_late_minutes=int(almost_late_minutes),
        )

    def problems(self) -> list[str]:
        out: list[str] = []
        if self.window_end < self.window_start:
            out.append(
                f"window_end {format_minutes(self.window_end)} is before "
                f"window_start {format_minutes(self.window_start)}"
            )
        if self.due_time < self.window_start:
            out.append(
                f"due_time {format_minutes(self.due_time)} is before "
                f"window_start {format_minutes(self.window_start)}"
            )
        if self.due_time > self.almost_late_threshold:
            out.append(
                f"due_time {format_minutes(self.due_time)} is after the almost-late "
                f"threshold {format_minutes(self.almost_late_threshold)}"
            )
        return out

    def is_consistent(self) -> bool:
        return not self.problems()

    def validate(self) -> None:
        problems = self.problems()
        if problems:
            raise InconsistentWindow("; ".join(problems))

    def phase_at(self, minute: int) -> ReminderStatus:
        """Phase for a minute-of-day on scheduled_date (no date check)."""
        if minute < self.window_start:
            return ReminderStatus.UPCOMING
        if minute < self.due_time:
            return ReminderStatus.CAN_START
        if minute < self.almost_late_threshold:
            return ReminderStatus.DUE_NOW
        if minute <= self.window_end:
            return ReminderStatus.ALMOST_LATE
        return ReminderStatus.OVERDUE


def is_scheduled_today(task: Any, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    return str(task.scheduled_date) == now.date().isoformat()


def classify(
    task: Any,
    now: datetime | None = None,
    *,
    almost_late_minutes: int = ALMOST_LATE_MINUTES,
    strict: bool = False,
) -> ReminderStatus:
    """
    Classify `task` into a ReminderStatus at `now` (default: local wall clock).

    The scheduled_date check runs first, so time fields of tasks not scheduled
    today are never parsed.

    Raises:
        InvalidTimeFormat: a clock time on today's task is not HH:MM.
        InconsistentWindow: only with strict=True, when markers are out of order.
            Otherwise an inconsistent window is logged and classified as-is.
    """
    now = now or datetime.now()

    if not is_scheduled_today(task, now):
        return ReminderStatus.UPCOMING

    window = TaskTimeWindow.from_task(task, almost_late_minutes=almost_late_minutes)

    if strict:
        window.validate()
    elif not window.is_consistent():
        logger.warning(
            "Inconsistent time window for task %s: %s",
            getattr(task, "id", "?"),
            "; ".join(window.problems()),
        )

    return window.phase_at(minute_of_day(now))
