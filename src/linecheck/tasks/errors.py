# src/linecheck/tasks/errors.py

from __future__ import annotations


class LinecheckError(Exception):
    """Base class for errors raised by the task subsystem."""


class InvalidTimeFormat(LinecheckError, ValueError):
    """A clock time is not a valid 24-hour HH:MM string."""

    def __init__(self, value: object, field_name: str | None = None) -> None:
        self.value = value
        self.field_name = field_name
        where = f" for {field_name}" if field_name else ""
        super().__init__(f"Invalid time{where}: {value!r} (expected HH:MM, 24-hour)")


class InconsistentWindow(LinecheckError, ValueError):
    """Time-window markers are out of order (e.g. window_end before window_start)."""


class TaskNotFound(LinecheckError, KeyError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class OrganizationRequired(LinecheckError):
    """Raised when a record is created without an organization selected."""

    def __init__(self) -> None:
        super().__init__("No organization selected")
