# src/linecheck/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..tasks.errors import LinecheckError, TaskNotFound
from ..tasks.task_models import QualityTask, QualityTaskResult

CommandEmitter = Callable[[str], None]
CommandHandler4 = Callable[[AppState, list[str], str | None, str | None], str]
CommandHandler5 = Callable[
    [AppState, list[str], str | None, str | None, CommandEmitter | None], str
]
CommandHandler = CommandHandler4 | CommandHandler5

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /today, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 5

        try:
            if nparams >= 5:
                h5 = cast(CommandHandler5, handler)
                return h5(state, args, user_id, room_id, emit)

            h4 = cast(CommandHandler4, handler)
            return h4(state, args, user_id, room_id)
        except TaskNotFound as e:
            return str(e)
        except LinecheckError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _task_line(state: AppState, task: QualityTask) -> str:
    try:
        phase = state.service.reminder_status(task).value
    except LinecheckError:
        phase = "invalid-window"
    return (
        f"{task.id}  {task.scheduled_time}  [{task.status.value}/{phase}]  {task.title}"
    )


def cmd_help(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    return registry.build_help()


def cmd_status(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    s = state.settings
    notifier = "ON" if getattr(s, "notifier_enabled", False) else "OFF"
    return (
        "Status:\n"
        f"  Storage: {getattr(s, 'storage_backend', '?')}\n"
        f"  Organization: {state.service.organization_id or '(none)'}\n"
        f"  Reminder notifier: {notifier}\n"
        f"  Almost-late margin: {state.service.almost_late_minutes} min"
    )


def cmd_today(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    tasks = sorted(state.service.todays_tasks(), key=lambda t: (t.scheduled_time, t.id))
    if not tasks:
        return "No tasks scheduled today."
    return "\n".join(["Today's tasks:"] + [f"  {_task_line(state, t)}" for t in tasks])


def cmd_available(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    tasks = state.service.available_tasks()
    if not tasks:
        return "No tasks can be worked right now."
    return "\n".join(
        ["Available now:"] + [f"  {t.id}  {state.service.reminder_message(t)}" for t in tasks]
    )


def cmd_overdue(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    tasks = state.service.overdue_tasks()
    if not tasks:
        return "No overdue tasks."
    return "\n".join(["Overdue:"] + [f"  {t.id}  {t.title} (window end {t.window_end})" for t in tasks])


def cmd_task(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """/task <id> -> details + current reminder"""
    if not args:
        return "Usage: /task <task_id>"
    task = state.service.get_task(args[0])
    lines = [
        f"{task.task_number}  {task.title}",
        f"  Type: {task.task_type.value}  Priority: {task.priority.value}  Status: {task.status.value}",
        f"  Scheduled: {task.scheduled_date} {task.scheduled_time} "
        f"(window {task.window_start}-{task.window_end}, due {task.due_time})",
        f"  Reminder: {state.service.reminder_message(task)}",
    ]
    if task.assigned_to:
        lines.append(f"  Assigned to: {task.assigned_to}")
    if task.result is not None:
        lines.append(f"  Result: {task.result.value}")
    if task.requires_sign_off:
        lines.append(f"  Sign-off: {task.signed_off_by or 'pending'}")
    return "\n".join(lines)


def cmd_stats(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    st = state.service.dashboard_stats()
    return (
        "Dashboard:\n"
        f"  Open tasks today: {st.open_tasks}\n"
        f"  Completed today: {st.completed_today}\n"
        f"  Pending review: {st.pending_review}\n"
        f"  First-pass yield: {st.first_pass_yield}%\n"
        f"  On-time compliance: {st.compliance_rate}%"
    )


def _who(args: list[str], user_id: str | None) -> str | None:
    if args:
        return " ".join(args)
    return user_id


def cmd_start(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """/start <id> [name]"""
    if not args:
        return "Usage: /start <task_id> [name]"
    who = _who(args[1:], user_id)
    if not who:
        return "Usage: /start <task_id> <name>"
    task = state.service.start_task(args[0], started_by=who, started_by_id=user_id)
    return f"Started {task.task_number} ({task.title}) by {who}."


def cmd_complete(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
    emit: CommandEmitter | None = None,
) -> str:
    """
    /complete <id> <pass|fail|conditional|needs_review> [name]

    Follow-up notes (pending sign-off, failed result) go through `emit` when the
    connector provides one, otherwise they are appended to the reply.
    """
    usage = "Usage: /complete <task_id> <pass|fail|conditional|needs_review> [name]"
    if len(args) < 2:
        return usage
    try:
        result = QualityTaskResult(args[1].lower())
    except ValueError:
        return usage
    who = _who(args[2:], user_id)
    if not who:
        return usage
    task = state.service.complete_task(args[0], who, result, completed_by_id=user_id)
    reply = f"Completed {task.task_number} ({task.title}): {result.value}, {task.duration_minutes} min."

    notes: list[str] = []
    if task.requires_sign_off and not task.signed_off_at:
        notes.append(f"{task.task_number} needs sign-off: /signoff {task.id} <name>")
    if result == QualityTaskResult.FAIL:
        notes.append(f"{task.task_number} failed: record the corrective action (NCR if required).")

    if emit is not None:
        for note in notes:
            emit(note)
        return reply
    return "\n".join([reply, *notes])


def cmd_signoff(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """/signoff <id> [name]"""
    if not args:
        return "Usage: /signoff <task_id> [name]"
    who = _who(args[1:], user_id)
    if not who:
        return "Usage: /signoff <task_id> <name>"
    task = state.service.sign_off_task(args[0], who, signed_off_by_id=user_id)
    return f"Signed off {task.task_number} ({task.title}) by {who}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings (storage/organization/notifier).")
registry.register("today", cmd_today, help_text="List today's tasks with their reminder phase.")
registry.register("available", cmd_available, help_text="Tasks that can be worked right now.")
registry.register("overdue", cmd_overdue, help_text="Open tasks past their window end.")
registry.register("task", cmd_task, help_text="Task details: /task <id>.")
registry.register("stats", cmd_stats, help_text="Dashboard statistics.")
registry.register("start", cmd_start, help_text="Start a task: /start <id> [name].")
registry.register(
    "complete",
    cmd_complete,
    help_text="Complete a task: /complete <id> <pass|fail|conditional|needs_review> [name].",
)
registry.register("signoff", cmd_signoff, help_text="Sign off a completed task: /signoff <id> [name].")
