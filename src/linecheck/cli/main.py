# src/linecheck/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional),
- Matrix connector in a background thread (optional); it owns the reminder notifier,
- otherwise the reminder notifier prints into the console from a background thread.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.background import BackgroundRunner, run_until_stopped, start_in_background
from ..connectors.console_connector import ConsoleMessenger, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import run_reminder_notifier

logger = logging.getLogger(__name__)


def _start_console_notifier(state: AppState) -> BackgroundRunner | None:
    settings = state.settings

    def main(stop_event):
        return run_until_stopped(
            stop_event,
            run_reminder_notifier(
                state.task_store,
                ConsoleMessenger(),
                organization_id=state.service.organization_id,
                interval_seconds=float(settings.notifier_interval_seconds),
                almost_late_minutes=state.service.almost_late_minutes,
            ),
        )

    return start_in_background("reminder-notifier", main)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        close = getattr(state.task_store, "close", None)
        if close is not None:
            close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    runners: list[BackgroundRunner] = []
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        runner = start_matrix_in_background(state)
        if runner is not None:
            runners.append(runner)
    elif settings.notifier_enabled:
        runner = _start_console_notifier(state)
        if runner is not None:
            runners.append(runner)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError):
        # Not in the main thread / platform without SIGTERM.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running background services only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        for runner in runners:
            runner.stop()
            runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
