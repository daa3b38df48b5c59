# src/linecheck/logging_setup.py

"""
Logging for the linecheck process.

Two handlers on the root logger:
- stderr console, shared with the operator's slash-command prompt, so it is filtered
- linecheck.log under the data dir, which keeps everything (DEBUG and up)

Logger map (all module-level `logging.getLogger(__name__)`):
- linecheck.tasks.*            store CRUD, service mutations, classifier warnings
- linecheck.tasks.task_scheduler  one INFO line per reminder sent, every tick in background
- linecheck.connectors.matrix_*   Matrix login/sync, runs in its own thread
- linecheck.cli.*              startup/shutdown
- nio, aiohttp                 Matrix transport libraries
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Loggers that emit while the operator is typing; console shows only their warnings.
_BACKGROUND_LOGGERS = (
    "linecheck.connectors.matrix_",
    "linecheck.connectors.background",
    "linecheck.tasks.task_scheduler",
)

# Transport libraries are very chatty at DEBUG (every sync response).
_THIRD_PARTY_LEVELS = {
    "nio": logging.INFO,
    "aiohttp": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter:
    - linecheck command/store/service logs pass through
    - reminder notifier and Matrix connector logs only at WARNING+
      (sent reminders are already printed by ConsoleMessenger or posted to Matrix)
    - nio/aiohttp and captured py.warnings only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("linecheck."):
            if name.startswith(_BACKGROUND_LOGGERS):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/linecheck",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers; returns the log file path.

    Call once from cli.main before the first logger call. Calling it again
    replaces the handlers instead of stacking them.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "linecheck.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    for name, level in _THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(max(console_level, level))

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)
    return log_file
