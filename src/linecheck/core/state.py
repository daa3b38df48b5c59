# src/linecheck/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_api import QualityTaskService
from .ports import TaskRepository


@dataclass
class AppState:
    # Settings object (config.Settings in the app, a SimpleNamespace in tests).
    settings: Any

    task_store: TaskRepository
    service: QualityTaskService

    # Guards the store when the console and the Matrix thread handle commands concurrently.
    lock: threading.RLock = field(default_factory=threading.RLock)
