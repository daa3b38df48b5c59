"""
Task subsystem.

Components:
- task_models.py: data structures (schedules, task instances, docs, swabs, enums)
- time_window.py: reminder phase classification of a task's time window
- reminders.py: reminder message formatting
- task_store.py: SQLite-backed repository
- mock_store.py: in-memory repository seeded with demo records
- task_api.py: QualityTaskService (derived lists, dashboard stats, lifecycle helpers)
- task_scheduler.py: polling reminder notifier
"""
