# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "LINECHECK_APP_NAME": "App display name (default: linecheck).",
    "LINECHECK_LOG_LEVEL": "Logging level (default: INFO).",
    # Connectors
    "LINECHECK_CONSOLE_ENABLED": "Enable console connector (true/false).",
    "LINECHECK_MATRIX_ENABLED": "Enable Matrix connector (true/false).",
    # Reminders
    "LINECHECK_NOTIFIER_ENABLED": "Run the reminder notifier (true/false, default: true).",
    "LINECHECK_NOTIFIER_INTERVAL_SECONDS": "Notifier polling interval (default: 30).",
    "LINECHECK_ALMOST_LATE_MINUTES": "Minutes before window end that count as almost late (default: 5).",
    # Storage
    "LINECHECK_STORAGE": "Task repository backend: sqlite | mock (default: sqlite).",
    "LINECHECK_ORGANIZATION_ID": "Organization whose records are shown/created (default: org1).",
    # Matrix
    "LINECHECK_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "LINECHECK_MATRIX_USER_ID": "Matrix user ID (bot).",
    "LINECHECK_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "LINECHECK_MATRIX_ROOMS": "Optional allowlist of room IDs for commands (empty => all rooms).",
    "LINECHECK_MATRIX_NOTIFY_ROOM": "Room that receives reminders (default: first allowed/joined room).",
    # Paths (gitignored)
    "LINECHECK_DATA_DIR": "Local data directory (default: .local/linecheck).",
    "LINECHECK_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "LINECHECK_MATRIX_STORE_PATH": "Matrix session dir (default: <data_dir>/matrix_store).",
}
