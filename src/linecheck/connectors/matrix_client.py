# src/linecheck/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    # Keep session tokens in a single predictable place under a gitignored local dir.
    return store_dir / "session.json"


def _load_json(path: Path) -> dict[str, Any]:
    raw = path.read_text("utf-8")
    val = json.loads(raw)
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        os.chmod(path, 0o600)


def restore_session(client: AsyncClient, session_file: Path) -> bool:
    """Apply access_token/user_id/device_id from session.json. Returns False if unusable."""
    if not session_file.exists():
        return False
    try:
        data = _load_json(session_file)
    except (OSError, ValueError) as e:
        logger.warning("Failed to read Matrix session.json: %r", e)
        return False

    access_token = data.get("access_token")
    sess_user_id = data.get("user_id")
    device_id = data.get("device_id")
    if not access_token or not sess_user_id or not device_id:
        logger.warning("Matrix session.json is missing required fields, ignoring it")
        return False

    client.access_token = str(access_token)
    client.user_id = str(sess_user_id)
    client.device_id = str(device_id)
    return True


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a Matrix AsyncClient for posting reminders.

    The session (access token/device id) is persisted to session.json so restarts
    do not log in again. The file is sensitive and lives under the gitignored data dir.
    Rooms used for reminders are expected to be unencrypted.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/linecheck/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set LINECHECK_MATRIX_HOMESERVER and LINECHECK_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = _session_path(store_dir)

    config = AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False)
    client = AsyncClient(homeserver, user_id, config=config)

    if restore_session(client, session_file):
        logger.info("Matrix session restored for %s", client.user_id)
        return client

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set LINECHECK_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'linecheck')} (Python)"
    logger.info("Logging in to Matrix to bootstrap a new session (device_name=%r)...", device_name)

    resp = await client.login(password=password, device_name=device_name)

    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    session_data = {
        "access_token": resp.access_token,
        "user_id": resp.user_id,
        "device_id": resp.device_id,
    }

    try:
        _atomic_write_json(session_file, session_data)
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The client is logged in; it just has to log in again next start.
        logger.error("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client
