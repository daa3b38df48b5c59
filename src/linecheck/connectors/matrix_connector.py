# src/linecheck/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Optional, Set

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_scheduler import run_reminder_notifier
from .background import BackgroundRunner, start_in_background
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> Optional[Set[str]]:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
    )


class MatrixMessenger:
    """
    OutboundMessenger posting reminders into a Matrix room.

    Room selection when the caller passes no room_id:
    - the configured notify room
    - otherwise the first allowed room
    - otherwise any joined room
    """

    def __init__(
        self,
        client: AsyncClient,
        *,
        default_room: str | None = None,
        allowed_rooms: Set[str] | None = None,
    ) -> None:
        self._client = client
        self._default_room = default_room
        self._allowed_rooms = allowed_rooms

    def pick_room(self, room_id: str | None) -> str | None:
        room = (room_id or "").strip() or self._default_room
        if not room and self._allowed_rooms:
            room = sorted(self._allowed_rooms)[0]
        if not room and self._client.rooms:
            room = next(iter(self._client.rooms.keys()))
        return room or None

    async def send_text(
        self,
        *,
        text: str,
        room_id: str | None = None,
        to_user_id: str | None = None,
    ) -> None:
        room = self.pick_room(room_id)
        if not room:
            raise RuntimeError("No Matrix room available for reminder delivery")
        await _send_text(self._client, room_id=room, text=text)


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    init -> reminder notifier -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    logger.info(
        "Matrix client started (user=%s, homeserver=%s).",
        settings.matrix_user_id,
        settings.matrix_homeserver,
    )

    # ---- Reminder notifier ----

    notifier_task: asyncio.Task | None = None
    if getattr(settings, "notifier_enabled", False):
        messenger = MatrixMessenger(
            client,
            default_room=getattr(settings, "matrix_notify_room", None),
            allowed_rooms=allowed_rooms,
        )
        notifier_task = asyncio.create_task(
            run_reminder_notifier(
                state.task_store,
                messenger,
                organization_id=state.service.organization_id,
                interval_seconds=float(getattr(settings, "notifier_interval_seconds", 30.0)),
                almost_late_minutes=state.service.almost_late_minutes,
            )
        )

    # ---- Message callback (commands only) ----

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return
        if event.sender == client.user_id:
            return
        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body.startswith("/"):
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        try:
            with state.lock:
                resp = command_registry.handle(state, body, user_id=event.sender, room_id=room.room_id)
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "Internal error while handling a command."

        if resp:
            try:
                await _send_text(client, room_id=room.room_id, text=resp)
            except Exception:
                logger.exception("Failed to send command reply.")

    client.add_event_callback(message_callback, RoomMessageText)

    # ---- Sync loop ----

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        if notifier_task is not None:
            notifier_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await notifier_task

        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")


def start_matrix_in_background(state: AppState) -> BackgroundRunner | None:
    """Start the Matrix connector (and its reminder notifier) in a background thread."""
    settings = state.settings
    if not getattr(settings, "matrix_enabled", False):
        logger.info("Matrix connector disabled, not starting.")
        return None

    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix is enabled but not configured (homeserver/user_id).")
        return None

    return start_in_background("matrix", lambda stop_event: _run_matrix_bot(state, stop_event))
