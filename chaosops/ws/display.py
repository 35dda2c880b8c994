"""WebSocket push channel for paired displays.

A display connects with its device id; the connection handle is stored on
the device row so pairing and assignment can nudge it. Nothing sent here is
authoritative, displays keep polling regardless.
"""

import asyncio
import json
import logging
import secrets
from concurrent.futures import Future
from typing import Dict

from fastapi import WebSocket, WebSocketDisconnect
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from chaosops.database import engine
from chaosops.services import device_store

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages active display WebSocket connections by handle."""

    def __init__(self):
        self._connections: Dict[str, WebSocket] = {}  # handle -> ws
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        self._loop = asyncio.get_running_loop()
        handle = f"sock_{secrets.token_hex(8)}"
        self._connections[handle] = ws
        return handle

    def disconnect(self, handle: str):
        self._connections.pop(handle, None)

    async def send(self, handle: str, message: dict) -> bool:
        ws = self._connections.get(handle)
        if ws is None:
            return False
        try:
            await ws.send_json(message)
        except Exception as e:
            logger.warning("Push to socket %s failed: %s", handle, e)
            self.disconnect(handle)
            return False
        return True

    def send_threadsafe(self, handle: str, message: dict) -> bool:
        """Schedule ``message`` on the event loop without waiting for delivery.

        Returns False if the handle has no live connection.
        """
        if handle not in self._connections or self._loop is None or self._loop.is_closed():
            return False
        future = asyncio.run_coroutine_threadsafe(self.send(handle, message), self._loop)
        future.add_done_callback(self._log_failure)
        return True

    @staticmethod
    def _log_failure(future: Future):
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Push delivery raised: %s", exc)

    @property
    def connection_count(self) -> int:
        return len(self._connections)


manager = ConnectionManager()


def _bind(device_id: str, handle: str) -> bool:
    with Session(engine) as session:
        return device_store.set_socket_handle(session, device_id, handle)


def _unbind(device_id: str, handle: str) -> None:
    with Session(engine) as session:
        device_store.clear_socket_handle(session, device_id, handle)


def _exists(device_id: str) -> bool:
    with Session(engine) as session:
        return device_store.find_by_id(session, device_id) is not None


async def websocket_display(ws: WebSocket, device_id: str | None = None):
    """WebSocket endpoint for display push notifications."""
    if not device_id:
        await ws.close(code=4001, reason="Missing deviceId")
        return

    if not await run_in_threadpool(_exists, device_id):
        await ws.close(code=4004, reason="Display not found")
        return

    handle = await manager.connect(ws)
    await run_in_threadpool(_bind, device_id, handle)
    logger.info("Display %s connected on socket %s", device_id, handle)
    await ws.send_json({"type": "connected", "data": {"deviceId": device_id}})

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
                msg_type = msg.get("type", "")

                if msg_type == "ping":
                    await ws.send_json({"type": "pong"})
                else:
                    await ws.send_json({"type": "error", "message": f"Unknown type: {msg_type}"})
            except (json.JSONDecodeError, AttributeError):
                await ws.send_json({"type": "error", "message": "Invalid JSON"})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(handle)
        await run_in_threadpool(_unbind, device_id, handle)
        logger.info("Display %s disconnected from socket %s", device_id, handle)
