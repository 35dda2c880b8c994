"""Push listener: wakes the poll loop when the server announces a change.

Messages are hints only. A missing or broken connection costs nothing but
latency, the poll loop still picks every change up.
"""

import json
import logging
import threading
from typing import Callable, Optional
from urllib.parse import urlsplit, urlunsplit

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

logger = logging.getLogger(__name__)


def push_url(api_url: str) -> str:
    """``http://host:3000/api`` -> ``ws://host:3000/ws/display``."""
    parts = urlsplit(api_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, "/ws/display", "", ""))


class PushListener:
    """Keeps one WebSocket open for the current device id and reconnects on failure."""

    def __init__(
        self,
        url: str,
        device_id: Callable[[], Optional[str]],
        on_message: Callable[[dict], None],
        reconnect_delay: float = 5.0,
        recv_timeout: float = 1.0,
        connect_factory=connect,
    ):
        self.url = url
        self.device_id = device_id
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay
        self.recv_timeout = recv_timeout
        self._connect = connect_factory
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="display-push")
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)

    def _run(self):
        while not self._stop.is_set():
            device_id = self.device_id()
            if device_id:
                try:
                    self.listen(device_id)
                except (OSError, TimeoutError, WebSocketException) as e:
                    logger.info("Push channel for %s unavailable: %s", device_id, e)
            self._stop.wait(self.reconnect_delay)

    def listen(self, device_id: str):
        """Receive until stopped, closed, or the device id changes."""
        with self._connect(f"{self.url}?deviceId={device_id}", open_timeout=self.recv_timeout * 5) as ws:
            logger.info("Push channel open for %s", device_id)
            while not self._stop.is_set() and self.device_id() == device_id:
                try:
                    raw = ws.recv(timeout=self.recv_timeout)
                except TimeoutError:
                    continue
                self.dispatch(raw)

    def dispatch(self, raw):
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-JSON push message")
            return
        if not isinstance(message, dict):
            return
        logger.debug("Push message %s", message.get("type"))
        try:
            self.on_message(message)
        except Exception:
            logger.exception("Push handler failed")
