"""Best-effort push notifications to connected displays.

Polling is the source of truth for every display; a notifier only shortens
the time until the next poll notices a change. ``NullNotifier`` is a valid
substitute everywhere a notifier is accepted.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

PAIRED_EVENT = "paired"
DAYPLAN_ASSIGNED_EVENT = "dayplan-assigned"


class DisplayNotifier(Protocol):
    def notify(self, socket_handle: str | None, event: str, data: dict) -> None:
        """Fire-and-forget ``event`` to the connection ``socket_handle``."""


class NullNotifier:
    """Notifier that drops every event."""

    def notify(self, socket_handle: str | None, event: str, data: dict) -> None:
        return None


class PushChannel(Protocol):
    def send_threadsafe(self, handle: str, message: dict) -> bool: ...


class WebSocketNotifier:
    """Delivers events over the display WebSocket channel."""

    def __init__(self, channel: PushChannel):
        self._channel = channel

    def notify(self, socket_handle: str | None, event: str, data: dict) -> None:
        if not socket_handle:
            logger.debug("No live connection for %s event, relying on polling", event)
            return
        message = {"type": event, "data": data}
        if not self._channel.send_threadsafe(socket_handle, message):
            logger.warning("Socket %s not found for %s event", socket_handle, event)


null_notifier = NullNotifier()
