"""Two-timer kiosk loop: network poll and wall-clock tick.

The poll thread refreshes pairing and plan data every few seconds; the tick
thread re-renders every second from cached data without touching the
network.
"""

import logging
import threading
from typing import Callable

from chaosops.display.machine import DisplayStateMachine, DisplayView

logger = logging.getLogger(__name__)


class DisplayRunner:
    """Runs a ``DisplayStateMachine`` on two daemon threads."""

    def __init__(
        self,
        machine: DisplayStateMachine,
        render: Callable[[DisplayView], None],
        poll_interval: float = 5.0,
        tick_interval: float = 1.0,
    ):
        self.machine = machine
        self.render = render
        self.poll_interval = poll_interval
        self.tick_interval = tick_interval
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self):
        """Restore local state and start both timers."""
        with self._lock:
            self.machine.restore()
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._poll_loop, daemon=True, name="display-poll"),
            threading.Thread(target=self._tick_loop, daemon=True, name="display-tick"),
        ]
        for thread in self._threads:
            thread.start()
        logger.info("Display runner started (poll %.1fs, tick %.1fs)", self.poll_interval, self.tick_interval)

    def stop(self):
        self._stop.set()
        self._wake.set()
        for thread in self._threads:
            if thread.is_alive():
                thread.join(timeout=5)
        logger.info("Display runner stopped")

    def nudge(self):
        """Poll now instead of waiting for the next interval."""
        self._wake.set()

    def on_push(self, message: dict):
        with self._lock:
            wanted = self.machine.handle_push(message)
        if wanted:
            self.nudge()

    def poll_once(self) -> bool:
        """One poll. The network round runs outside the lock; only applying it is serialised with rendering."""
        result = self.machine.fetch()
        with self._lock:
            changed = self.machine.apply(result)
        if changed:
            self.render_once()
        return changed

    def render_once(self):
        with self._lock:
            view = self.machine.view()
        try:
            self.render(view)
        except Exception:
            logger.exception("Render failed")

    def _poll_loop(self):
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Poll tick failed")
            self._wake.wait(self.poll_interval)
            self._wake.clear()

    def _tick_loop(self):
        while not self._stop.wait(self.tick_interval):
            self.render_once()
