"""Kiosk entry point: python -m chaosops.display"""

import argparse
import logging
import time

from chaosops.display.client import PairingClient
from chaosops.display.config import display_settings
from chaosops.display.machine import DisplayStateMachine, DisplayView, Screen
from chaosops.display.push import PushListener, push_url
from chaosops.display.runner import DisplayRunner
from chaosops.display.storage import LocalStore

logger = logging.getLogger("chaosops.display")


def describe(view: DisplayView) -> str:
    """One-line text rendering of a view."""
    if view.screen == Screen.CONNECTING:
        return "Connecting..."
    if view.screen == Screen.PAIRING_CODE:
        return f"Pairing code: {view.pairing_code}"
    if view.screen == Screen.WAITING:
        return f"{view.device_name or 'Display'} paired, waiting for a day plan"
    plan_name = (view.day_plan or {}).get("name", "")
    if view.screen == Screen.COUNTDOWN:
        c = view.countdown
        return f"{plan_name} starts in {c.days}d {c.hours:02d}:{c.minutes:02d}:{c.seconds:02d}"
    if view.screen == Screen.ENDED:
        return f"{plan_name} has ended"
    items = (view.day_plan or {}).get("scheduleItems") or []
    if view.current_index is None:
        return f"{plan_name} {view.now:%H:%M:%S} - not started yet"
    current = items[view.current_index]
    return f"{plan_name} {view.now:%H:%M:%S} - now: {current.get('time')} {current.get('title')}"


def main(argv=None):
    parser = argparse.ArgumentParser(description="Chaos Ops kiosk display")
    parser.add_argument("--api-url", default=display_settings.api_url)
    parser.add_argument("--state-file", default=str(display_settings.state_file))
    parser.add_argument("--poll-interval", type=float, default=display_settings.poll_interval_seconds)
    parser.add_argument("--no-push", action="store_true", help="poll only, do not open the push channel")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    client = PairingClient(args.api_url, timeout=display_settings.request_timeout_seconds)
    machine = DisplayStateMachine(client, LocalStore(args.state_file))
    last = {"text": None}

    def render(view: DisplayView):
        text = describe(view)
        if text != last["text"]:
            logger.info(text)
            last["text"] = text

    runner = DisplayRunner(
        machine,
        render,
        poll_interval=args.poll_interval,
        tick_interval=display_settings.tick_interval_seconds,
    )
    runner.start()

    listener = None
    if not args.no_push:
        listener = PushListener(
            display_settings.push_url or push_url(args.api_url),
            lambda: machine.device_id,
            runner.on_push,
            reconnect_delay=args.poll_interval,
        )
        listener.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        if listener:
            listener.stop()
        runner.stop()
        client.close()


if __name__ == "__main__":
    main()
