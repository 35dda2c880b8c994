"""Kiosk display state machine.

States follow the pairing lifecycle::

    INIT -> AWAITING_PAIR -> PAIRED_NO_PLAN <-> PLAN_ASSIGNED

Transitions are driven only by poll responses and explicit operator actions
(disconnect, reset). Which screen a plan needs (countdown, running, ended) is
not a state; ``view()`` recomputes it from the clock on every tick.

A poll is two steps: ``fetch()`` does the network round and touches no
state, ``apply()`` folds its result in. Callers that render from another
thread only need to serialise ``apply()`` and ``view()``.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from chaosops.display.client import DeviceNotFound, PairingClientError
from chaosops.display.schedule import Countdown, Phase, compute_phase, current_item_index
from chaosops.display.storage import LocalState, LocalStore

logger = logging.getLogger(__name__)

PUSH_EVENTS = ("paired", "dayplan-assigned")


class DisplayState(str, Enum):
    INIT = "INIT"
    AWAITING_PAIR = "AWAITING_PAIR"
    PAIRED_NO_PLAN = "PAIRED_NO_PLAN"
    PLAN_ASSIGNED = "PLAN_ASSIGNED"


class Screen(str, Enum):
    CONNECTING = "connecting"
    PAIRING_CODE = "pairing_code"
    WAITING = "waiting"
    COUNTDOWN = "countdown"
    RUNNING = "running"
    ENDED = "ended"


@dataclass(frozen=True)
class DisplayView:
    screen: Screen
    now: datetime
    device_id: Optional[str] = None
    pairing_code: Optional[str] = None
    device_name: Optional[str] = None
    organisation_id: Optional[str] = None
    day_plan: Optional[dict] = None
    plan_version: int = 0
    countdown: Optional[Countdown] = None
    current_index: Optional[int] = None


@dataclass(frozen=True)
class PollResult:
    """What one network round produced, before it is applied.

    ``device_id`` is the identity the request was made for; a result whose
    identity no longer matches the machine is discarded.
    """

    device_id: Optional[str]
    status: Optional[dict] = None
    identity: Optional[dict] = None
    not_found: bool = False
    released: Optional[str] = None


class PairingApi(Protocol):
    def init(self, device_id: Optional[str] = None) -> dict: ...
    def status(self, device_id: str) -> dict: ...
    def disconnect(self, device_id: str) -> dict: ...
    def reset(self, device_id: str) -> dict: ...


def _fingerprint(plan: Optional[dict]) -> Optional[str]:
    if plan is None:
        return None
    return json.dumps(plan, sort_keys=True, separators=(",", ":"))


_PHASE_SCREENS = {
    Phase.COUNTDOWN: Screen.COUNTDOWN,
    Phase.RUNNING: Screen.RUNNING,
    Phase.ENDED: Screen.ENDED,
}


class DisplayStateMachine:
    """Pairing and plan state of one kiosk.

    ``api`` and ``clock`` are injected so the machine runs without a network
    or a real clock. ``plan_version`` increases only when the plan content
    changes, so renderers can skip resets for identical polls.

    A disconnect the server never acknowledged is kept in
    ``pending_disconnect`` and replayed before the kiosk asks for a new
    identity, so the old device does not stay bound to its organisation.
    """

    def __init__(
        self,
        api: PairingApi,
        store: LocalStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.api = api
        self.store = store
        self.clock = clock

        self.state = DisplayState.INIT
        self.device_id: Optional[str] = None
        self.pairing_code: Optional[str] = None
        self.organisation_id: Optional[str] = None
        self.device_name: Optional[str] = None
        self.day_plan: Optional[dict] = None
        self.pending_disconnect: Optional[str] = None
        self.plan_version = 0
        self._plan_fingerprint: Optional[str] = None

    # --- Local state ---

    def restore(self) -> None:
        """Resume from the last persisted state, if any."""
        saved = self.store.load()
        self.pending_disconnect = saved.pending_disconnect
        if not saved.device_id:
            if self.pending_disconnect:
                logger.info("Display %s still has to be released", self.pending_disconnect)
            return
        self.device_id = saved.device_id
        self.pairing_code = saved.pairing_code
        if saved.is_paired:
            self.organisation_id = saved.organisation_id
            self.device_name = saved.device_name
            self._set_plan(saved.day_plan)
            self.state = DisplayState.PLAN_ASSIGNED if self.day_plan else DisplayState.PAIRED_NO_PLAN
        else:
            self.state = DisplayState.AWAITING_PAIR
        logger.info("Restored display %s in state %s", self.device_id, self.state.value)

    def _persist(self) -> None:
        if self.device_id is None and self.pending_disconnect is None:
            self.store.clear()
            return
        self.store.save(
            LocalState(
                device_id=self.device_id,
                pairing_code=self.pairing_code,
                is_paired=self.state in (DisplayState.PAIRED_NO_PLAN, DisplayState.PLAN_ASSIGNED),
                organisation_id=self.organisation_id,
                device_name=self.device_name,
                day_plan=self.day_plan,
                pending_disconnect=self.pending_disconnect,
            )
        )

    def _wipe(self) -> None:
        self.state = DisplayState.INIT
        self.device_id = None
        self.pairing_code = None
        self.organisation_id = None
        self.device_name = None
        self._set_plan(None)
        self._persist()

    def _set_plan(self, plan: Optional[dict]) -> bool:
        fingerprint = _fingerprint(plan)
        if fingerprint == self._plan_fingerprint:
            return False
        self.day_plan = plan
        self._plan_fingerprint = fingerprint
        self.plan_version += 1
        return True

    # --- Network round ---

    def fetch(self) -> Optional[PollResult]:
        """Do the network part of one poll. Reads state, never changes it.

        Returns None when nothing could be learned this round.
        """
        if self.state == DisplayState.INIT:
            return self._fetch_identity()

        device_id = self.device_id
        try:
            status = self.api.status(device_id)
        except DeviceNotFound:
            logger.warning("Server no longer knows display %s, pairing again", device_id)
            return PollResult(device_id, identity=self._request_identity(), not_found=True)
        except PairingClientError as e:
            logger.warning("Status poll failed, keeping last state: %s", e)
            return None
        return PollResult(device_id, status=status)

    def _fetch_identity(self) -> Optional[PollResult]:
        released = self.pending_disconnect
        if released:
            try:
                self.api.disconnect(released)
            except DeviceNotFound:
                logger.info("Display %s already gone on the server", released)
            except PairingClientError as e:
                logger.warning("Release of display %s failed, retrying on next poll: %s", released, e)
                return None
            else:
                logger.info("Display %s released", released)

        identity = self._request_identity()
        if identity is None and released is None:
            return None
        return PollResult(None, identity=identity, released=released)

    def _request_identity(self) -> Optional[dict]:
        try:
            return self.api.init()
        except PairingClientError as e:
            logger.warning("Display init failed, retrying on next poll: %s", e)
            return None

    def apply(self, result: Optional[PollResult]) -> bool:
        """Fold a ``fetch()`` result into the machine. True if anything changed."""
        if result is None:
            return False
        if result.device_id != self.device_id:
            logger.debug("Discarding poll result for %s, identity changed meanwhile", result.device_id)
            return False

        if result.status is not None:
            return self.apply_status(result.status)

        changed = False
        if result.released and result.released == self.pending_disconnect:
            self.pending_disconnect = None
            changed = True
        if result.not_found:
            self._wipe()
            changed = True
        if result.identity is not None and self.state == DisplayState.INIT:
            self._adopt_identity(result.identity)
            changed = True
        elif changed:
            self._persist()
        return changed

    def boot(self) -> bool:
        """INIT: obtain a device id and pairing code from the server."""
        if self.state != DisplayState.INIT:
            return False
        return self.apply(self._fetch_identity())

    def poll(self) -> bool:
        """One poll tick. Returns True if the state or plan changed."""
        return self.apply(self.fetch())

    def _adopt_identity(self, result: dict) -> None:
        self.device_id = result["deviceId"]
        self.pairing_code = result.get("code")
        self.state = DisplayState.AWAITING_PAIR
        self._persist()
        logger.info("Display %s awaiting pairing with code %s", self.device_id, self.pairing_code)

    def apply_status(self, status: dict) -> bool:
        """Fold a status response into the machine."""
        if not status.get("isPaired"):
            code = status.get("pairingCode")
            changed = self.state != DisplayState.AWAITING_PAIR or code != self.pairing_code
            if self.state in (DisplayState.PAIRED_NO_PLAN, DisplayState.PLAN_ASSIGNED):
                logger.info("Display %s was unpaired, discarding organisation and plan", self.device_id)
            self.organisation_id = None
            self.device_name = None
            self._set_plan(None)
            self.pairing_code = code
            self.state = DisplayState.AWAITING_PAIR
            if changed:
                self._persist()
            return changed

        changed = False
        organisation_id = status.get("organisationId")
        device_name = status.get("deviceName")
        if (
            self.state == DisplayState.AWAITING_PAIR
            or organisation_id != self.organisation_id
            or device_name != self.device_name
        ):
            self.organisation_id = organisation_id
            self.device_name = device_name
            self.pairing_code = None
            changed = True

        if self._set_plan(status.get("dayPlan")):
            changed = True

        state = DisplayState.PLAN_ASSIGNED if self.day_plan is not None else DisplayState.PAIRED_NO_PLAN
        if state != self.state:
            logger.info("Display %s: %s -> %s", self.device_id, self.state.value, state.value)
            self.state = state
            changed = True

        if changed:
            self._persist()
        return changed

    def handle_push(self, message: dict) -> bool:
        """True if a push message warrants polling right away.

        Push payloads are hints only; the poll that follows is what changes
        state.
        """
        return isinstance(message, dict) and message.get("type") in PUSH_EVENTS

    # --- Operator actions ---

    def disconnect(self) -> None:
        """Unbind this display and start over from INIT.

        If the server cannot be reached the release is remembered and retried
        before the next identity is requested.
        """
        device_id = self.device_id
        if device_id:
            try:
                self.api.disconnect(device_id)
            except DeviceNotFound:
                logger.info("Display %s already gone on the server", device_id)
            except PairingClientError as e:
                logger.warning("Disconnect of %s failed, will retry: %s", device_id, e)
                self.pending_disconnect = device_id
        self._wipe()

    def reset(self) -> None:
        """Like disconnect; adopts the fresh code the server hands back."""
        device_id = self.device_id
        if not device_id:
            self._wipe()
            return
        try:
            result = self.api.reset(device_id)
        except DeviceNotFound:
            logger.info("Display %s already gone on the server", device_id)
            self._wipe()
            return
        except PairingClientError as e:
            logger.warning("Reset of %s failed, will retry: %s", device_id, e)
            self.pending_disconnect = device_id
            self._wipe()
            return
        self._wipe()
        self._adopt_identity(result)

    # --- Rendering ---

    def view(self, now: Optional[datetime] = None) -> DisplayView:
        """What to show at ``now``. Never raises on bad plan data."""
        now = now or self.clock()
        base = dict(
            now=now,
            device_id=self.device_id,
            pairing_code=self.pairing_code,
            device_name=self.device_name,
            organisation_id=self.organisation_id,
            day_plan=self.day_plan,
            plan_version=self.plan_version,
        )

        if self.state == DisplayState.INIT:
            return DisplayView(screen=Screen.CONNECTING, **base)
        if self.state == DisplayState.AWAITING_PAIR:
            return DisplayView(screen=Screen.PAIRING_CODE, **base)
        if self.state == DisplayState.PAIRED_NO_PLAN:
            return DisplayView(screen=Screen.WAITING, **base)

        try:
            plan_date = date.fromisoformat(str(self.day_plan["date"])[:10])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Day plan has no usable date: %s", e)
            return DisplayView(screen=Screen.WAITING, **base)

        info = compute_phase(now, plan_date)
        current = None
        if info.phase == Phase.RUNNING:
            items = self.day_plan.get("scheduleItems")
            if isinstance(items, list):
                current = current_item_index(items, now, plan_date)
        return DisplayView(
            screen=_PHASE_SCREENS[info.phase],
            countdown=info.countdown,
            current_index=current,
            **base,
        )
