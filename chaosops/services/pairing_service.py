"""Display pairing business logic.

Covers the device lifecycle seen from the server: init, claim by pairing
code, day plan assignment, status polling, disconnect and reset. Push
notifications are sent through a ``DisplayNotifier`` and never decide the
outcome of an operation.
"""

import logging

from pydantic import TypeAdapter
from sqlmodel import Session, col, select

from chaosops.models.device import Device
from chaosops.models.organisation import Organisation
from chaosops.models.planning import DayPlan, Event, ScheduleItem
from chaosops.schemas.display import (
    SCHEDULE_ITEM_TYPES,
    DayPlanPayload,
    ScheduleItemPayload,
    StatusResponse,
)
from chaosops.services import device_store
from chaosops.services.errors import (
    ConflictError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from chaosops.services.notifier import (
    DAYPLAN_ASSIGNED_EVENT,
    PAIRED_EVENT,
    DisplayNotifier,
    null_notifier,
)

logger = logging.getLogger(__name__)

_item_adapter = TypeAdapter(ScheduleItemPayload)


# --- Day plan payload ---

def _item_payload(item: ScheduleItem):
    data = item.model_dump(exclude={"day_plan_id"})
    # Legacy items without a known type render as sessions
    if data.get("type") not in SCHEDULE_ITEM_TYPES:
        data["type"] = "session"
    return _item_adapter.validate_python(data)


def load_day_plan(session: Session, day_plan_id: str) -> DayPlanPayload | None:
    """Full day plan with its schedule items in list order."""
    plan = session.get(DayPlan, day_plan_id)
    if plan is None:
        return None
    items = session.exec(
        select(ScheduleItem)
        .where(ScheduleItem.day_plan_id == plan.id)
        .order_by(col(ScheduleItem.position), col(ScheduleItem.id))
    ).all()
    return DayPlanPayload(
        id=plan.id,
        name=plan.name,
        date=plan.date,
        event_id=plan.event_id,
        schedule_items=[_item_payload(item) for item in items],
    )


# --- Lifecycle ---

def init_device(session: Session, device_id: str | None = None) -> Device:
    """Return the caller's device, creating a new unpaired one if unknown.

    An unpaired device whose code has expired gets a fresh code.
    """
    if device_id:
        device = device_store.find_by_id(session, device_id)
        if device is not None:
            if not device.is_paired and device_store.code_expired(device):
                device = device_store.refresh_code(session, device)
                logger.info("Pairing code refreshed for display %s", device.id)
            return device
        logger.info("Unknown display %s on init, creating a new one", device_id)

    device = device_store.create_device(session)
    logger.info("Display created with pairing code %s (%s)", device.pairing_code, device.id)
    return device


def register_device(
    session: Session,
    pairing_code: str,
    organisation_id: str,
    device_name: str | None = None,
    notifier: DisplayNotifier = null_notifier,
) -> Device:
    """Claim the device holding ``pairing_code`` for ``organisation_id``."""
    pairing_code = (pairing_code or "").strip()
    organisation_id = (organisation_id or "").strip()
    if not pairing_code or not organisation_id:
        raise ValidationError("Missing required fields: pairingCode and organisationId are required")

    if session.get(Organisation, organisation_id) is None:
        raise NotFoundError("Organisation not found")

    device = device_store.find_by_pairing_code(session, pairing_code)
    if device is None or device_store.code_expired(device):
        logger.warning("Display registration failed: invalid pairing code %s", pairing_code)
        raise NotFoundError("Invalid pairing code")

    if device.is_paired:
        logger.warning("Display registration failed: display %s already paired", device.id)
        raise ConflictError("Display is already paired")

    name = (device_name or "").strip() or f"Display {pairing_code}"
    if not device_store.claim(session, device, pairing_code, organisation_id, name):
        logger.warning("Display registration failed: code %s claimed concurrently", pairing_code)
        raise NotFoundError("Invalid pairing code")

    logger.info("Display %s paired to organisation %s", device.id, organisation_id)

    notifier.notify(
        device.socket_handle,
        PAIRED_EVENT,
        {"organisationId": device.organisation_id, "deviceName": device.name},
    )
    return device


def assign_day_plan(
    session: Session,
    device_id: str,
    day_plan_id: str,
    notifier: DisplayNotifier = null_notifier,
) -> Device:
    """Point a paired device at one of its organisation's day plans."""
    if not device_id or not (day_plan_id or "").strip():
        raise ValidationError("dayPlanId is required")

    device = device_store.find_by_id(session, device_id)
    if device is None:
        raise NotFoundError("Display not found")
    if not device.is_paired:
        raise ConflictError("Display is not paired")

    plan = session.get(DayPlan, day_plan_id)
    if plan is None:
        logger.warning("DayPlan %s not found", day_plan_id)
        raise NotFoundError("DayPlan not found")

    event = session.get(Event, plan.event_id)
    if event is None or event.organisation_id != device.organisation_id:
        logger.warning(
            "DayPlan %s does not belong to organisation %s", day_plan_id, device.organisation_id
        )
        raise InvalidReferenceError("DayPlan belongs to another organisation")

    device = device_store.set_day_plan(session, device, plan.id)
    logger.info("DayPlan %s assigned to display %s", plan.id, device.id)

    payload = load_day_plan(session, plan.id)
    notifier.notify(
        device.socket_handle,
        DAYPLAN_ASSIGNED_EVENT,
        {
            "dayPlanId": plan.id,
            "dayPlan": payload.model_dump(mode="json", by_alias=True) if payload else None,
        },
    )
    return device


def get_status(session: Session, device_id: str) -> StatusResponse:
    """Snapshot of what a display should show. Reads only."""
    device = device_store.find_by_id(session, device_id)
    if device is None:
        raise NotFoundError("Display not found")

    day_plan = None
    if device.current_day_plan_id:
        day_plan = load_day_plan(session, device.current_day_plan_id)

    return StatusResponse(
        status=device.status.value,
        is_paired=device.is_paired,
        organisation_id=device.organisation_id,
        device_name=device.name,
        pairing_code=device.pairing_code,
        day_plan=day_plan,
    )


def disconnect_device(session: Session, device_id: str) -> Device:
    """Unbind a device from its organisation; it gets a fresh pairing code."""
    device = device_store.find_by_id(session, device_id)
    if device is None:
        raise NotFoundError("Display not found")

    device = device_store.release(session, device)
    logger.info("Display %s disconnected, new pairing code %s", device.id, device.pairing_code)
    return device


def reset_device(session: Session, device_id: str) -> Device:
    """Same server-side effect as a disconnect; the kiosk also wipes its cache."""
    device = device_store.find_by_id(session, device_id)
    if device is None:
        raise NotFoundError("Display not found")

    device = device_store.release(session, device)
    logger.info("Display %s reset, new pairing code %s", device.id, device.pairing_code)
    return device
