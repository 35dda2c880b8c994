"""Device identity store: persistence of display devices.

Every write keeps the pairing invariants together: a device carries a pairing
code exactly while unpaired and an organisation exactly while paired.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from chaosops.config import settings
from chaosops.models.device import Device, DeviceStatus
from chaosops.services.errors import CodeSpaceExhaustedError
from chaosops.services.pairing_codes import generate_unique_code

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Queries ---

def find_by_id(session: Session, device_id: str) -> Device | None:
    return session.get(Device, device_id)


def find_by_pairing_code(session: Session, code: str) -> Device | None:
    return session.exec(select(Device).where(Device.pairing_code == code)).first()


def is_code_pending(session: Session, code: str) -> bool:
    return find_by_pairing_code(session, code) is not None


def list_for_organisation(session: Session, organisation_id: str) -> list[Device]:
    return list(
        session.exec(
            select(Device)
            .where(Device.organisation_id == organisation_id)
            .order_by(col(Device.created_at).desc())
        ).all()
    )


def code_expired(device: Device, now: datetime | None = None) -> bool:
    """True if pairing code expiry is enabled and the device's code is past it."""
    if settings.pairing_code_ttl_seconds <= 0 or device.code_issued_at is None:
        return False
    issued = device.code_issued_at
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=timezone.utc)
    now = now or _now()
    return now - issued >= timedelta(seconds=settings.pairing_code_ttl_seconds)


# --- Writes ---

def _save_with_fresh_code(session: Session, device: Device, **changes) -> Device:
    """Persist ``device`` with a newly issued pairing code and ``changes`` applied.

    The unique index on pairing_code catches codes issued concurrently by
    another request; those are retried with a new code.
    """
    for _ in range(settings.pairing_code_max_attempts):
        code = generate_unique_code(lambda c: is_code_pending(session, c))
        for field, value in changes.items():
            setattr(device, field, value)
        device.status = DeviceStatus.UNPAIRED
        device.pairing_code = code
        device.code_issued_at = _now()
        device.updated_at = _now()
        session.add(device)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.warning("Pairing code %s taken concurrently, retrying", code)
            continue
        session.refresh(device)
        return device

    raise CodeSpaceExhaustedError("Failed to generate unique pairing code")


def create_device(session: Session) -> Device:
    """Create a new unpaired device with a fresh pairing code."""
    return _save_with_fresh_code(session, Device())


def refresh_code(session: Session, device: Device) -> Device:
    """Replace the pairing code of an unpaired device."""
    return _save_with_fresh_code(session, device)


def release(session: Session, device: Device) -> Device:
    """Unbind a device from its organisation and give it a fresh code."""
    return _save_with_fresh_code(
        session,
        device,
        organisation_id=None,
        current_day_plan_id=None,
        name=None,
    )


def claim(session: Session, device: Device, code: str, organisation_id: str, name: str) -> bool:
    """Atomically pair ``device`` if it still holds ``code``.

    Returns False when another claimant got there first.
    """
    result = session.connection().execute(
        update(Device)
        .where(
            Device.id == device.id,
            Device.pairing_code == code,
            Device.status == DeviceStatus.UNPAIRED,
        )
        .values(
            status=DeviceStatus.PAIRED,
            organisation_id=organisation_id,
            name=name,
            pairing_code=None,
            code_issued_at=None,
            updated_at=_now(),
        )
    )
    session.commit()
    if result.rowcount != 1:
        return False
    session.refresh(device)
    return True


def set_day_plan(session: Session, device: Device, day_plan_id: str) -> Device:
    device.current_day_plan_id = day_plan_id
    device.updated_at = _now()
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def rename(session: Session, device: Device, name: str) -> Device:
    device.name = name
    device.updated_at = _now()
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def set_socket_handle(session: Session, device_id: str, handle: str) -> bool:
    result = session.connection().execute(
        update(Device).where(Device.id == device_id).values(socket_handle=handle)
    )
    session.commit()
    return result.rowcount == 1


def clear_socket_handle(session: Session, device_id: str, handle: str) -> None:
    """Forget ``handle`` unless a newer connection already replaced it."""
    session.connection().execute(
        update(Device)
        .where(Device.id == device_id, Device.socket_handle == handle)
        .values(socket_handle=None)
    )
    session.commit()
