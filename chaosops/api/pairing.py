"""Display pairing API endpoints.

Init, status, disconnect and reset are called by the kiosk itself and need no
credentials; registration, assignment and management require an admin of the
display's organisation.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlmodel import Session

from chaosops.api.deps import get_notifier, require_admin
from chaosops.database import get_session
from chaosops.models.device import Device
from chaosops.models.organisation import User
from chaosops.schemas.display import (
    AssignDayPlanRequest,
    DeviceResponse,
    PairingInitRequest,
    PairingInitResponse,
    RegisterRequest,
    RenameDeviceRequest,
    StatusResponse,
)
from chaosops.services import device_store
from chaosops.services.errors import PairingError
from chaosops.services.notifier import DisplayNotifier
from chaosops.services.pairing_service import (
    assign_day_plan,
    disconnect_device,
    get_status,
    init_device,
    register_device,
    reset_device,
)

router = APIRouter(tags=["displays"])


def _http_error(e: PairingError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={"error": e.code, "message": e.message},
    )


def _to_response(device: Device) -> DeviceResponse:
    return DeviceResponse(
        id=device.id,
        name=device.name,
        status=device.status.value,
        is_paired=device.is_paired,
        organisation_id=device.organisation_id,
        current_day_plan_id=device.current_day_plan_id,
        pairing_code=device.pairing_code,
        connected=device.socket_handle is not None,
        created_at=device.created_at.isoformat(),
        updated_at=device.updated_at.isoformat(),
    )


def _owned_device(session: Session, device_id: str, user: User) -> Device:
    device = device_store.find_by_id(session, device_id)
    if not device or device.organisation_id != user.organisation_id:
        raise HTTPException(status_code=404, detail="Display not found")
    return device


@router.post("/displays/pairing/init", response_model=PairingInitResponse)
def pairing_init(
    request: Optional[PairingInitRequest] = Body(default=None),
    session: Session = Depends(get_session),
):
    """Create an unpaired display (or resume a known one) and return its code."""
    try:
        device = init_device(session, request.device_id if request else None)
    except PairingError as e:
        raise _http_error(e)
    return PairingInitResponse(device_id=device.id, code=device.pairing_code)


@router.get("/displays/pairing/status/{device_id}", response_model=StatusResponse)
def pairing_status(device_id: str, session: Session = Depends(get_session)):
    """Poll pairing state and the assigned day plan."""
    try:
        return get_status(session, device_id)
    except PairingError as e:
        raise _http_error(e)


@router.post("/displays/pairing/register", response_model=DeviceResponse)
def pairing_register(
    request: RegisterRequest,
    user: User = Depends(require_admin),
    session: Session = Depends(get_session),
    notifier: DisplayNotifier = Depends(get_notifier),
):
    """Claim a display by the code shown on its screen."""
    if request.organisation_id and request.organisation_id != user.organisation_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    try:
        device = register_device(
            session,
            pairing_code=request.pairing_code,
            organisation_id=request.organisation_id,
            device_name=request.device_name,
            notifier=notifier,
        )
    except PairingError as e:
        raise _http_error(e)
    return _to_response(device)


@router.put("/displays/pairing/{device_id}/dayplan", response_model=DeviceResponse)
def pairing_assign_day_plan(
    device_id: str,
    request: AssignDayPlanRequest,
    user: User = Depends(require_admin),
    session: Session = Depends(get_session),
    notifier: DisplayNotifier = Depends(get_notifier),
):
    """Assign the day plan a display should show."""
    device = device_store.find_by_id(session, device_id)
    if device and device.is_paired and device.organisation_id != user.organisation_id:
        raise HTTPException(status_code=404, detail="Display not found")

    try:
        device = assign_day_plan(session, device_id, request.day_plan_id, notifier=notifier)
    except PairingError as e:
        raise _http_error(e)
    return _to_response(device)


@router.patch("/displays/pairing/{device_id}", response_model=DeviceResponse)
def pairing_rename(
    device_id: str,
    request: RenameDeviceRequest,
    user: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    """Rename a paired display."""
    device = _owned_device(session, device_id, user)
    device = device_store.rename(session, device, request.name.strip())
    return _to_response(device)


@router.get("/organisations/{organisation_id}/displays", response_model=list[DeviceResponse])
def list_displays(
    organisation_id: str,
    user: User = Depends(require_admin),
    session: Session = Depends(get_session),
):
    """List the displays paired to an organisation."""
    if organisation_id != user.organisation_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return [_to_response(d) for d in device_store.list_for_organisation(session, organisation_id)]


@router.post("/displays/pairing/{device_id}/disconnect", response_model=DeviceResponse)
def pairing_disconnect(device_id: str, session: Session = Depends(get_session)):
    """Unbind a display from its organisation."""
    try:
        device = disconnect_device(session, device_id)
    except PairingError as e:
        raise _http_error(e)
    return _to_response(device)


@router.post("/displays/pairing/{device_id}/reset", response_model=PairingInitResponse)
def pairing_reset(device_id: str, session: Session = Depends(get_session)):
    """Reset a display; returns its fresh pairing code."""
    try:
        device = reset_device(session, device_id)
    except PairingError as e:
        raise _http_error(e)
    return PairingInitResponse(device_id=device.id, code=device.pairing_code)
