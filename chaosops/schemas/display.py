"""Display pairing request/response schemas."""

import datetime as dt
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from chaosops.schemas.base import CamelModel


# --- Schedule items ---

class _ItemBase(CamelModel):
    id: int
    position: int = 0
    time: str  # "HH:MM"
    title: str
    delay: Optional[int] = None  # minutes


class SessionItem(_ItemBase):
    type: Literal["session"] = "session"
    speaker: Optional[str] = None
    location: Optional[str] = None
    details: Optional[str] = None


class WorkshopItem(_ItemBase):
    type: Literal["workshop"] = "workshop"
    speaker: Optional[str] = None
    location: Optional[str] = None
    materials: Optional[str] = None
    details: Optional[str] = None


class BreakItem(_ItemBase):
    type: Literal["break"] = "break"
    duration: Optional[str] = None
    snacks: Optional[str] = None


class AnnouncementItem(_ItemBase):
    type: Literal["announcement"] = "announcement"
    details: Optional[str] = None


class GameItem(_ItemBase):
    type: Literal["game"] = "game"
    facilitator: Optional[str] = None
    location: Optional[str] = None
    materials: Optional[str] = None
    details: Optional[str] = None


class TransitionItem(_ItemBase):
    type: Literal["transition"] = "transition"


ScheduleItemPayload = Annotated[
    Union[SessionItem, WorkshopItem, BreakItem, AnnouncementItem, GameItem, TransitionItem],
    Field(discriminator="type"),
]

SCHEDULE_ITEM_TYPES = ("session", "workshop", "break", "announcement", "game", "transition")


class DayPlanPayload(CamelModel):
    id: str
    name: str
    date: dt.date
    event_id: str
    schedule_items: list[ScheduleItemPayload] = []


# --- Pairing ---

class PairingInitRequest(CamelModel):
    device_id: Optional[str] = None


class PairingInitResponse(CamelModel):
    device_id: str
    code: Optional[str]


class RegisterRequest(CamelModel):
    pairing_code: str
    organisation_id: str
    device_name: Optional[str] = Field(default=None, max_length=100)


class AssignDayPlanRequest(CamelModel):
    day_plan_id: str


class RenameDeviceRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class StatusResponse(CamelModel):
    status: str
    is_paired: bool
    organisation_id: Optional[str]
    device_name: Optional[str]
    pairing_code: Optional[str]
    day_plan: Optional[DayPlanPayload]


class DeviceResponse(CamelModel):
    id: str
    name: Optional[str]
    status: str
    is_paired: bool
    organisation_id: Optional[str]
    current_day_plan_id: Optional[str]
    pairing_code: Optional[str]
    connected: bool
    created_at: str
    updated_at: str
