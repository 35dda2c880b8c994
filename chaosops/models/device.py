"""Display device model."""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class DeviceStatus(str, Enum):
    UNPAIRED = "UNPAIRED"
    PAIRED = "PAIRED"


class Device(SQLModel, table=True):
    """One row per physical kiosk display.

    A device holds a pairing code exactly while it is unpaired and an
    organisation exactly while it is paired.
    """

    __tablename__ = "devices"

    id: str = Field(default_factory=lambda: f"dsp_{secrets.token_hex(8)}", primary_key=True)
    pairing_code: Optional[str] = Field(default=None, unique=True, index=True)
    code_issued_at: Optional[datetime] = None
    status: DeviceStatus = Field(default=DeviceStatus.UNPAIRED, index=True)
    organisation_id: Optional[str] = Field(default=None, foreign_key="organisations.id", index=True)
    name: Optional[str] = None
    current_day_plan_id: Optional[str] = Field(default=None, foreign_key="day_plans.id")
    socket_handle: Optional[str] = None  # live push connection, best effort only
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_paired(self) -> bool:
        return self.status == DeviceStatus.PAIRED
