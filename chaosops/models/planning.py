"""Event, day plan and schedule item models.

These tables belong to the event planner; the display subsystem only reads
them to hand a day plan to a paired device.
"""

import datetime as dt
import secrets
from typing import Optional

from sqlmodel import Field, SQLModel


class Event(SQLModel, table=True):
    __tablename__ = "events"

    id: str = Field(default_factory=lambda: f"evt_{secrets.token_hex(4)}", primary_key=True)
    organisation_id: str = Field(foreign_key="organisations.id", index=True)
    name: str


class DayPlan(SQLModel, table=True):
    __tablename__ = "day_plans"

    id: str = Field(default_factory=lambda: f"dpl_{secrets.token_hex(4)}", primary_key=True)
    event_id: str = Field(foreign_key="events.id", index=True)
    name: str
    date: dt.date


class ScheduleItem(SQLModel, table=True):
    __tablename__ = "schedule_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    day_plan_id: str = Field(foreign_key="day_plans.id", index=True)
    position: int = Field(default=0)
    time: str  # "HH:MM"
    type: str = Field(default="session")  # session | workshop | break | announcement | game | transition
    title: str
    speaker: Optional[str] = None
    location: Optional[str] = None
    details: Optional[str] = None
    materials: Optional[str] = None
    duration: Optional[str] = None
    snacks: Optional[str] = None
    facilitator: Optional[str] = None
    delay: Optional[int] = None  # minutes, may be negative
