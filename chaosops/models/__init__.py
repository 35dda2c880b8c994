"""Chaos Ops Database Models."""

from chaosops.models.organisation import Organisation, User
from chaosops.models.planning import DayPlan, Event, ScheduleItem
from chaosops.models.device import Device, DeviceStatus

__all__ = [
    "Organisation",
    "User",
    "Event",
    "DayPlan",
    "ScheduleItem",
    "Device",
    "DeviceStatus",
]
