from iclock_gateway.models.device import Device, DeviceStatus
from iclock_gateway.models.enrollment import Enrollment
from iclock_gateway.models.attendance import Punch, ToggleState
from iclock_gateway.models.command import Command, CommandStatus, CommandType

__all__ = [
    "Device",
    "DeviceStatus",
    "Enrollment",
    "Punch",
    "ToggleState",
    "Command",
    "CommandStatus",
    "CommandType",
]
