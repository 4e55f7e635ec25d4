from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime


class ToggleState:
    """Inferred punch direction"""
    CLOCK_IN = 0
    CLOCK_OUT = 1

    @classmethod
    def flip(cls, state: int) -> int:
        return cls.CLOCK_OUT if state == cls.CLOCK_IN else cls.CLOCK_IN


@dataclass
class Punch:
    """One accepted attendance event; unique on (employee_id, timestamp, device_serial_number)"""
    device_serial_number: str
    employee_id: str
    timestamp: datetime  # naive wall clock in the configured timezone
    status1: int  # ToggleState
    status2: Optional[int] = None  # raw device codes, positions 3-6 of the ATTLOG line
    status3: Optional[int] = None
    status4: Optional[int] = None
    status5: Optional[int] = None
    device_name: Optional[str] = None
    user_id: Optional[str] = None
    table: Optional[str] = None
    stamp: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def is_clock_in(self) -> bool:
        return self.status1 == ToggleState.CLOCK_IN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        data = asdict(self)
        if isinstance(data['timestamp'], datetime):
            data['timestamp'] = data['timestamp'].strftime('%Y-%m-%d %H:%M:%S')
        return data
