from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime


class CommandStatus:
    """Command lifecycle: pending -> sent -> executed | failed"""
    PENDING = 'pending'
    SENT = 'sent'
    EXECUTED = 'executed'
    FAILED = 'failed'

    ALL = (PENDING, SENT, EXECUTED, FAILED)
    TERMINAL = (EXECUTED, FAILED)


class CommandType:
    CREATEUSER = 'CREATEUSER'
    DELETEUSER = 'DELETEUSER'
    QUERYUSER = 'QUERYUSER'
    SYNCTIME = 'SYNCTIME'


@dataclass
class Command:
    """Administrative instruction queued for delivery on the device's next poll"""
    type: str
    device_serial_number: str
    command_id: str  # {TYPE}-{token}
    command: str  # literal text handed to the device
    employee_id: Optional[str] = None
    user_id: Optional[str] = None
    status: str = CommandStatus.PENDING
    attempt: int = 1
    retry_of: Optional[str] = None
    sent_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in CommandStatus.TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('sent_at', 'executed_at', 'failed_at', 'created_at'):
            if isinstance(data[key], datetime):
                data[key] = data[key].strftime('%Y-%m-%d %H:%M:%S')
        return data
