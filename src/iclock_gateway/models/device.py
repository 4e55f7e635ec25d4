from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime


class DeviceStatus:
    """Device status constants"""
    PENDING = 'pending'
    ONLINE = 'online'
    OFFLINE = 'offline'
    UNAUTHORIZED = 'unauthorized'
    COMMUNICATED = 'communicated'


@dataclass
class Device:
    """Registered time-clock terminal, identified by its upper-cased serial number"""

    serial_number: str
    device_name: str
    device_ip: Optional[str] = None
    status: str = DeviceStatus.PENDING
    last_online: Optional[datetime] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_online(self) -> bool:
        return self.status == DeviceStatus.ONLINE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        data = asdict(self)
        if isinstance(data['last_online'], datetime):
            data['last_online'] = data['last_online'].strftime('%Y-%m-%d %H:%M:%S')
        return data
