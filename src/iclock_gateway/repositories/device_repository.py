from typing import Dict, Any, List, Optional
from datetime import datetime
from iclock_gateway.models.device import Device
from iclock_gateway.database.connection import db_manager
from iclock_gateway.utils import to_db, from_db


class DeviceRepository:
    """Device database operations"""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_manager

    def create(self, device: Device) -> Device:
        """Create new device"""
        query = '''
            INSERT INTO biometric_devices (
                device_name, serial_number, device_ip, status, last_online
            ) VALUES (?, ?, ?, ?, ?)
        '''

        cursor = self.db.execute_query(query, (
            device.device_name, device.serial_number, device.device_ip,
            device.status, to_db(device.last_online)
        ))

        return self.get_by_id(cursor.lastrowid)

    def get_by_id(self, device_id: int) -> Optional[Device]:
        """Get device by ID"""
        row = self.db.fetch_one("SELECT * FROM biometric_devices WHERE id = ?", (device_id,))
        return self._row_to_device(row) if row else None

    def get_by_serial_number(self, serial_number: str) -> Optional[Device]:
        """Get device by (already upper-cased) serial number"""
        row = self.db.fetch_one(
            "SELECT * FROM biometric_devices WHERE serial_number = ?", (serial_number,)
        )
        return self._row_to_device(row) if row else None

    def get_all(self) -> List[Device]:
        """Get all devices"""
        rows = self.db.fetch_all("SELECT * FROM biometric_devices ORDER BY id")
        return [self._row_to_device(row) for row in rows]

    def update(self, serial_number: str, updates: Dict[str, Any]) -> bool:
        """Update device by serial number"""
        if 'last_online' in updates:
            updates['last_online'] = to_db(updates['last_online'])

        updates['updated_at'] = to_db(datetime.now())

        set_clause = ', '.join([f"{key} = ?" for key in updates.keys()])
        query = f"UPDATE biometric_devices SET {set_clause} WHERE serial_number = ?"

        cursor = self.db.execute_query(query, (*updates.values(), serial_number))
        return cursor.rowcount > 0

    def _row_to_device(self, row) -> Device:
        """Convert database row to Device object"""
        return Device(
            id=row['id'],
            device_name=row['device_name'],
            serial_number=row['serial_number'],
            device_ip=row['device_ip'],
            status=row['status'],
            last_online=from_db(row['last_online']),
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
