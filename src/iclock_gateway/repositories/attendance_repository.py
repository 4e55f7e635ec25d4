import sqlite3
from typing import List, Optional
from datetime import datetime, date, timedelta
from iclock_gateway.models.attendance import Punch
from iclock_gateway.database.connection import db_manager
from iclock_gateway.utils import to_db, from_db


class AttendanceRepository:
    """Punch (biometric attendance) database operations"""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_manager

    def create(self, punch: Punch) -> Optional[Punch]:
        """
        Insert a punch.

        Returns:
            The stored Punch, or None when the (employee_id, timestamp,
            device_serial_number) key already exists.
        """
        query = """
            INSERT INTO biometric_attendances (
                device_name, device_serial_number, user_id, "table", stamp,
                employee_id, timestamp, status1, status2, status3, status4, status5
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """

        try:
            cursor = self.db.execute_query(
                query,
                (
                    punch.device_name,
                    punch.device_serial_number,
                    punch.user_id,
                    punch.table,
                    punch.stamp,
                    punch.employee_id,
                    to_db(punch.timestamp),
                    punch.status1,
                    punch.status2,
                    punch.status3,
                    punch.status4,
                    punch.status5,
                ),
            )
        except sqlite3.IntegrityError:
            return None

        return self.get_by_id(cursor.lastrowid)

    def get_by_id(self, punch_id: int) -> Optional[Punch]:
        row = self.db.fetch_one(
            "SELECT * FROM biometric_attendances WHERE id = ?", (punch_id,)
        )
        return self._row_to_punch(row) if row else None

    def exists(self, employee_id: str, timestamp: datetime, serial_number: str) -> bool:
        row = self.db.fetch_one(
            """
            SELECT 1 FROM biometric_attendances
            WHERE employee_id = ? AND timestamp = ? AND device_serial_number = ?
            """,
            (employee_id, to_db(timestamp), serial_number),
        )
        return row is not None

    def get_latest_for_employee_on(self, employee_id: str, day: date) -> Optional[Punch]:
        """
        Latest punch for an employee on a calendar day, across all devices.

        Used for clock-in/clock-out toggle inference.
        """
        day_start = datetime.combine(day, datetime.min.time())
        next_day = day_start + timedelta(days=1)
        row = self.db.fetch_one(
            """
            SELECT * FROM biometric_attendances
            WHERE employee_id = ?
              AND timestamp >= ?
              AND timestamp < ?
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
            """,
            (employee_id, to_db(day_start), to_db(next_day)),
        )
        return self._row_to_punch(row) if row else None

    def set_user_id(self, punch_id: int, user_id: str) -> bool:
        cursor = self.db.execute_query(
            "UPDATE biometric_attendances SET user_id = ?, updated_at = ? WHERE id = ?",
            (user_id, to_db(datetime.now()), punch_id),
        )
        return cursor.rowcount > 0

    def get_all(
        self,
        device_serial_number: str = None,
        employee_id: str = None,
        start: datetime = None,
        end: datetime = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> List[Punch]:
        """Get punches newest first with optional filtering"""
        conditions = []
        params = []

        if device_serial_number:
            conditions.append("device_serial_number = ?")
            params.append(device_serial_number)

        if employee_id:
            conditions.append("employee_id = ?")
            params.append(employee_id)

        if start:
            conditions.append("timestamp >= ?")
            params.append(to_db(start))

        if end:
            conditions.append("timestamp <= ?")
            params.append(to_db(end))

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = (
            f"SELECT * FROM biometric_attendances WHERE {where_clause} "
            "ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        )
        params.extend([limit, offset])

        rows = self.db.fetch_all(query, tuple(params))
        return [self._row_to_punch(row) for row in rows]

    def _row_to_punch(self, row) -> Punch:
        return Punch(
            id=row['id'],
            device_name=row['device_name'],
            device_serial_number=row['device_serial_number'],
            user_id=row['user_id'],
            table=row['table'],
            stamp=row['stamp'],
            employee_id=row['employee_id'],
            timestamp=from_db(row['timestamp']),
            status1=row['status1'],
            status2=row['status2'],
            status3=row['status3'],
            status4=row['status4'],
            status5=row['status5'],
            created_at=row['created_at'],
        )
