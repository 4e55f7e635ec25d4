from typing import Dict, Any, List, Optional
from datetime import datetime
from iclock_gateway.models.command import Command, CommandStatus
from iclock_gateway.database.connection import db_manager
from iclock_gateway.utils import to_db, from_db


class CommandRepository:
    """Device command database operations"""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_manager

    def create(self, command: Command) -> Command:
        query = '''
            INSERT INTO biometric_commands (
                type, device_serial_number, command_id, command, employee_id,
                user_id, status, attempt, retry_of
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        '''

        cursor = self.db.execute_query(query, (
            command.type, command.device_serial_number, command.command_id,
            command.command, command.employee_id, command.user_id, command.status,
            command.attempt, command.retry_of
        ))

        return self.get_by_id(cursor.lastrowid)

    def get_by_id(self, row_id: int) -> Optional[Command]:
        row = self.db.fetch_one("SELECT * FROM biometric_commands WHERE id = ?", (row_id,))
        return self._row_to_command(row) if row else None

    def get_by_command_id(self, command_id: str) -> Optional[Command]:
        row = self.db.fetch_one(
            "SELECT * FROM biometric_commands WHERE command_id = ?", (command_id,)
        )
        return self._row_to_command(row) if row else None

    def get_oldest_pending(self, serial_number: str) -> Optional[Command]:
        """Oldest pending command for a device (insertion order)"""
        row = self.db.fetch_one(
            '''
            SELECT * FROM biometric_commands
            WHERE device_serial_number = ? AND status = ?
            ORDER BY id ASC
            LIMIT 1
            ''',
            (serial_number, CommandStatus.PENDING)
        )
        return self._row_to_command(row) if row else None

    def get_for_device(self, serial_number: str, status: str = None) -> List[Command]:
        if status:
            rows = self.db.fetch_all(
                '''
                SELECT * FROM biometric_commands
                WHERE device_serial_number = ? AND status = ?
                ORDER BY id ASC
                ''',
                (serial_number, status)
            )
        else:
            rows = self.db.fetch_all(
                "SELECT * FROM biometric_commands WHERE device_serial_number = ? ORDER BY id ASC",
                (serial_number,)
            )
        return [self._row_to_command(row) for row in rows]

    def update(self, command_id: str, updates: Dict[str, Any]) -> bool:
        for key in ('sent_at', 'executed_at', 'failed_at'):
            if key in updates:
                updates[key] = to_db(updates[key])

        updates['updated_at'] = to_db(datetime.now())

        set_clause = ', '.join([f"{key} = ?" for key in updates.keys()])
        query = f"UPDATE biometric_commands SET {set_clause} WHERE command_id = ?"

        cursor = self.db.execute_query(query, (*updates.values(), command_id))
        return cursor.rowcount > 0

    def _row_to_command(self, row) -> Command:
        return Command(
            id=row['id'],
            type=row['type'],
            device_serial_number=row['device_serial_number'],
            command_id=row['command_id'],
            command=row['command'],
            employee_id=row['employee_id'],
            user_id=row['user_id'],
            status=row['status'],
            attempt=row['attempt'],
            retry_of=row['retry_of'],
            sent_at=from_db(row['sent_at']),
            executed_at=from_db(row['executed_at']),
            failed_at=from_db(row['failed_at']),
            created_at=from_db(row['created_at']),
        )
