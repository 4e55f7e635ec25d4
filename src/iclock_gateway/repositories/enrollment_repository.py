from typing import Dict, Any, List, Optional
from datetime import datetime
from iclock_gateway.models.enrollment import Enrollment
from iclock_gateway.database.connection import db_manager
from iclock_gateway.utils import to_db


class EnrollmentRepository:
    """Enrollment (biometric employee) database operations"""

    MERGEABLE_FIELDS = (
        'user_id', 'card_number', 'has_fingerprint', 'fingerprint_id',
        'fingerprint_template', 'has_photo', 'photo',
    )

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_manager

    def get_by_employee_id(self, employee_id: str) -> Optional[Enrollment]:
        row = self.db.fetch_one(
            "SELECT * FROM biometric_employees WHERE biometric_employee_id = ?",
            (employee_id,)
        )
        return self._row_to_enrollment(row) if row else None

    def get_all(self) -> List[Enrollment]:
        rows = self.db.fetch_all("SELECT * FROM biometric_employees ORDER BY id")
        return [self._row_to_enrollment(row) for row in rows]

    def create_if_absent(self, employee_id: str, user_id: Optional[str]) -> Enrollment:
        """Insert a bare enrollment bound to a host user; an existing row is left untouched"""
        self.db.execute_query(
            '''
            INSERT INTO biometric_employees (biometric_employee_id, user_id)
            VALUES (?, ?)
            ON CONFLICT(biometric_employee_id) DO NOTHING
            ''',
            (employee_id, user_id)
        )
        return self.get_by_employee_id(employee_id)

    def upsert(self, employee_id: str, fields: Dict[str, Any]) -> Enrollment:
        """
        Insert or merge-update an enrollment.

        Only the columns named in ``fields`` are written; everything else on an
        existing row keeps its value.
        """
        unknown = set(fields) - set(self.MERGEABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown enrollment fields: {sorted(unknown)}")

        columns = list(fields.keys())
        values = [fields[column] for column in columns]
        now = to_db(datetime.now())

        insert_columns = ', '.join(['biometric_employee_id', *columns, 'updated_at'])
        placeholders = ', '.join(['?'] * (len(columns) + 2))
        update_clause = ', '.join(
            [f"{column} = excluded.{column}" for column in columns] + ['updated_at = excluded.updated_at']
        )

        query = f'''
            INSERT INTO biometric_employees ({insert_columns})
            VALUES ({placeholders})
            ON CONFLICT(biometric_employee_id) DO UPDATE SET {update_clause}
        '''
        self.db.execute_query(query, (employee_id, *values, now))
        return self.get_by_employee_id(employee_id)

    def _row_to_enrollment(self, row) -> Enrollment:
        return Enrollment(
            id=row['id'],
            biometric_employee_id=row['biometric_employee_id'],
            user_id=row['user_id'],
            card_number=row['card_number'],
            has_fingerprint=bool(row['has_fingerprint']),
            fingerprint_id=row['fingerprint_id'],
            fingerprint_template=row['fingerprint_template'],
            has_photo=bool(row['has_photo']),
            photo=row['photo'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
