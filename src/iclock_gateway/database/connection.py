import sqlite3
import os
import threading
import atexit
from contextlib import contextmanager
from typing import Optional, List, Set

from iclock_gateway.shared.logger import app_logger


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS biometric_devices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        device_name TEXT NOT NULL,
        serial_number TEXT NOT NULL UNIQUE,
        device_ip TEXT,
        status TEXT NOT NULL DEFAULT 'pending', -- pending, online, offline, unauthorized, communicated
        last_online TEXT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS biometric_employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        biometric_employee_id TEXT NOT NULL UNIQUE,
        user_id TEXT NULL,
        card_number TEXT NULL,
        has_fingerprint BOOLEAN DEFAULT FALSE,
        fingerprint_id TEXT NULL,
        fingerprint_template TEXT NULL,
        has_photo BOOLEAN DEFAULT FALSE,
        photo TEXT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS biometric_attendances (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        device_name TEXT,
        device_serial_number TEXT NOT NULL,
        user_id TEXT NULL,
        "table" TEXT NULL,
        stamp TEXT NULL,
        employee_id TEXT NOT NULL,
        timestamp TEXT NOT NULL, -- naive wall clock in the configured timezone
        status1 INTEGER NOT NULL, -- 0: clock in, 1: clock out
        status2 INTEGER NULL,
        status3 INTEGER NULL,
        status4 INTEGER NULL,
        status5 INTEGER NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT unique_punch UNIQUE(employee_id, timestamp, device_serial_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS biometric_commands (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        device_serial_number TEXT NOT NULL,
        command_id TEXT NOT NULL UNIQUE,
        command TEXT NOT NULL,
        employee_id TEXT NULL,
        user_id TEXT NULL,
        status TEXT NOT NULL DEFAULT 'pending', -- pending, sent, executed, failed
        attempt INTEGER NOT NULL DEFAULT 1,
        retry_of TEXT NULL,
        sent_at TEXT NULL,
        executed_at TEXT NULL,
        failed_at TEXT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_attendance_employee_ts ON biometric_attendances(employee_id, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_attendance_device ON biometric_attendances(device_serial_number)",
    "CREATE INDEX IF NOT EXISTS idx_commands_device_status ON biometric_commands(device_serial_number, status, id)",
)


class DatabaseManager:
    """SQLite database manager for the iClock gateway"""

    def __init__(self, db_path: str = "iclock_gateway.db"):
        self.db_path = self._resolve_path(os.environ.get("ICLOCK_DB_PATH") or db_path)
        self._local = threading.local()
        self._connections: Set[sqlite3.Connection] = set()
        self._lock = threading.Lock()
        self._initialized = False

        atexit.register(self.close_all_connections)

    @staticmethod
    def _resolve_path(db_path: str) -> str:
        if db_path != ":memory:" and not os.path.isabs(db_path):
            db_path = os.path.abspath(db_path)

        db_directory = os.path.dirname(db_path)
        if db_directory:
            try:
                os.makedirs(db_directory, exist_ok=True)
            except OSError as exc:
                raise RuntimeError(
                    f"Unable to create database directory '{db_directory}': {exc}"
                ) from exc
        return db_path

    def configure(self, db_path: str) -> None:
        """Point the manager at another database file and (re)create the schema"""
        self.close_all_connections()
        self.db_path = self._resolve_path(db_path)
        self._local = threading.local()
        self._initialized = False
        self.init_database()

    def get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection"""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA temp_store = MEMORY")
            conn.row_factory = sqlite3.Row

            self._local.connection = conn

            with self._lock:
                self._connections.add(conn)

        if not self._initialized:
            self._initialized = True
            self._create_schema(self._local.connection)

        return self._local.connection

    @contextmanager
    def get_cursor(self):
        """Context manager for database operations"""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            cursor.close()

    def init_database(self):
        """Initialize database tables"""
        self.get_connection()
        app_logger.info(f"[ICLOCK] Database initialized at: {self.db_path}")

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        cursor = conn.cursor()
        try:
            for statement in SCHEMA + INDEXES:
                cursor.execute(statement)
            conn.commit()
        finally:
            cursor.close()

    def execute_query(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a single query"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor

    def fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Fetch single row"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchone()

    def fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Fetch all rows"""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def close_connection(self):
        """Close thread-local connection"""
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            try:
                conn.close()
                with self._lock:
                    self._connections.discard(conn)
            except sqlite3.Error as e:
                app_logger.warning(f"Error closing thread-local connection: {e}")
            finally:
                self._local.connection = None

    def close_all_connections(self):
        """Close all tracked connections - called on shutdown"""
        with self._lock:
            connections_to_close = list(self._connections)
            self._connections.clear()

        for conn in connections_to_close:
            try:
                conn.close()
            except sqlite3.Error as e:
                app_logger.warning(f"Error closing connection: {e}")


# Global database manager instance
db_manager = DatabaseManager()
