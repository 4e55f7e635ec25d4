"""
Attendance Ledger

Turns ATTLOG lines into stored punches:

1. parse the line, drop it if the timestamp is zero or unparsable
2. normalize the timestamp to the configured timezone (second precision)
3. skip punches whose (employee, timestamp, device) key is already stored
4. infer clock-in/clock-out by flipping the employee's last punch of that day
5. resolve the host user through the enrollment, if any
6. store, then auto-provision the enrollment and backfill the user id
7. notify the attendance sink

Steps 3-6 run under a per-employee lock so two concurrent pushes in this
process cannot both read the same "last punch". The unique index on the
punch key still guards against duplicates coming from other processes.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from iclock_gateway.config.gateway_config import GatewayConfig
from iclock_gateway.models.attendance import Punch, ToggleState
from iclock_gateway.models.device import Device
from iclock_gateway.protocol import codec
from iclock_gateway.repositories import attendance_repo
from iclock_gateway.services.device_registry import normalize_serial
from iclock_gateway.services.enrollment_recorder import EnrollmentRecorder
from iclock_gateway.services.resolvers import EmployeeResolver, NullEmployeeResolver
from iclock_gateway.services.sinks import AttendanceSink, EventStreamSink
from iclock_gateway.shared.logger import app_logger, log_category


class KeyedLocks:
    """One lock per key, created on demand and dropped once nobody holds or waits on it"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}  # key -> [lock, holders and waiters]

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class AttendanceLedger:

    def __init__(
        self,
        config: GatewayConfig = None,
        repository=None,
        enrollments: EnrollmentRecorder = None,
        resolver: EmployeeResolver = None,
        sink: AttendanceSink = None,
    ):
        self.config = config or GatewayConfig()
        self.repository = repository or attendance_repo
        self.enrollments = enrollments or EnrollmentRecorder(config=self.config)
        self.resolver = resolver or NullEmployeeResolver()
        self.sink = sink or EventStreamSink()
        self._employee_locks = KeyedLocks()

    def ingest(self, device: Device, lines: List[str],
               request_metadata: Optional[Dict[str, Any]] = None) -> List[Punch]:
        """
        Store every acceptable ATTLOG line from one push.

        Args:
            device: the registered device that pushed the batch
            lines: body lines (already split, empty lines removed)
            request_metadata: optional ``table`` / ``Stamp`` query values

        Returns:
            Punches stored by this call, in line order
        """
        request_metadata = request_metadata or {}
        accepted = []

        if log_category(self.config, "attendance_data"):
            app_logger.info(
                f"[ICLOCK] Attendance data received from {device.serial_number}: "
                f"{len(lines)} line(s)"
            )

        for line in lines:
            try:
                punch = self.ingest_line(device, line, request_metadata)
            except Exception as e:
                # Only this line is lost
                app_logger.error(f"[ICLOCK] Failed to store punch line {line!r}: {e}")
                continue
            if punch is not None:
                accepted.append(punch)

        return accepted

    def ingest_line(self, device: Device, line: str,
                    request_metadata: Dict[str, Any]) -> Optional[Punch]:
        parsed = codec.parse_attendance_line(line)
        if parsed is None:
            return None

        timestamp = codec.parse_device_timestamp(parsed.timestamp, self.config.timezone)
        if timestamp is None:
            app_logger.debug(f"[ICLOCK] Dropping punch with invalid timestamp: {line!r}")
            return None

        employee_id = parsed.employee_id

        with self._employee_locks.hold(employee_id):
            if self.repository.exists(employee_id, timestamp, device.serial_number):
                return None

            status = self.determine_toggle_state(employee_id, timestamp)
            enrollment = self.enrollments.get(employee_id)

            punch = self.repository.create(
                Punch(
                    device_name=device.device_name,
                    device_serial_number=device.serial_number,
                    user_id=enrollment.user_id if enrollment else None,
                    table=request_metadata.get("table"),
                    stamp=request_metadata.get("Stamp"),
                    employee_id=employee_id,
                    timestamp=timestamp,
                    status1=status,
                    status2=parsed.codes[0],
                    status3=parsed.codes[1],
                    status4=parsed.codes[2],
                    status5=parsed.codes[3],
                )
            )
            if punch is None:
                # Another writer stored the same key first
                return None

            if enrollment is None and self.config.auto_create_users:
                punch = self._auto_provision(punch)

        if log_category(self.config, "attendance_data"):
            app_logger.info(
                f"[ICLOCK] Punch recorded: PIN={employee_id} at {timestamp} "
                f"device={device.serial_number} "
                f"{'clock-in' if punch.is_clock_in else 'clock-out'}"
            )

        self._notify(punch)
        return punch

    def determine_toggle_state(self, employee_id: str, timestamp) -> int:
        """Clock-in for the first punch of the day, otherwise the opposite of the last one"""
        last_punch = self.repository.get_latest_for_employee_on(employee_id, timestamp.date())
        if last_punch is None:
            return ToggleState.CLOCK_IN
        return ToggleState.flip(last_punch.status1)

    def _auto_provision(self, punch: Punch) -> Punch:
        user_id = self.resolver.resolve(self.config.employee_field, punch.employee_id)
        if user_id is None:
            return punch

        enrollment = self.enrollments.ensure(punch.employee_id, user_id)
        if enrollment and enrollment.user_id:
            self.repository.set_user_id(punch.id, enrollment.user_id)
            punch.user_id = enrollment.user_id
            app_logger.info(
                f"[ICLOCK] Auto-provisioned enrollment PIN={punch.employee_id} -> user {user_id}"
            )
        return punch

    def _notify(self, punch: Punch) -> None:
        try:
            self.sink.punch_recorded(punch)
        except Exception as e:
            # Listener errors never undo a stored punch
            app_logger.error(f"[ICLOCK] Attendance sink failed for punch {punch.id}: {e}")

    def punches(self, device_serial: str = None, employee_id: str = None,
                start=None, end=None, limit: int = 1000) -> List[Punch]:
        return self.repository.get_all(
            device_serial_number=normalize_serial(device_serial) or None,
            employee_id=employee_id,
            start=start,
            end=end,
            limit=limit,
        )
