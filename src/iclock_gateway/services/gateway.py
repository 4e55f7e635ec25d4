"""
iClock Gateway

Orchestrates the device-facing entry points against the registry, ledger,
recorder and command queue. Each call is independent; nothing survives
between requests except what is written to storage.

Entry points:
- handshake      GET  /iclock/cdata       -> option block
- data_push      POST /iclock/cdata       -> OK (punches or enrollment fragments)
- poll           GET  /iclock/getrequest  -> oldest pending command text or OK
- command_result POST /iclock/devicecmd   -> OK
- ping           GET  /iclock/ping        -> OK
"""

from collections import namedtuple
from typing import Any, Dict, Optional

from iclock_gateway.config.gateway_config import GatewayConfig
from iclock_gateway.protocol import codec
from iclock_gateway.services.attendance_ledger import AttendanceLedger
from iclock_gateway.services.command_queue import CommandQueue
from iclock_gateway.services.device_registry import DeviceRegistry
from iclock_gateway.services.enrollment_recorder import EnrollmentRecorder
from iclock_gateway.shared.exceptions import ProtocolError
from iclock_gateway.shared.logger import app_logger, log_category

OK = "OK"

GatewayResponse = namedtuple("GatewayResponse", ["body", "status"])
GatewayResponse.__new__.__defaults__ = (200,)


class Gateway:

    def __init__(
        self,
        config: GatewayConfig = None,
        registry: DeviceRegistry = None,
        ledger: AttendanceLedger = None,
        enrollments: EnrollmentRecorder = None,
        commands: CommandQueue = None,
    ):
        self.config = config or GatewayConfig()
        self.registry = registry or DeviceRegistry(config=self.config)
        self.enrollments = enrollments or EnrollmentRecorder(config=self.config)
        self.ledger = ledger or AttendanceLedger(config=self.config, enrollments=self.enrollments)
        self.commands = commands or CommandQueue(config=self.config, enrollments=self.enrollments)

    def _rejected(self, entry: str, error: ProtocolError) -> GatewayResponse:
        app_logger.error(f"[ICLOCK] {entry}: {error.message}")
        return GatewayResponse(error.message, error.status)

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    def handshake(self, serial_number: Optional[str], address: Optional[str] = None) -> GatewayResponse:
        try:
            device = self.registry.require(serial_number)
        except ProtocolError as e:
            return self._rejected("Handshake", e)

        if not device.is_online:
            app_logger.info(f"[ICLOCK] Device {device.serial_number} is now online")
        self.registry.mark_online(device.serial_number, address)

        offset = codec.timezone_offset_minutes(self.config.timezone)
        body = codec.build_handshake(device.serial_number, offset)

        if log_category(self.config, "device_commands"):
            app_logger.info(
                f"[ICLOCK] Handshake with {device.serial_number} (TimeZone={offset})"
            )
        return GatewayResponse(body)

    def data_push(self, serial_number: Optional[str], address: Optional[str], body,
                  query_params: Optional[Dict[str, Any]] = None) -> GatewayResponse:
        """
        Accept a cdata push.

        ``query_params`` may carry ``timestamp`` (device clock, used for the
        drift check) and ``table`` / ``Stamp`` (kept on stored punches).
        """
        query_params = query_params or {}
        try:
            device = self.registry.require(serial_number)
        except ProtocolError as e:
            return self._rejected("Data push", e)

        self.registry.mark_online(device.serial_number, address)
        self.check_time_drift(device.serial_number, query_params.get("timestamp"))

        lines = codec.split_lines(body)
        if not lines:
            return GatewayResponse(OK)

        if codec.is_enrollment_payload(lines):
            applied = self.enrollments.record_lines(device.serial_number, lines)
            if log_category(self.config, "attendance_data"):
                app_logger.info(
                    f"[ICLOCK] Enrollment data from {device.serial_number}: "
                    f"{applied}/{len(lines)} fragment(s) applied"
                )
        else:
            self.ledger.ingest(device, lines, query_params)

        return GatewayResponse(OK)

    def poll(self, serial_number: Optional[str], address: Optional[str] = None) -> GatewayResponse:
        device = self.registry.lookup(serial_number)
        if device is None:
            app_logger.debug(f"[ICLOCK] Poll from unknown device {serial_number!r}")
            return GatewayResponse(OK)

        self.registry.mark_online(device.serial_number, address)

        command = self.commands.next_pending(device.serial_number)
        if command is None:
            return GatewayResponse(OK)

        self.commands.mark_sent(command)
        return GatewayResponse(command.command)

    def command_result(self, serial_number: Optional[str], body) -> GatewayResponse:
        device = self.registry.lookup(serial_number)
        if device is None:
            app_logger.error(
                f"[ICLOCK] Command result from unknown device {serial_number!r} ignored"
            )
            return GatewayResponse(OK)

        result = codec.parse_command_result(body)
        if result is None:
            app_logger.warning(
                f"[ICLOCK] Command result without ID from {device.serial_number} ignored"
            )
            return GatewayResponse(OK)

        if log_category(self.config, "device_commands"):
            app_logger.info(
                f"[ICLOCK] Command result from {device.serial_number}: "
                f"ID={result.command_id} Return={result.return_code} CMD={result.command}"
            )

        try:
            self.commands.report_result(result.command_id, result.return_code)
        except Exception as e:
            app_logger.error(
                f"[ICLOCK] Failed to apply result for command {result.command_id}: {e}",
                exc_info=True,
            )
        return GatewayResponse(OK)

    def ping(self, serial_number: Optional[str], address: Optional[str] = None) -> GatewayResponse:
        device = self.registry.lookup(serial_number)
        if device is not None:
            self.registry.mark_online(device.serial_number, address)
            app_logger.debug(f"[ICLOCK] Ping from {device.serial_number} ({address})")
        return GatewayResponse(OK)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def check_time_drift(self, serial_number: str, device_timestamp: Optional[str]):
        """Best effort; a failure here never blocks the push"""
        try:
            return self.commands.check_drift(serial_number, device_timestamp)
        except Exception as e:
            app_logger.error(f"[ICLOCK] Drift check failed for {serial_number}: {e}")
            return None
