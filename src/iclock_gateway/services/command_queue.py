"""
Command Queue

Lifecycle of administrative commands destined for a device::

    pending --(device poll)--> sent --(Return=0)--> executed
                                   `--(Return!=0)-> failed

A device receives the oldest pending command on each poll. Results are
matched back through the protocol id ``{TYPE}-{token}`` that is embedded in
the command text (``C:{id}:...``).
"""

from datetime import datetime, timedelta
from typing import List, Optional

from iclock_gateway.config.gateway_config import GatewayConfig
from iclock_gateway.models.command import Command, CommandStatus, CommandType
from iclock_gateway.protocol import codec
from iclock_gateway.repositories import command_repo, device_repo
from iclock_gateway.services.device_registry import normalize_serial
from iclock_gateway.services.enrollment_recorder import EnrollmentRecorder
from iclock_gateway.shared.exceptions import CommandError
from iclock_gateway.shared.logger import app_logger, log_category

DRIFT_TOLERANCE = timedelta(minutes=5)


class CommandQueue:

    def __init__(self, config: GatewayConfig = None, repository=None,
                 enrollments: EnrollmentRecorder = None, devices=None):
        self.config = config or GatewayConfig()
        self.repository = repository or command_repo
        self.devices = devices or device_repo
        self.enrollments = enrollments or EnrollmentRecorder(config=self.config)

    def _log(self, message: str) -> None:
        if log_category(self.config, "device_commands"):
            app_logger.info(f"[ICLOCK] {message}")

    # ========================================================================
    # QUEUEING
    # ========================================================================

    def enqueue(self, command_type: str, device_serial: str, payload: str,
                employee_id: Optional[str] = None, user_id: Optional[str] = None,
                command_id: Optional[str] = None) -> Command:
        """
        Store a new pending command.

        Args:
            command_type: CREATEUSER, DELETEUSER, QUERYUSER, SYNCTIME, ...
            device_serial: target device
            payload: literal text handed to the device on poll
            employee_id: device PIN the command is about, if any
            user_id: host user the command is about, if any
            command_id: protocol id already embedded in ``payload``; generated when omitted
        """
        command_type = command_type.upper()
        command = self.repository.create(
            Command(
                type=command_type,
                device_serial_number=normalize_serial(device_serial),
                command_id=command_id or codec.new_command_id(command_type),
                command=payload,
                employee_id=employee_id,
                user_id=None if user_id is None else str(user_id),
            )
        )
        self._log(
            f"Command {command.command_id} queued for device {command.device_serial_number}"
        )
        return command

    def create_user(self, device_serial: str, pin: str, name: str,
                    user_id: Optional[str] = None) -> Command:
        command_id = codec.new_command_id(CommandType.CREATEUSER)
        return self.enqueue(
            CommandType.CREATEUSER,
            device_serial,
            codec.build_create_user_command(command_id, pin, name),
            employee_id=pin,
            user_id=user_id,
            command_id=command_id,
        )

    def delete_user(self, device_serial: str, pin: str) -> Command:
        command_id = codec.new_command_id(CommandType.DELETEUSER)
        return self.enqueue(
            CommandType.DELETEUSER,
            device_serial,
            codec.build_delete_user_command(command_id, pin),
            employee_id=pin,
            command_id=command_id,
        )

    def query_user(self, device_serial: str, pin: str) -> Command:
        command_id = codec.new_command_id(CommandType.QUERYUSER)
        return self.enqueue(
            CommandType.QUERYUSER,
            device_serial,
            codec.build_query_user_command(command_id, pin),
            employee_id=pin,
            command_id=command_id,
        )

    def queue_time_sync(self, device_serial: str) -> Command:
        """SET OPTIONS DateTime=<now in the configured timezone>"""
        command_id = codec.new_command_id(CommandType.SYNCTIME)
        now = codec.now_in_timezone(self.config.timezone)
        command = self.enqueue(
            CommandType.SYNCTIME,
            device_serial,
            codec.build_sync_time_command(command_id, now),
            command_id=command_id,
        )
        return command

    def sync_time(self, device_serial: Optional[str] = None) -> List[Command]:
        """One SYNCTIME for the given device, or for every registered device"""
        if device_serial:
            return [self.queue_time_sync(device_serial)]
        return [self.queue_time_sync(device.serial_number) for device in self.devices.get_all()]

    def check_drift(self, device_serial: str, device_timestamp: Optional[str]) -> Optional[Command]:
        """
        Queue a SYNCTIME when the device clock is more than five minutes off.

        Missing or unparsable device timestamps skip the check.
        """
        if not device_timestamp:
            return None

        device_time = codec.parse_device_timestamp(device_timestamp, self.config.timezone)
        if device_time is None:
            app_logger.warning(
                f"[ICLOCK] Failed to parse device timestamp {device_timestamp!r} "
                f"from {device_serial}; drift check skipped"
            )
            return None

        server_time = codec.now_in_timezone(self.config.timezone)
        drift = abs(server_time - device_time)
        if drift <= DRIFT_TOLERANCE:
            return None

        command = self.queue_time_sync(device_serial)
        self._log(
            f"Time drift of {int(drift.total_seconds() // 60)} min on device {device_serial}, "
            f"sync command {command.command_id} queued"
        )
        return command

    # ========================================================================
    # POLL / RESULT
    # ========================================================================

    def next_pending(self, device_serial: str) -> Optional[Command]:
        return self.repository.get_oldest_pending(normalize_serial(device_serial))

    def mark_sent(self, command: Command) -> Command:
        sent_at = datetime.now()
        self.repository.update(
            command.command_id, {"status": CommandStatus.SENT, "sent_at": sent_at}
        )
        command.status = CommandStatus.SENT
        command.sent_at = sent_at.replace(microsecond=0)
        self._log(
            f"Command {command.command_id} sent to device {command.device_serial_number}"
        )
        return command

    def report_result(self, command_id: str, return_code: str) -> Optional[Command]:
        """
        Apply a device result report.

        ``Return=0`` executes the command, anything else fails it. Reports for
        unknown ids are ignored; repeated reports re-apply the terminal state.
        """
        command = self.repository.get_by_command_id(command_id)
        if command is None:
            app_logger.warning(f"[ICLOCK] Result for unknown command {command_id} ignored")
            return None
        if command.is_terminal:
            app_logger.warning(
                f"[ICLOCK] Command {command_id} already {command.status}, applying repeated report"
            )

        if str(return_code).strip() == "0":
            return self._executed(command)
        return self._failed(command, return_code)

    def _executed(self, command: Command) -> Command:
        if command.type == CommandType.CREATEUSER and command.employee_id:
            existing = self.enrollments.get(command.employee_id)
            if existing is None and self.config.auto_create_users:
                self.enrollments.ensure(command.employee_id, command.user_id)
                self._log(
                    f"Enrollment PIN={command.employee_id} created from command {command.command_id}"
                )

        executed_at = datetime.now()
        self.repository.update(
            command.command_id,
            {"status": CommandStatus.EXECUTED, "executed_at": executed_at},
        )
        command.status = CommandStatus.EXECUTED
        command.executed_at = executed_at.replace(microsecond=0)
        self._log(f"Command {command.command_id} executed")
        return command

    def _failed(self, command: Command, return_code: str) -> Command:
        failed_at = datetime.now()
        self.repository.update(
            command.command_id, {"status": CommandStatus.FAILED, "failed_at": failed_at}
        )
        command.status = CommandStatus.FAILED
        command.failed_at = failed_at.replace(microsecond=0)
        app_logger.warning(
            f"[ICLOCK] Command {command.command_id} failed with return code {return_code!r}"
        )
        return command

    # ========================================================================
    # OPERATOR HELPERS
    # ========================================================================

    def get(self, command_id: str) -> Optional[Command]:
        return self.repository.get_by_command_id(command_id)

    def pending_commands(self, device_serial: str) -> List[Command]:
        return self.repository.get_for_device(
            normalize_serial(device_serial), CommandStatus.PENDING
        )

    def list_commands(self, device_serial: str, status: Optional[str] = None) -> List[Command]:
        if status and status not in CommandStatus.ALL:
            raise ValueError(
                f"Unknown command status {status!r}; expected one of {', '.join(CommandStatus.ALL)}"
            )
        return self.repository.get_for_device(normalize_serial(device_serial), status)

    def is_overdue(self, command: Command, now: Optional[datetime] = None) -> bool:
        """Sent longer ago than the (advisory) command timeout without a result"""
        if command.status != CommandStatus.SENT or command.sent_at is None:
            return False
        now = now or datetime.now()
        return now - command.sent_at > timedelta(seconds=self.config.command_timeout)

    def requeue(self, command_id: str) -> Command:
        """
        Re-enqueue a failed command under a fresh protocol id.

        Raises:
            CommandError: unknown id, command not failed, or retry cap reached
        """
        original = self.repository.get_by_command_id(command_id)
        if original is None:
            raise CommandError(f"Command {command_id} not found")
        if original.status != CommandStatus.FAILED:
            raise CommandError(
                f"Only failed commands can be retried ({command_id} is {original.status})"
            )
        if original.attempt >= self.config.command_retry_attempts:
            raise CommandError(
                f"Command {command_id} reached the retry limit "
                f"({self.config.command_retry_attempts})"
            )

        new_id = codec.new_command_id(original.type)
        command = self.repository.create(
            Command(
                type=original.type,
                device_serial_number=original.device_serial_number,
                command_id=new_id,
                command=original.command.replace(original.command_id, new_id, 1),
                employee_id=original.employee_id,
                user_id=original.user_id,
                attempt=original.attempt + 1,
                retry_of=original.command_id,
            )
        )
        self._log(f"Command {original.command_id} re-queued as {new_id} (attempt {command.attempt})")
        return command
